"""Vision skills: extractText (OCR) and analyzeRegion (short subject label)."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from design_agents.config import VISION_MODEL
from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import data_url_part, generate_json_text, generate_text

logger = logging.getLogger(__name__)

EXTRACT_TEXT_PROMPT = (
    "Extract all visible text from this image in reading order. "
    "Return a JSON array of strings, one entry per line or text block. "
    "Return [] if the image contains no text."
)

ANALYZE_REGION_PROMPT = "请识别图中的主体是什么，只返回主体名称，不超过5个字，不要标点。"


def _require_image(params: Dict[str, Any], skill: str) -> str:
    image = params.get("imageData") or params.get("image") or params.get("sourceUrl")
    if not isinstance(image, str) or not image:
        raise error_handler.create_error(
            ErrorKind.VALIDATION, f"{skill} 缺少图片数据", context={"skill": skill}, retryable=False,
        )
    return image


async def extract_text(params: Dict[str, Any]) -> List[str]:
    image = _require_image(params, "extractText")
    text = await generate_json_text(VISION_MODEL, [data_url_part(image), EXTRACT_TEXT_PROMPT], temperature=0.1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("extractText returned non-JSON output: %s", text[:100])
        return []
    if isinstance(data, dict):
        data = data.get("texts") or data.get("text") or []
    if not isinstance(data, list):
        return []
    return [str(item).strip() for item in data if str(item).strip()]


async def analyze_region(params: Dict[str, Any]) -> str:
    image = _require_image(params, "analyzeRegion")
    prompt = params.get("prompt") or ANALYZE_REGION_PROMPT
    return await generate_text(VISION_MODEL, [data_url_part(image), prompt], temperature=0.2)
