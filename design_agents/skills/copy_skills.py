"""generateCopy: marketing copy variations as a list of strings."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from design_agents.config import COPY_MODEL
from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import generate_json_text

logger = logging.getLogger(__name__)

DEFAULT_VARIATIONS = 3
MAX_VARIATIONS = 10


def build_copy_prompt(topic: str, count: int, tone: str, platform: str, language: str) -> str:
    lines = [
        f"Write {count} distinct marketing copy variations.",
        f"Topic: {topic}",
    ]
    if tone:
        lines.append(f"Tone: {tone}")
    if platform:
        lines.append(f"Platform: {platform}")
    lines.append(f"Language: {language}")
    lines.append(f"Return a JSON array of exactly {count} strings, nothing else.")
    return "\n".join(lines)


async def generate_copy(params: Dict[str, Any]) -> List[str]:
    topic = params.get("topic") or params.get("prompt") or params.get("product")
    if not isinstance(topic, str) or not topic.strip():
        raise error_handler.create_error(
            ErrorKind.VALIDATION, "generateCopy 缺少 topic 参数", context={"skill": "generateCopy"}, retryable=False,
        )
    try:
        count = int(params.get("count") or DEFAULT_VARIATIONS)
    except (TypeError, ValueError):
        count = DEFAULT_VARIATIONS
    count = max(1, min(count, MAX_VARIATIONS))

    prompt = build_copy_prompt(
        topic.strip(),
        count,
        params.get("tone") or "",
        params.get("platform") or "",
        params.get("language") or "中文",
    )
    text = await generate_json_text(COPY_MODEL, [prompt], temperature=0.9)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("generateCopy returned non-JSON output: %s", text[:100])
        return []
    if isinstance(data, dict):
        data = data.get("variations") or data.get("copies") or []
    return [str(item) for item in data if item] if isinstance(data, list) else []
