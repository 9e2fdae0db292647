"""
smartEdit: template-driven image edits.

The edit type selects an English instruction template; placeholders are
filled from params (falling back to neutral defaults), an optional free-form
`instruction` is appended, and the result goes to the edit provider.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import is_data_url
from design_agents.providers import edit_image_with_provider

logger = logging.getLogger(__name__)

EDIT_TEMPLATES: Dict[str, str] = {
    "background-remove": "Remove all background, keep the main subject on a transparent background.",
    "object-remove": "Erase {object} from the image naturally.",
    "upscale": "Upscale and enhance details of this image.",
    "style-transfer": "Transform this image into {style} style.",
    "extend": "Extend the image boundaries {direction}.",
    "recolor": "Change the color of {target} to {color}, keep everything else unchanged.",
    "replace": "Replace {target} with {replacement}, matching lighting and perspective.",
}

_PLACEHOLDER_DEFAULTS = {
    "object": "the marked object",
    "style": "artistic",
    "direction": "outward",
    "target": "the main subject",
    "color": "the requested color",
    "replacement": "the requested object",
}


def build_edit_instruction(edit_type: str, params: Dict[str, Any]) -> str:
    template = EDIT_TEMPLATES.get(edit_type)
    if template is None:
        raise error_handler.create_error(
            ErrorKind.VALIDATION,
            f"不支持的编辑类型: {edit_type}",
            context={"skill": "smartEdit", "editType": edit_type},
            retryable=False,
        )
    # Planners may nest placeholder values under "parameters"
    nested = params.get("parameters")
    lookup = {**params, **nested} if isinstance(nested, dict) else params
    values = {key: lookup.get(key) or default for key, default in _PLACEHOLDER_DEFAULTS.items()}
    instruction = template.format(**values)
    extra = lookup.get("instruction")
    if isinstance(extra, str) and extra.strip():
        instruction = f"{instruction} {extra.strip()}"
    return instruction


async def smart_edit(params: Dict[str, Any]) -> Optional[str]:
    source = params.get("sourceUrl") or params.get("imageData")
    if not is_data_url(source):
        raise error_handler.create_error(
            ErrorKind.VALIDATION,
            "smartEdit 需要 base64 图片数据",
            context={"skill": "smartEdit"},
            retryable=False,
        )
    edit_type = params.get("editType") or ""
    instruction = build_edit_instruction(edit_type, params)
    logger.info("smartEdit: type=%s", edit_type)
    return await edit_image_with_provider(source, instruction, params.get("aspectRatio"))
