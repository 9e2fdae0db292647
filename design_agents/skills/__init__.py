"""
Skill registry.

Skills are async callables taking the params dict from a plan:
    generateImage, generateVideo, extractText, analyzeRegion,
    generateCopy, smartEdit, export

execute_skill() looks names up exactly; planners that emit variant spellings
("generate_image", "imageGen", "ocr", ...) go through resolve_skill_name()
first.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict

from design_agents.errors import ErrorKind, error_handler
from design_agents.skills.copy_skills import generate_copy
from design_agents.skills.edit_skills import EDIT_TEMPLATES, smart_edit
from design_agents.skills.export_skills import export
from design_agents.skills.generation_skills import augment_prompt, generate_image, generate_video
from design_agents.skills.vision_skills import analyze_region, extract_text

logger = logging.getLogger(__name__)

SkillFn = Callable[[Dict[str, Any]], Awaitable[Any]]

AVAILABLE_SKILLS: Dict[str, SkillFn] = {
    "generateImage": generate_image,
    "generateVideo": generate_video,
    "extractText": extract_text,
    "analyzeRegion": analyze_region,
    "generateCopy": generate_copy,
    "smartEdit": smart_edit,
    "export": export,
}

# Skills whose string result is a generated media URL
MEDIA_SKILLS = {
    "generateImage": "image",
    "smartEdit": "image",
    "generateVideo": "video",
}

# Keys are compared after lower-casing and dropping "_", "-" and spaces
SKILL_ALIASES: Dict[str, str] = {
    "imagegen": "generateImage",
    "imagegeneration": "generateImage",
    "texttoimage": "generateImage",
    "text2image": "generateImage",
    "createimage": "generateImage",
    "generatepicture": "generateImage",
    "videogen": "generateVideo",
    "videogeneration": "generateVideo",
    "texttovideo": "generateVideo",
    "text2video": "generateVideo",
    "createvideo": "generateVideo",
    "ocr": "extractText",
    "textextraction": "extractText",
    "regionanalysis": "analyzeRegion",
    "describeregion": "analyzeRegion",
    "copygen": "generateCopy",
    "copywriting": "generateCopy",
    "writecopy": "generateCopy",
    "editimage": "smartEdit",
    "imageedit": "smartEdit",
    "exportcanvas": "export",
}
SKILL_ALIASES.update({name.lower(): name for name in AVAILABLE_SKILLS})

_SEPARATORS = re.compile(r"[\s_\-]+")


def resolve_skill_name(name: str) -> str:
    """Canonical skill name for a planner-emitted name; unknown names pass through."""
    if name in AVAILABLE_SKILLS:
        return name
    key = _SEPARATORS.sub("", name or "").lower()
    return SKILL_ALIASES.get(key, name)


async def execute_skill(name: str, params: Dict[str, Any]) -> Any:
    skill = AVAILABLE_SKILLS.get(name)
    if skill is None:
        raise error_handler.create_error(
            ErrorKind.SKILL_NOT_FOUND, f"Skill {name} not found", context={"skill": name}, retryable=False,
        )
    logger.info("Executing skill: %s", name)
    return await skill(params)


__all__ = [
    "AVAILABLE_SKILLS",
    "MEDIA_SKILLS",
    "SKILL_ALIASES",
    "EDIT_TEMPLATES",
    "SkillFn",
    "execute_skill",
    "resolve_skill_name",
    "augment_prompt",
    "generate_image",
    "generate_video",
    "extract_text",
    "analyze_region",
    "generate_copy",
    "smart_edit",
    "export",
]
