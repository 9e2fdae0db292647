"""
Generation skills: generateImage, generateVideo.

Both accept the camelCase params dict a plan produces, fold brand context
(palette, style) into the prompt, and delegate to the provider registry by
display model name. A None return is a soft failure (no asset).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from design_agents.errors import ErrorKind, error_handler
from design_agents.providers import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_VIDEO_MODEL,
    ImageGenerationRequest,
    VideoGenerationRequest,
    generate_image_with_provider,
    generate_video_with_provider,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SIZE = "2K"


def augment_prompt(prompt: str, brand_context: Optional[Dict[str, Any]]) -> str:
    """Append brand palette and style hints to a generation prompt."""
    if not brand_context:
        return prompt
    colors = [c for c in brand_context.get("colors") or [] if c]
    if colors:
        prompt += f", color palette: {', '.join(colors)}"
    style = brand_context.get("style")
    if style:
        prompt += f", style: {style}"
    return prompt


def _require_prompt(params: Dict[str, Any], skill: str) -> str:
    prompt = params.get("prompt") or params.get("description")
    if not isinstance(prompt, str) or not prompt.strip():
        raise error_handler.create_error(
            ErrorKind.VALIDATION, f"{skill} 缺少 prompt 参数", context={"skill": skill}, retryable=False,
        )
    return prompt.strip()


@dataclass
class ImageGenParams:
    prompt: str
    model: str = DEFAULT_IMAGE_MODEL
    aspect_ratio: str = "1:1"
    image_size: str = DEFAULT_IMAGE_SIZE
    reference_image: Optional[str] = None
    brand_context: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "ImageGenParams":
        return cls(
            prompt=_require_prompt(params, "generateImage"),
            model=params.get("model") or DEFAULT_IMAGE_MODEL,
            aspect_ratio=params.get("aspectRatio") or "1:1",
            image_size=params.get("imageSize") or DEFAULT_IMAGE_SIZE,
            reference_image=params.get("referenceImage"),
            brand_context=params.get("brandContext"),
        )


@dataclass
class VideoGenParams:
    prompt: str
    model: str = DEFAULT_VIDEO_MODEL
    aspect_ratio: str = "16:9"
    start_frame: Optional[str] = None
    end_frame: Optional[str] = None
    reference_images: List[str] = field(default_factory=list)
    brand_context: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "VideoGenParams":
        references = params.get("referenceImages") or []
        if not references and params.get("referenceImage"):
            references = [params["referenceImage"]]
        return cls(
            prompt=_require_prompt(params, "generateVideo"),
            model=params.get("model") or DEFAULT_VIDEO_MODEL,
            aspect_ratio=params.get("aspectRatio") or "16:9",
            start_frame=params.get("startFrame"),
            end_frame=params.get("endFrame"),
            reference_images=[r for r in references if isinstance(r, str)],
            brand_context=params.get("brandContext"),
        )


async def generate_image(params: Dict[str, Any]) -> Optional[str]:
    p = ImageGenParams.from_dict(params)
    request = ImageGenerationRequest(
        prompt=augment_prompt(p.prompt, p.brand_context),
        aspect_ratio=p.aspect_ratio,
        image_size=p.image_size,
        reference_image=p.reference_image,
    )
    return await generate_image_with_provider(request, p.model)


async def generate_video(params: Dict[str, Any]) -> Optional[str]:
    p = VideoGenParams.from_dict(params)
    request = VideoGenerationRequest(
        prompt=augment_prompt(p.prompt, p.brand_context),
        aspect_ratio=p.aspect_ratio,
        start_frame=p.start_frame,
        end_frame=p.end_frame,
        reference_images=p.reference_images,
    )
    return await generate_video_with_provider(request, p.model)
