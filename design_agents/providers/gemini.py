"""
Gemini image (Nano Banana) and video (Veo) providers.

Image:
- Aspect ratios outside the supported set are mapped to the nearest one
- "Nano Banana Pro" degrades to the Flash image model when the Pro model is
  overloaded or rate limited
- image_size only applies to the Pro model
- Returns a data:image/...;base64 URL, or None when the response has no image

Video:
- Start frame → first frame, end frame → last frame, otherwise up to three
  reference images (asset references)
- The long-running operation is polled every 5s for a bounded number of
  attempts; running out raises AGENT_TIMEOUT
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

from google import genai
from google.genai import types

from design_agents.config import (
    GEMINI_VIDEO_MAX_POLL_ATTEMPTS,
    GEMINI_VIDEO_POLL_INTERVAL_SECS,
    IMAGE_FLASH_MODEL,
    IMAGE_PRO_MODEL,
    VEO_FAST_MODEL,
    VEO_PRO_MODEL,
    get_api_key,
)
from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import data_url_part, get_genai_client, parse_data_url, to_data_url
from design_agents.providers.base import (
    ImageGenerationRequest,
    ImageProvider,
    VideoGenerationRequest,
    VideoProvider,
)

logger = logging.getLogger(__name__)

SUPPORTED_ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")
_ASPECT_RATIO_FALLBACKS = {
    "21:9": "16:9",
    "3:2": "16:9",
    "2:3": "9:16",
    "5:4": "4:3",
    "4:5": "3:4",
}
VIDEO_ASPECT_RATIOS = ("16:9", "9:16")
MAX_VIDEO_REFERENCE_IMAGES = 3


def normalize_aspect_ratio(aspect_ratio: Optional[str]) -> str:
    value = (aspect_ratio or "").strip()
    if value in SUPPORTED_ASPECT_RATIOS:
        return value
    return _ASPECT_RATIO_FALLBACKS.get(value, "1:1")


def _first_image_data_url(response: types.GenerateContentResponse) -> Optional[str]:
    for candidate in response.candidates or []:
        content = candidate.content
        for part in (content.parts if content else None) or []:
            inline = part.inline_data
            if inline is not None and inline.data:
                return to_data_url(inline.mime_type or "image/png", inline.data)
    return None


def _to_image(data_url: str) -> types.Image:
    mime_type, data = parse_data_url(data_url)
    return types.Image(image_bytes=data, mime_type=mime_type)


class GeminiImageProvider(ImageProvider):
    id = "gemini"
    name = "Google Gemini"
    models = {
        "Nano Banana Pro": IMAGE_PRO_MODEL,
        "Nano Banana": IMAGE_FLASH_MODEL,
    }

    def __init__(self, client_factory: Callable[[], genai.Client] = get_genai_client):
        self._client_factory = client_factory

    async def generate_image(self, request: ImageGenerationRequest, model: str) -> Optional[str]:
        primary = self.models.get(model, IMAGE_PRO_MODEL)
        chain = [primary]
        if primary == IMAGE_PRO_MODEL:
            chain.append(IMAGE_FLASH_MODEL)

        aspect_ratio = normalize_aspect_ratio(request.aspect_ratio)
        for index, model_id in enumerate(chain):
            image_size = request.image_size if model_id == IMAGE_PRO_MODEL else None
            try:
                return await self._generate(model_id, request.prompt, request.reference_image, aspect_ratio, image_size)
            except Exception as e:
                app_error = error_handler.classify(e, {"provider": self.id, "model": model_id})
                degradable = app_error.fallback_suggested or app_error.kind == ErrorKind.RATE_LIMITED
                if degradable and index + 1 < len(chain):
                    logger.warning("Image model %s unavailable (%s), falling back to %s",
                                   model_id, app_error.kind.value, chain[index + 1])
                    continue
                raise app_error from e
        return None

    async def edit_image(self, source: str, instruction: str, aspect_ratio: Optional[str] = None) -> Optional[str]:
        """Apply an instruction to an existing image (data URL in, data URL out)."""
        return await self._generate(
            IMAGE_PRO_MODEL,
            instruction,
            source,
            normalize_aspect_ratio(aspect_ratio) if aspect_ratio else None,
            None,
        )

    async def _generate(
        self,
        model_id: str,
        prompt: str,
        reference_image: Optional[str],
        aspect_ratio: Optional[str],
        image_size: Optional[str],
    ) -> Optional[str]:
        client = self._client_factory()
        contents: List[Any] = []
        if reference_image:
            contents.append(data_url_part(reference_image))
        contents.append(prompt)

        image_config = None
        if aspect_ratio or image_size:
            image_config = types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size)

        response = await client.aio.models.generate_content(
            model=model_id,
            contents=contents,
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                image_config=image_config,
            ),
        )
        url = _first_image_data_url(response)
        if url is None:
            logger.warning("Image model %s returned no image (prompt=%s)", model_id, prompt[:80])
        return url


class GeminiVideoProvider(VideoProvider):
    id = "gemini"
    name = "Google Veo"
    models = {
        "Veo 3.1": VEO_PRO_MODEL,
        "Veo 3.1 Fast": VEO_FAST_MODEL,
    }

    def __init__(
        self,
        client_factory: Callable[[], genai.Client] = get_genai_client,
        poll_interval: float = GEMINI_VIDEO_POLL_INTERVAL_SECS,
        max_poll_attempts: int = GEMINI_VIDEO_MAX_POLL_ATTEMPTS,
    ):
        self._client_factory = client_factory
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    async def generate_video(self, request: VideoGenerationRequest, model: str) -> Optional[str]:
        client = self._client_factory()
        model_id = self.models.get(model, VEO_FAST_MODEL)
        aspect_ratio = request.aspect_ratio if request.aspect_ratio in VIDEO_ASPECT_RATIOS else "16:9"

        config_kwargs = {
            "number_of_videos": 1,
            "aspect_ratio": aspect_ratio,
            "resolution": "720p",
        }
        image = None
        if request.start_frame:
            image = _to_image(request.start_frame)
            if request.end_frame:
                config_kwargs["last_frame"] = _to_image(request.end_frame)
        elif request.reference_images:
            config_kwargs["reference_images"] = [
                types.VideoGenerationReferenceImage(image=_to_image(ref), reference_type="ASSET")
                for ref in request.reference_images[:MAX_VIDEO_REFERENCE_IMAGES]
            ]

        operation = await client.aio.models.generate_videos(
            model=model_id,
            prompt=request.prompt,
            image=image,
            config=types.GenerateVideosConfig(**config_kwargs),
        )
        logger.info("Veo operation started: model=%s", model_id)

        attempts = 0
        while not operation.done:
            if attempts >= self.max_poll_attempts:
                raise error_handler.create_error(
                    ErrorKind.AGENT_TIMEOUT,
                    "视频生成超时",
                    context={"provider": self.id, "model": model_id, "attempts": attempts},
                )
            await asyncio.sleep(self.poll_interval)
            operation = await client.aio.operations.get(operation)
            attempts += 1

        if operation.error:
            raise error_handler.create_error(
                ErrorKind.GENERIC_API,
                f"视频生成失败: {operation.error}",
                context={"provider": self.id, "model": model_id},
                retryable=False,
            )

        videos = operation.response.generated_videos if operation.response else None
        if not videos or not videos[0].video or not videos[0].video.uri:
            logger.warning("Veo operation finished without a video (model=%s)", model_id)
            return None

        uri = videos[0].video.uri
        api_key = get_api_key()
        if not api_key:
            return uri
        separator = "&" if "?" in uri else "?"
        return f"{uri}{separator}key={api_key}"
