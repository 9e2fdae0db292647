"""
Provider registry: display model name → provider id → provider instance.

    generate_image_with_provider(request, "Flux Schnell")
        → IMAGE_MODEL_PROVIDERS["Flux Schnell"] == "replicate"
        → ReplicateImageProvider.generate_image(request, "Flux Schnell")

Unknown model names raise UNKNOWN_MODEL; a mapped id with no registered
provider raises PROVIDER_NOT_FOUND. Both are non-retryable.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from design_agents.errors import ErrorKind, error_handler
from design_agents.providers.base import (
    ImageGenerationRequest,
    ImageProvider,
    VideoGenerationRequest,
    VideoProvider,
)
from design_agents.providers.gemini import GeminiImageProvider, GeminiVideoProvider
from design_agents.providers.kling import KlingVideoProvider
from design_agents.providers.replicate import ReplicateImageProvider

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "Nano Banana Pro"
DEFAULT_VIDEO_MODEL = "Veo 3.1 Fast"
EDIT_MODEL = "Nano Banana Pro"

_DEFAULT_IMAGE_MODELS = {
    "Nano Banana": "gemini",
    "Nano Banana Pro": "gemini",
    "Flux Schnell": "replicate",
    "SDXL": "replicate",
}
_DEFAULT_VIDEO_MODELS = {
    "Veo 3.1": "gemini",
    "Veo 3.1 Fast": "gemini",
    "Kling Standard": "kling",
    "Kling Pro": "kling",
}

IMAGE_MODEL_PROVIDERS: Dict[str, str] = {}
VIDEO_MODEL_PROVIDERS: Dict[str, str] = {}
_image_providers: Dict[str, ImageProvider] = {}
_video_providers: Dict[str, VideoProvider] = {}


def reset_providers() -> None:
    """Restore the built-in model table and provider instances."""
    IMAGE_MODEL_PROVIDERS.clear()
    IMAGE_MODEL_PROVIDERS.update(_DEFAULT_IMAGE_MODELS)
    VIDEO_MODEL_PROVIDERS.clear()
    VIDEO_MODEL_PROVIDERS.update(_DEFAULT_VIDEO_MODELS)
    _image_providers.clear()
    _video_providers.clear()
    for image_provider in (GeminiImageProvider(), ReplicateImageProvider()):
        _image_providers[image_provider.id] = image_provider
    for video_provider in (GeminiVideoProvider(), KlingVideoProvider()):
        _video_providers[video_provider.id] = video_provider


def register_image_provider(provider: ImageProvider, models: Optional[List[str]] = None) -> None:
    _image_providers[provider.id] = provider
    for model in models if models is not None else list(provider.models):
        IMAGE_MODEL_PROVIDERS[model] = provider.id


def register_video_provider(provider: VideoProvider, models: Optional[List[str]] = None) -> None:
    _video_providers[provider.id] = provider
    for model in models if models is not None else list(provider.models):
        VIDEO_MODEL_PROVIDERS[model] = provider.id


def unregister_provider(provider_id: str) -> None:
    _image_providers.pop(provider_id, None)
    _video_providers.pop(provider_id, None)


def get_image_provider(model: str) -> ImageProvider:
    provider_id = IMAGE_MODEL_PROVIDERS.get(model)
    if provider_id is None:
        raise error_handler.create_error(ErrorKind.UNKNOWN_MODEL, f"未知图像模型: {model}", retryable=False)
    provider = _image_providers.get(provider_id)
    if provider is None:
        raise error_handler.create_error(ErrorKind.PROVIDER_NOT_FOUND, f"未找到提供商: {provider_id}", retryable=False)
    return provider


def get_video_provider(model: str) -> VideoProvider:
    provider_id = VIDEO_MODEL_PROVIDERS.get(model)
    if provider_id is None:
        raise error_handler.create_error(ErrorKind.UNKNOWN_MODEL, f"未知视频模型: {model}", retryable=False)
    provider = _video_providers.get(provider_id)
    if provider is None:
        raise error_handler.create_error(ErrorKind.PROVIDER_NOT_FOUND, f"未找到提供商: {provider_id}", retryable=False)
    return provider


async def generate_image_with_provider(request: ImageGenerationRequest, model: str) -> Optional[str]:
    provider = get_image_provider(model)
    logger.info("Generating image: model=%s provider=%s", model, provider.id)
    return await provider.generate_image(request, model)


async def generate_video_with_provider(request: VideoGenerationRequest, model: str) -> Optional[str]:
    provider = get_video_provider(model)
    logger.info("Generating video: model=%s provider=%s", model, provider.id)
    return await provider.generate_video(request, model)


async def edit_image_with_provider(source: str, instruction: str, aspect_ratio: Optional[str] = None) -> Optional[str]:
    provider = get_image_provider(EDIT_MODEL)
    edit = getattr(provider, "edit_image", None)
    if edit is None:
        raise error_handler.create_error(
            ErrorKind.PROVIDER_NOT_FOUND, f"提供商不支持图像编辑: {provider.id}", retryable=False,
        )
    logger.info("Editing image: provider=%s", provider.id)
    return await edit(source, instruction, aspect_ratio)


def get_available_image_models() -> List[str]:
    return [m for m, pid in IMAGE_MODEL_PROVIDERS.items() if pid in _image_providers]


def get_available_video_models() -> List[str]:
    return [m for m, pid in VIDEO_MODEL_PROVIDERS.items() if pid in _video_providers]


reset_providers()

__all__ = [
    "ImageGenerationRequest",
    "VideoGenerationRequest",
    "ImageProvider",
    "VideoProvider",
    "DEFAULT_IMAGE_MODEL",
    "DEFAULT_VIDEO_MODEL",
    "generate_image_with_provider",
    "generate_video_with_provider",
    "edit_image_with_provider",
    "get_image_provider",
    "get_video_provider",
    "get_available_image_models",
    "get_available_video_models",
    "register_image_provider",
    "register_video_provider",
    "unregister_provider",
    "reset_providers",
]
