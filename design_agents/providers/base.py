"""Provider contracts.

A provider returns a URL (data URL or remote URL) on success, None on a soft
failure (the model produced nothing usable), and raises on hard failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class ImageGenerationRequest:
    prompt: str
    aspect_ratio: str = "1:1"
    image_size: Optional[str] = None  # "1K" | "2K" | "4K"
    reference_image: Optional[str] = None  # data URL


@dataclass
class VideoGenerationRequest:
    prompt: str
    aspect_ratio: str = "16:9"
    start_frame: Optional[str] = None  # data URL
    end_frame: Optional[str] = None  # data URL
    reference_images: List[str] = field(default_factory=list)


class ImageProvider(ABC):
    id: str = ""
    name: str = ""
    # Display model name → provider-side model id
    models: Dict[str, str] = {}

    @abstractmethod
    async def generate_image(self, request: ImageGenerationRequest, model: str) -> Optional[str]:
        ...


class VideoProvider(ABC):
    id: str = ""
    name: str = ""
    models: Dict[str, str] = {}

    @abstractmethod
    async def generate_video(self, request: VideoGenerationRequest, model: str) -> Optional[str]:
        ...
