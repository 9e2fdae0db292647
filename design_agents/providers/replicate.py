"""
Replicate image provider (Flux Schnell, SDXL).

Flow: create prediction → poll every 2s (max 60 polls) → download the first
output URL and return it as a data URL. Failed/canceled predictions return
None; running out of polls raises AGENT_TIMEOUT.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from design_agents.config import (
    HTTP_TIMEOUT_SECS,
    REPLICATE_BASE_URL,
    REPLICATE_MAX_POLL_ATTEMPTS,
    REPLICATE_POLL_INTERVAL_SECS,
    get_replicate_api_key,
)
from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import to_data_url
from design_agents.libs.http import AsyncHttpClient
from design_agents.providers.base import ImageGenerationRequest, ImageProvider

logger = logging.getLogger(__name__)

# Aspect ratio → (width, height) for models that take explicit dimensions
ASPECT_RATIO_MAP: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "16:9": (1344, 768),
    "9:16": (768, 1344),
    "4:3": (1152, 896),
    "3:4": (896, 1152),
}

MODEL_VERSIONS = {
    "flux-schnell": "black-forest-labs/flux-schnell",
    "sdxl": "stability-ai/sdxl:39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
}

_TERMINAL_FAILURES = ("failed", "canceled")


class ReplicateImageProvider(ImageProvider):
    id = "replicate"
    name = "Replicate"
    models = {
        "Flux Schnell": "flux-schnell",
        "SDXL": "sdxl",
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = REPLICATE_POLL_INTERVAL_SECS,
        max_poll_attempts: int = REPLICATE_MAX_POLL_ATTEMPTS,
    ):
        self._api_key = api_key
        self._transport = transport
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    def _http(self) -> AsyncHttpClient:
        api_key = self._api_key or get_replicate_api_key()
        if not api_key:
            raise error_handler.create_error(
                ErrorKind.AUTH_FAILURE,
                "Replicate API 密钥未配置，请在设置中填写",
                context={"provider": self.id},
                retryable=False,
            )
        return AsyncHttpClient(
            base_url=REPLICATE_BASE_URL,
            bearer_token=api_key,
            timeout_seconds=HTTP_TIMEOUT_SECS,
            transport=self._transport,
        )

    def _build_input(self, model_key: str, request: ImageGenerationRequest) -> Dict[str, Any]:
        if model_key == "flux-schnell":
            aspect_ratio = request.aspect_ratio if request.aspect_ratio in ASPECT_RATIO_MAP else "1:1"
            return {
                "prompt": request.prompt,
                "aspect_ratio": aspect_ratio,
                "num_outputs": 1,
                "go_fast": True,
            }
        width, height = ASPECT_RATIO_MAP.get(request.aspect_ratio, ASPECT_RATIO_MAP["1:1"])
        payload: Dict[str, Any] = {
            "prompt": request.prompt,
            "width": width,
            "height": height,
            "num_inference_steps": 30,
            "guidance_scale": 7.5,
        }
        if request.reference_image:
            payload["image"] = request.reference_image
        return payload

    async def generate_image(self, request: ImageGenerationRequest, model: str) -> Optional[str]:
        model_key = self.models.get(model, "flux-schnell")
        version = MODEL_VERSIONS[model_key]
        http = self._http()
        body = {"input": self._build_input(model_key, request)}

        if ":" in version:
            body["version"] = version.split(":", 1)[1]
            prediction = await http.post("/predictions", body)
        else:
            prediction = await http.post(f"/models/{version}/predictions", body)
        logger.info("Replicate prediction created: id=%s model=%s", prediction.get("id"), model_key)

        prediction = await self._wait(http, prediction)
        if prediction.get("status") != "succeeded":
            logger.warning("Replicate prediction %s ended %s: %s",
                           prediction.get("id"), prediction.get("status"), prediction.get("error"))
            return None

        output = prediction.get("output")
        url = output[0] if isinstance(output, list) and output else output
        if not isinstance(url, str) or not url:
            logger.warning("Replicate prediction %s has no output", prediction.get("id"))
            return None

        resp = await http.download(url)
        mime_type = resp.headers.get("Content-Type", "image/png").split(";")[0]
        return to_data_url(mime_type, resp.content)

    async def _wait(self, http: AsyncHttpClient, prediction: Dict[str, Any]) -> Dict[str, Any]:
        attempts = 0
        while prediction.get("status") not in ("succeeded",) + _TERMINAL_FAILURES:
            if attempts >= self.max_poll_attempts:
                raise error_handler.create_error(
                    ErrorKind.AGENT_TIMEOUT,
                    "图像生成超时",
                    context={"provider": self.id, "prediction": prediction.get("id")},
                )
            await asyncio.sleep(self.poll_interval)
            poll_url = (prediction.get("urls") or {}).get("get") or f"/predictions/{prediction.get('id')}"
            prediction = await http.get(poll_url)
            attempts += 1
        return prediction
