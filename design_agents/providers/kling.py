"""Kling video provider (text2video / image2video with task polling)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from design_agents.config import (
    HTTP_TIMEOUT_SECS,
    KLING_BASE_URL,
    KLING_MAX_POLL_ATTEMPTS,
    KLING_POLL_INTERVAL_SECS,
    get_kling_api_key,
)
from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import parse_data_url
from design_agents.libs.http import AsyncHttpClient
from design_agents.providers.base import VideoGenerationRequest, VideoProvider

logger = logging.getLogger(__name__)

DEFAULT_DURATION = "5"


def _raw_base64(data_url: str) -> str:
    """Kling wants bare base64 without the data: prefix."""
    return data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url


class KlingVideoProvider(VideoProvider):
    id = "kling"
    name = "Kling AI"
    models = {
        "Kling Standard": "kling-v1",
        "Kling Pro": "kling-v1-5",
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = KLING_POLL_INTERVAL_SECS,
        max_poll_attempts: int = KLING_MAX_POLL_ATTEMPTS,
    ):
        self._api_key = api_key
        self._transport = transport
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    def _http(self) -> AsyncHttpClient:
        api_key = self._api_key or get_kling_api_key()
        if not api_key:
            raise error_handler.create_error(
                ErrorKind.AUTH_FAILURE,
                "Kling API 密钥未配置，请在设置中填写",
                context={"provider": self.id},
                retryable=False,
            )
        return AsyncHttpClient(
            base_url=KLING_BASE_URL,
            bearer_token=api_key,
            timeout_seconds=HTTP_TIMEOUT_SECS,
            transport=self._transport,
        )

    async def generate_video(self, request: VideoGenerationRequest, model: str) -> Optional[str]:
        http = self._http()
        body: Dict[str, Any] = {
            "model_name": self.models.get(model, "kling-v1"),
            "prompt": request.prompt,
            "duration": DEFAULT_DURATION,
            "aspect_ratio": "9:16" if request.aspect_ratio == "9:16" else "16:9",
        }
        if request.start_frame:
            parse_data_url(request.start_frame)  # validates format
            endpoint = "/videos/image2video"
            body["image"] = _raw_base64(request.start_frame)
            if request.end_frame:
                body["image_tail"] = _raw_base64(request.end_frame)
        else:
            endpoint = "/videos/text2video"

        created = await http.post(endpoint, body)
        task_id = (created.get("data") or {}).get("task_id")
        if not task_id:
            raise error_handler.create_error(
                ErrorKind.GENERIC_API,
                f"Kling 任务创建失败: {created.get('message') or created}",
                context={"provider": self.id},
                retryable=False,
            )
        logger.info("Kling task created: id=%s endpoint=%s", task_id, endpoint)

        for _ in range(self.max_poll_attempts):
            await asyncio.sleep(self.poll_interval)
            data = (await http.get(f"{endpoint}/{task_id}")).get("data") or {}
            status = data.get("task_status")
            if status == "succeed":
                videos = (data.get("task_result") or {}).get("videos") or []
                url = videos[0].get("url") if videos else None
                if not url:
                    logger.warning("Kling task %s succeeded without a video", task_id)
                return url
            if status == "failed":
                logger.warning("Kling task %s failed: %s", task_id, data.get("task_status_msg"))
                return None

        raise error_handler.create_error(
            ErrorKind.AGENT_TIMEOUT,
            "视频生成超时",
            context={"provider": self.id, "task_id": task_id},
        )
