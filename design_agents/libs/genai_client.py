"""Shared google-genai client and JSON-mode call helpers.

The client is a lazy singleton, rebuilt whenever the configured API key or
base URL changes (settings can be edited while the app runs).
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, List, Optional, Tuple

from google import genai
from google.genai import types
from google.genai.types import GenerateContentConfig

from design_agents.config import get_api_base_url, get_api_key
from design_agents.errors import ErrorKind, error_handler

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(.+?);base64,(.+)$", re.S)

# Singleton GenAI client, keyed by the settings it was built from
_client: Optional[genai.Client] = None
_client_settings: Optional[Tuple[str, Optional[str]]] = None


def get_genai_client() -> genai.Client:
    """Get or create the GenAI client. Raises AppError(AUTH_FAILURE) without a key."""
    global _client, _client_settings
    api_key = get_api_key()
    if not api_key:
        raise error_handler.create_error(
            ErrorKind.AUTH_FAILURE,
            "API 密钥未配置，请在设置中填写 API 密钥",
            retryable=False,
        )
    settings = (api_key, get_api_base_url())
    if _client is None or _client_settings != settings:
        base_url = settings[1]
        http_options = types.HttpOptions(base_url=base_url) if base_url else None
        _client = genai.Client(api_key=api_key, http_options=http_options)
        _client_settings = settings
        logger.info("GenAI client initialized (base_url=%s)", base_url or "default")
    return _client


def reset_genai_client() -> None:
    global _client, _client_settings
    _client = None
    _client_settings = None


# ============================================================================
# Data URLs
# ============================================================================

def is_data_url(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATA_URL_RE.match(value))


def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a base64 data URL into (mime_type, bytes)."""
    match = _DATA_URL_RE.match(data_url or "")
    if not match:
        raise error_handler.create_error(ErrorKind.VALIDATION, "图片数据格式无效，需要 base64 data URL")
    return match.group(1), base64.b64decode(match.group(2))


def to_data_url(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def data_url_part(data_url: str) -> types.Part:
    mime_type, data = parse_data_url(data_url)
    return types.Part.from_bytes(data=data, mime_type=mime_type)


# ============================================================================
# Calls
# ============================================================================

def _check_truncation(response: types.GenerateContentResponse, model: str) -> None:
    finish_reason = None
    if response.candidates:
        finish_reason = response.candidates[0].finish_reason
    if finish_reason and "MAX_TOKENS" in str(finish_reason):
        logger.error("LLM response truncated (MAX_TOKENS), model=%s", model)
        raise ValueError("LLM response was truncated (MAX_TOKENS)")


async def generate_json_text(model: str, contents: List[Any], temperature: float = 0.2) -> str:
    """
    Call the model in JSON mode and return the raw response text.

    Raises:
        AppError: no API key configured
        ValueError: empty or truncated response
    """
    client = get_genai_client()
    response = await client.aio.models.generate_content(
        model=model,
        contents=contents,
        config=GenerateContentConfig(
            temperature=temperature,
            response_mime_type="application/json",
        ),
    )
    _check_truncation(response, model)
    text = (response.text or "").strip()
    if not text:
        raise ValueError("LLM response contained no text")
    logger.debug("LLM call succeeded, model=%s, %d chars", model, len(text))
    return text


async def generate_text(model: str, contents: List[Any], temperature: float = 0.4) -> str:
    client = get_genai_client()
    response = await client.aio.models.generate_content(
        model=model,
        contents=contents,
        config=GenerateContentConfig(temperature=temperature),
    )
    _check_truncation(response, model)
    return (response.text or "").strip()
