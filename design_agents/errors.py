"""
Error taxonomy, classification and retry for the design agent pipeline.

Every failure that crosses a component boundary is normalized into an
AppError. The kind decides retryability:

    NETWORK, RATE_LIMITED, SERVICE_OVERLOADED, GENERIC_API (5xx),
    AGENT_TIMEOUT, UNKNOWN                      → retried
    QUOTA_EXCEEDED, AUTH_FAILURE, VALIDATION,
    SKILL_NOT_FOUND, UNKNOWN_MODEL,
    PROVIDER_NOT_FOUND                          → surfaced immediately

Classification order: explicit status code (google-genai APIError.code,
httpx.HTTPStatusError), exception type, then message substrings.

All created/classified errors are kept in a bounded ring buffer for
diagnostics. Recording never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, TypeVar

import httpx

from design_agents.config import ERROR_LOG_MAX

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVICE_OVERLOADED = "service_overloaded"
    QUOTA_EXCEEDED = "quota_exceeded"
    AUTH_FAILURE = "auth_failure"
    GENERIC_API = "api"
    VALIDATION = "validation"
    AGENT_TIMEOUT = "agent_timeout"
    SKILL_NOT_FOUND = "skill_not_found"
    UNKNOWN_MODEL = "unknown_model"
    PROVIDER_NOT_FOUND = "provider_not_found"
    STORAGE = "storage"
    UNKNOWN = "unknown"


DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "网络连接失败，请检查网络设置后重试",
    ErrorKind.RATE_LIMITED: "请求过于频繁，请稍后重试",
    ErrorKind.SERVICE_OVERLOADED: "AI 服务繁忙，请稍后重试或切换其他模型",
    ErrorKind.QUOTA_EXCEEDED: "API 配额已用尽，请检查账户额度或更换 API 密钥",
    ErrorKind.AUTH_FAILURE: "API 密钥无效或无权限，请在设置中检查 API 密钥",
    ErrorKind.GENERIC_API: "AI 服务请求失败，请稍后重试",
    ErrorKind.VALIDATION: "输入内容有误，请检查后重试",
    ErrorKind.AGENT_TIMEOUT: "任务执行超时，请稍后重试",
    ErrorKind.SKILL_NOT_FOUND: "未找到对应的技能",
    ErrorKind.UNKNOWN_MODEL: "不支持的模型",
    ErrorKind.PROVIDER_NOT_FOUND: "未找到模型提供商",
    ErrorKind.STORAGE: "存储操作失败，请稍后重试",
    ErrorKind.UNKNOWN: "发生未知错误，请稍后重试",
}

RETRYABLE_KINDS = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVICE_OVERLOADED,
    ErrorKind.GENERIC_API,
    ErrorKind.AGENT_TIMEOUT,
    ErrorKind.STORAGE,
    ErrorKind.UNKNOWN,
})

_MESSAGE_ICONS: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "🌐",
    ErrorKind.RATE_LIMITED: "⏳",
    ErrorKind.SERVICE_OVERLOADED: "⏳",
    ErrorKind.QUOTA_EXCEEDED: "💳",
    ErrorKind.AUTH_FAILURE: "🔑",
    ErrorKind.GENERIC_API: "⚠️",
    ErrorKind.VALIDATION: "📝",
    ErrorKind.AGENT_TIMEOUT: "🤖",
    ErrorKind.SKILL_NOT_FOUND: "🛠️",
    ErrorKind.UNKNOWN_MODEL: "🛠️",
    ErrorKind.PROVIDER_NOT_FOUND: "🛠️",
    ErrorKind.STORAGE: "💾",
    ErrorKind.UNKNOWN: "❌",
}

# Substring rules, checked in order against the lower-cased message
_MESSAGE_RULES = [
    (ErrorKind.AUTH_FAILURE, ("api key not valid", "api_key_invalid", "invalid api key", "api key",
                              "unauthorized", "permission denied", "permission_denied", "401", "403")),
    (ErrorKind.QUOTA_EXCEEDED, ("quota", "billing", "exceeded your current")),
    (ErrorKind.RATE_LIMITED, ("429", "rate limit", "too many requests", "resource_exhausted")),
    (ErrorKind.SERVICE_OVERLOADED, ("503", "overloaded", "service unavailable", "unavailable")),
    (ErrorKind.NETWORK, ("fetch", "network", "connection", "econnreset", "socket")),
    (ErrorKind.AGENT_TIMEOUT, ("timed out", "timeout", "超时")),
    (ErrorKind.VALIDATION, ("validat", "invalid")),
    (ErrorKind.GENERIC_API, ("api", "500", "502", "504", "internal")),
]


class AppError(Exception):
    """Normalized pipeline error."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
        fallback_suggested: bool = False,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.original_error = original_error
        self.context = dict(context or {})
        self.retryable = kind in RETRYABLE_KINDS if retryable is None else retryable
        self.fallback_suggested = fallback_suggested
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "retryable": self.retryable,
            "fallback_suggested": self.fallback_suggested,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"AppError(kind={self.kind.value!r}, message={self.message!r}, retryable={self.retryable})"


def _status_code(error: BaseException) -> Optional[int]:
    """Pull an HTTP status code off SDK / httpx exceptions."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    for attr in ("code", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and 100 <= value < 600:
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


class ErrorHandler:
    """Classifies failures, keeps a bounded error log, and runs retry loops."""

    def __init__(self, max_log_size: int = ERROR_LOG_MAX):
        self._log: Deque[AppError] = deque(maxlen=max_log_size)

    # ------------------------------------------------------------------
    # Creation / classification
    # ------------------------------------------------------------------

    def create_error(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
        fallback_suggested: bool = False,
    ) -> AppError:
        error = AppError(
            kind=kind,
            message=message or DEFAULT_MESSAGES[kind],
            original_error=original_error,
            context=context,
            retryable=retryable,
            fallback_suggested=fallback_suggested,
        )
        self._record(error)
        return error

    def classify(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> AppError:
        """Map any exception onto an AppError. AppErrors pass through unchanged."""
        if isinstance(error, AppError):
            return error

        kind = self._kind_for(error)
        return self.create_error(
            kind,
            original_error=error,
            context=context,
            fallback_suggested=kind == ErrorKind.SERVICE_OVERLOADED,
            retryable=self._retryable_for(kind, error),
        )

    @staticmethod
    def _kind_for(error: BaseException) -> ErrorKind:
        status = _status_code(error)
        text = str(error).lower()
        if status is not None:
            if status in (401, 403):
                return ErrorKind.AUTH_FAILURE
            if status == 429:
                return ErrorKind.QUOTA_EXCEEDED if ("quota" in text or "billing" in text) else ErrorKind.RATE_LIMITED
            if status == 503:
                return ErrorKind.SERVICE_OVERLOADED
            if status == 400 and "api key" in text:
                return ErrorKind.AUTH_FAILURE
            if status >= 400:
                return ErrorKind.GENERIC_API

        if isinstance(error, asyncio.TimeoutError):
            return ErrorKind.AGENT_TIMEOUT
        if isinstance(error, httpx.TimeoutException):
            return ErrorKind.NETWORK
        if isinstance(error, (httpx.TransportError, ConnectionError)):
            return ErrorKind.NETWORK

        for kind, needles in _MESSAGE_RULES:
            if any(needle in text for needle in needles):
                return kind
        return ErrorKind.UNKNOWN

    @staticmethod
    def _retryable_for(kind: ErrorKind, error: BaseException) -> bool:
        if kind == ErrorKind.GENERIC_API:
            # Client-side 4xx won't succeed on retry
            status = _status_code(error)
            return status is None or status >= 500
        return kind in RETRYABLE_KINDS

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int = 3,
        delay: float = 1.0,
        backoff: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run `operation` up to 1 + max_retries times.

        Non-retryable errors propagate after the first attempt. The wait
        before retry k (0-based) is delay * 2**k with backoff, else delay.
        Raises the classified AppError of the last failure.
        """
        for attempt in range(max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                app_error = self.classify(e, context)
                if not app_error.retryable or attempt >= max_retries:
                    if app_error is e:
                        raise
                    raise app_error from e
                wait = delay * (2 ** attempt) if backoff else delay
                logger.warning(
                    "Attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt + 1, max_retries + 1, app_error.kind.value, wait,
                )
                await asyncio.sleep(wait)
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Log
    # ------------------------------------------------------------------

    def _record(self, error: AppError) -> None:
        try:
            self._log.append(error)
            logger.warning("AppError [%s]: %s (%s)", error.kind.value, error.message, error.original_error)
        except Exception:  # noqa: BLE001
            pass

    def get_error_log(self) -> List[AppError]:
        return list(self._log)

    def clear_error_log(self) -> None:
        self._log.clear()

    @staticmethod
    def get_error_message(error: BaseException) -> str:
        """Chat-ready message with a per-kind icon."""
        if isinstance(error, AppError):
            return f"{_MESSAGE_ICONS.get(error.kind, '❌')} {error.message}"
        return f"{_MESSAGE_ICONS[ErrorKind.UNKNOWN]} {DEFAULT_MESSAGES[ErrorKind.UNKNOWN]}"


# Process-wide handler
error_handler = ErrorHandler()
