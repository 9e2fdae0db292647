"""
Error classification and retry tests.

Usage:
    python -m pytest tests/test_errors.py -v
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from design_agents.errors import AppError, ErrorHandler, ErrorKind, error_handler


def _status_error(status: int, text: str = "") -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://example.test/v1")
    response = httpx.Response(status, request=request, text=text)
    return httpx.HTTPStatusError(f"HTTP {status}: {text}", request=request, response=response)


class _SdkError(Exception):
    """Shape of an SDK error carrying a numeric `code`."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code


# ============================================================================
# 1. CLASSIFICATION
# ============================================================================

class TestClassification:

    @pytest.mark.parametrize("status,text,kind", [
        (401, "", ErrorKind.AUTH_FAILURE),
        (403, "forbidden", ErrorKind.AUTH_FAILURE),
        (429, "slow down", ErrorKind.RATE_LIMITED),
        (429, "You exceeded your current quota", ErrorKind.QUOTA_EXCEEDED),
        (503, "", ErrorKind.SERVICE_OVERLOADED),
        (400, "API key not valid", ErrorKind.AUTH_FAILURE),
        (400, "bad prompt", ErrorKind.GENERIC_API),
        (500, "", ErrorKind.GENERIC_API),
    ])
    def test_status_codes(self, status, text, kind):
        assert error_handler.classify(_status_error(status, text)).kind == kind

    def test_sdk_code_attribute(self):
        assert error_handler.classify(_SdkError(503, "model is overloaded")).kind == ErrorKind.SERVICE_OVERLOADED

    def test_client_4xx_not_retryable_but_5xx_is(self):
        assert error_handler.classify(_status_error(400, "bad prompt")).retryable is False
        assert error_handler.classify(_status_error(502)).retryable is True

    def test_overloaded_suggests_fallback(self):
        error = error_handler.classify(_status_error(503))
        assert error.retryable
        assert error.fallback_suggested

    def test_asyncio_timeout(self):
        error = error_handler.classify(asyncio.TimeoutError())
        assert error.kind == ErrorKind.AGENT_TIMEOUT
        assert error.retryable

    def test_httpx_transport_errors_are_network(self):
        request = httpx.Request("GET", "https://example.test")
        assert error_handler.classify(httpx.ConnectError("refused", request=request)).kind == ErrorKind.NETWORK
        assert error_handler.classify(httpx.ReadTimeout("slow", request=request)).kind == ErrorKind.NETWORK

    @pytest.mark.parametrize("message,kind", [
        ("Failed to fetch", ErrorKind.NETWORK),
        ("Request timed out", ErrorKind.AGENT_TIMEOUT),
        ("Invalid API key provided", ErrorKind.AUTH_FAILURE),
        ("Quota exceeded for project", ErrorKind.QUOTA_EXCEEDED),
        ("429 Too Many Requests", ErrorKind.RATE_LIMITED),
        ("The model is overloaded", ErrorKind.SERVICE_OVERLOADED),
        ("validation failed: prompt", ErrorKind.VALIDATION),
        ("internal error", ErrorKind.GENERIC_API),
        ("something odd", ErrorKind.UNKNOWN),
    ])
    def test_message_substrings(self, message, kind):
        assert error_handler.classify(RuntimeError(message)).kind == kind

    def test_non_retryable_kinds(self):
        for kind in (ErrorKind.AUTH_FAILURE, ErrorKind.QUOTA_EXCEEDED, ErrorKind.VALIDATION,
                     ErrorKind.SKILL_NOT_FOUND, ErrorKind.UNKNOWN_MODEL, ErrorKind.PROVIDER_NOT_FOUND):
            assert AppError(kind, "x").retryable is False

    def test_app_error_passes_through(self):
        original = AppError(ErrorKind.VALIDATION, "bad")
        assert error_handler.classify(original) is original

    def test_context_is_kept(self):
        error = error_handler.classify(RuntimeError("boom"), context={"agent": "poster"})
        assert error.context == {"agent": "poster"}
        assert error.to_dict()["kind"] == "unknown"


# ============================================================================
# 2. RETRY
# ============================================================================

class TestWithRetry:

    @pytest.mark.asyncio
    async def test_retryable_error_exhausts_attempts(self):
        calls = []

        async def operation():
            calls.append(1)
            raise ConnectionError("network down")

        with pytest.raises(AppError) as exc_info:
            await error_handler.with_retry(operation, max_retries=3, delay=0)

        assert len(calls) == 4
        assert exc_info.value.kind == ErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_fast(self):
        calls = []

        async def operation():
            calls.append(1)
            raise AppError(ErrorKind.VALIDATION, "bad input")

        with pytest.raises(AppError) as exc_info:
            await error_handler.with_retry(operation, max_retries=3, delay=0)

        assert len(calls) == 1
        assert exc_info.value.message == "bad input"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        outcomes = [RuntimeError("503 unavailable"), "ok"]

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert await error_handler.with_retry(operation, max_retries=2, delay=0) == "ok"

    @pytest.mark.asyncio
    async def test_backoff_doubles_delay(self, monkeypatch):
        waits = []

        async def fake_sleep(seconds):
            waits.append(seconds)

        monkeypatch.setattr("design_agents.errors.asyncio.sleep", fake_sleep)

        async def operation():
            raise RuntimeError("network down")

        with pytest.raises(AppError):
            await error_handler.with_retry(operation, max_retries=3, delay=1.0)
        assert waits == [1.0, 2.0, 4.0]

        waits.clear()
        with pytest.raises(AppError):
            await error_handler.with_retry(operation, max_retries=2, delay=0.5, backoff=False)
        assert waits == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_original_error_is_chained(self):
        async def operation():
            raise RuntimeError("network down")

        with pytest.raises(AppError) as exc_info:
            await error_handler.with_retry(operation, max_retries=0, delay=0)
        assert isinstance(exc_info.value.original_error, RuntimeError)
        assert exc_info.value.__cause__ is exc_info.value.original_error


# ============================================================================
# 3. LOG + MESSAGES
# ============================================================================

class TestErrorLog:

    def test_log_is_bounded(self):
        handler = ErrorHandler(max_log_size=100)
        for i in range(150):
            handler.create_error(ErrorKind.UNKNOWN, f"error {i}")

        log = handler.get_error_log()
        assert len(log) == 100
        assert log[0].message == "error 50"
        assert log[-1].message == "error 149"

    def test_clear(self):
        handler = ErrorHandler()
        handler.create_error(ErrorKind.NETWORK)
        handler.clear_error_log()
        assert handler.get_error_log() == []

    def test_default_message(self):
        error = error_handler.create_error(ErrorKind.AGENT_TIMEOUT)
        assert error.message == "任务执行超时，请稍后重试"
        assert error.retryable

    def test_get_error_message_has_icon(self):
        error = AppError(ErrorKind.NETWORK, "网络连接失败，请检查网络设置后重试")
        assert ErrorHandler.get_error_message(error) == "🌐 网络连接失败，请检查网络设置后重试"

    def test_get_error_message_for_plain_exception(self):
        assert ErrorHandler.get_error_message(ValueError("x")) == "❌ 发生未知错误，请稍后重试"
