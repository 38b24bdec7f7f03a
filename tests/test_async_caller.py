"""
Tests for the bounded-concurrency caller.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from core.errors import UpstreamFailure, ValidationError
from utils.async_caller import AsyncCaller


class TestAsyncCaller:
    """Test concurrency limits, retries and timeouts."""

    def test_returns_result(self):
        caller = AsyncCaller(max_retries=0)
        func = AsyncMock(return_value="ok")

        result = asyncio.run(caller.call(func, 1, key="value"))

        assert result == "ok"
        func.assert_awaited_once_with(1, key="value")

    def test_concurrency_cap(self):
        caller = AsyncCaller(max_concurrency=3, max_retries=0)
        peak = {"value": 0}

        async def work(i):
            peak["value"] = max(peak["value"], caller.in_flight)
            await asyncio.sleep(0.01)
            return i

        async def run():
            return await asyncio.gather(*(caller.call(work, i) for i in range(10)))

        results = asyncio.run(run())

        assert results == list(range(10))
        assert peak["value"] == 3
        assert caller.in_flight == 0

    def test_zero_concurrency_means_unbounded(self):
        caller = AsyncCaller(max_concurrency=0, max_retries=0)
        peak = {"value": 0}

        async def work():
            peak["value"] = max(peak["value"], caller.in_flight)
            await asyncio.sleep(0.01)

        async def run():
            await asyncio.gather(*(caller.call(work) for _ in range(5)))

        asyncio.run(run())

        assert peak["value"] == 5

    def test_retries_then_succeeds(self):
        caller = AsyncCaller(max_retries=3, retry_delay=0)
        func = AsyncMock(side_effect=[ConnectionError("reset"), ConnectionError("reset"), "done"])

        result = asyncio.run(caller.call(func))

        assert result == "done"
        assert func.await_count == 3

    def test_raises_last_error_when_retries_exhausted(self):
        caller = AsyncCaller(max_retries=2, retry_delay=0)
        func = AsyncMock(side_effect=[ConnectionError("first"), ConnectionError("second"), ConnectionError("third")])

        with pytest.raises(ConnectionError, match="third"):
            asyncio.run(caller.call(func))

        assert func.await_count == 3

    def test_backoff_doubles(self):
        caller = AsyncCaller(max_retries=3, retry_delay=0.5)
        func = AsyncMock(side_effect=[RuntimeError("x"), RuntimeError("x"), RuntimeError("x"), "ok"])

        with patch("utils.async_caller.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            asyncio.run(caller.call(func))

        assert [c.args[0] for c in mock_sleep.await_args_list] == [0.5, 1.0, 2.0]

    def test_validation_error_not_retried(self):
        caller = AsyncCaller(max_retries=5, retry_delay=0)
        func = AsyncMock(side_effect=ValidationError("bad input"))

        with pytest.raises(ValidationError):
            asyncio.run(caller.call(func))

        assert func.await_count == 1

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409])
    def test_client_errors_not_retried(self, status):
        caller = AsyncCaller(max_retries=5, retry_delay=0)
        func = AsyncMock(side_effect=UpstreamFailure("rejected", service="test", status=status))

        with pytest.raises(UpstreamFailure):
            asyncio.run(caller.call(func))

        assert func.await_count == 1

    def test_http_status_error_read_from_response(self):
        caller = AsyncCaller(max_retries=5, retry_delay=0)
        request = httpx.Request("POST", "https://example.invalid/v1/query")
        response = httpx.Response(401, request=request)
        error = httpx.HTTPStatusError("unauthorized", request=request, response=response)

        assert caller.is_retryable(error) is False

    def test_server_errors_are_retryable(self):
        caller = AsyncCaller()
        error = Mock(spec=Exception)
        error.status_code = 503

        assert caller.is_retryable(error) is True
        assert caller.is_retryable(UpstreamFailure("busy", status=429)) is True

    def test_timeout_applies_per_attempt(self):
        caller = AsyncCaller(max_retries=1, retry_delay=0, timeout=0.01)
        attempts = {"count": 0}

        async def slow():
            attempts["count"] += 1
            await asyncio.sleep(1)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(caller.call(slow))

        assert attempts["count"] == 2

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            AsyncCaller(max_retries=-1)

    def test_defaults_from_settings(self):
        with patch("utils.async_caller.settings") as mock_settings:
            mock_settings.MAX_CONCURRENCY = 7
            mock_settings.MAX_RETRIES = 2
            mock_settings.RETRY_DELAY = 0.25

            caller = AsyncCaller()

        assert caller.max_concurrency == 7
        assert caller.max_retries == 2
        assert caller.retry_delay == 0.25

    def test_reused_across_event_loops(self):
        caller = AsyncCaller(max_concurrency=1, max_retries=0)

        async def work(i):
            await asyncio.sleep(0.001)
            return i

        async def run():
            return await asyncio.gather(*(caller.call(work, i) for i in range(3)))

        assert asyncio.run(run()) == [0, 1, 2]
        assert asyncio.run(run()) == [0, 1, 2]
