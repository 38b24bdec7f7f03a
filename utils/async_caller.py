"""
Bounded-concurrency call scheduler with retries.
"""

import asyncio
import logging
import weakref
from typing import Any, Awaitable, Callable, Optional, TypeVar

from config.settings import settings
from core.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Client errors that a retry cannot fix
NON_RETRYABLE_STATUSES = {400, 401, 403, 404, 405, 406, 407, 409}


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


class AsyncCaller:
    """
    Runs coroutine functions with a cap on simultaneous in-flight calls.

    Each attempt may be bounded by a timeout; failed attempts are retried with
    exponential backoff and the last error is re-raised once retries run out.
    """

    def __init__(self, max_concurrency: Optional[int] = None, max_retries: Optional[int] = None,
                 retry_delay: Optional[float] = None, timeout: Optional[float] = None):
        self.max_concurrency = settings.MAX_CONCURRENCY if max_concurrency is None else max_concurrency
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.RETRY_DELAY if retry_delay is None else retry_delay
        self.timeout = timeout

        if self.max_retries < 0:
            raise ValidationError(f"max_retries must be >= 0, got {self.max_retries}")

        # One semaphore per running event loop
        self._semaphores = weakref.WeakKeyDictionary()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def _get_semaphore(self) -> Optional[asyncio.Semaphore]:
        if self.max_concurrency <= 0:
            return None
        loop = asyncio.get_running_loop()
        semaphore = self._semaphores.get(loop)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.max_concurrency)
            self._semaphores[loop] = semaphore
        return semaphore

    def is_retryable(self, exc: BaseException) -> bool:
        if isinstance(exc, ValidationError):
            return False
        return _status_of(exc) not in NON_RETRYABLE_STATUSES

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Schedule func(*args, **kwargs) and return its result."""
        semaphore = self._get_semaphore()
        if semaphore is None:
            return await self._call_with_retry(func, *args, **kwargs)
        async with semaphore:
            return await self._call_with_retry(func, *args, **kwargs)

    async def _call_with_retry(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        attempt = 0
        while True:
            self._in_flight += 1
            try:
                if self.timeout is not None:
                    return await asyncio.wait_for(func(*args, **kwargs), self.timeout)
                return await func(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_retries or not self.is_retryable(e):
                    raise
                delay = self.retry_delay * (2 ** attempt)
                attempt += 1
                logger.warning(f"Call to {getattr(func, '__name__', func)} failed ({e!r}), "
                               f"retry {attempt}/{self.max_retries} in {delay:.2f}s")
            finally:
                self._in_flight -= 1
            await asyncio.sleep(delay)
