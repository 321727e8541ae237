"""Retry policy, error classification and backoff built on tenacity.

Every retry decision the client makes goes through ``should_retry`` so the
policy lives in one place and can be tested without a network.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt
from tenacity.retry import retry_base
from tenacity.wait import wait_base

from farmconsole.domain.errors import ERRORS_BY_KIND, ApiError, ErrorKind, ParseError, Unauthorized

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Invalid or expired token"
FALLBACK_REASON = "An error occurred"

SleepFunc = Callable[[float], Awaitable[None]]


def should_retry(status: Optional[int], attempt: int, max_retries: int) -> bool:
    """Decide whether a failed attempt may be retried.

    Args:
        status: HTTP status of the failure, None for transport failures
        attempt: 0-based index of the attempt that failed
        max_retries: Retries allowed after the first attempt

    Returns:
        True if another attempt should be made
    """
    if status == 401:
        return False
    if status is not None and 400 <= status < 500 and status != 429:
        return False
    if status is None or status == 429 or status >= 500:
        return attempt < max_retries
    return False


def classify_status(status: Optional[int]) -> ErrorKind:
    """Map an HTTP status (None = no response) to an error kind"""
    if status is None:
        return ErrorKind.NETWORK_ERROR
    if status == 401:
        return ErrorKind.UNAUTHORIZED
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.CLIENT_ERROR


def error_message(response: httpx.Response) -> str:
    """Extract the human-readable error text from a failed response.

    Uses the body's ``message`` field, then ``error``; falls back to
    ``HTTP <status>: <reason>`` when the body is missing or not JSON.
    """
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "error"):
            value = data.get(key)
            if isinstance(value, list):
                value = "; ".join(str(item) for item in value)
            if value:
                return str(value)
    return f"HTTP {response.status_code}: {response.reason_phrase or FALLBACK_REASON}"


def classified_error(response: httpx.Response) -> ApiError:
    """Build the terminal error for a non-success response"""
    kind = classify_status(response.status_code)
    if kind == ErrorKind.UNAUTHORIZED:
        return Unauthorized(UNAUTHORIZED_MESSAGE, status=response.status_code)
    return ERRORS_BY_KIND[kind](error_message(response), status=response.status_code)


def delay_for(attempt: int, base_delay_ms: float, max_delay_ms: Optional[float] = None) -> float:
    """Backoff before retrying a failed attempt, in milliseconds.

    ``base_delay_ms * 2 ** attempt``; uncapped unless max_delay_ms is given.
    """
    delay = base_delay_ms * (2 ** attempt)
    if max_delay_ms is not None:
        delay = min(delay, max_delay_ms)
    return delay


class BackoffScheduler(wait_base):
    """Exponential backoff usable both directly and as a tenacity wait.

    Suspends only the calling coroutine; ``sleep`` can be swapped out in tests.
    """

    def __init__(
        self,
        base_delay_ms: float,
        max_delay_ms: Optional[float] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        return delay_for(attempt, self.base_delay_ms, self.max_delay_ms)

    def __call__(self, retry_state: RetryCallState) -> float:
        # tenacity counts attempts from 1 and waits in seconds
        return self.delay_for(retry_state.attempt_number - 1) / 1000.0

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    async def wait(self, attempt: int) -> None:
        """Suspend for the backoff belonging to a failed attempt"""
        await self.sleep(self.delay_for(attempt) / 1000.0)


class retry_if_classified(retry_base):
    """Retry strategy applying ``should_retry`` to raised ApiErrors"""

    def __init__(self, max_retries: int):
        self.max_retries = max_retries

    def __call__(self, retry_state: RetryCallState) -> bool:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return False
        exception = retry_state.outcome.exception()
        if not isinstance(exception, ApiError) or isinstance(exception, ParseError):
            return False
        return should_retry(exception.status, retry_state.attempt_number - 1, self.max_retries)


def with_retry(
    max_retries: int = 3,
    retry_delay_ms: float = 1000,
    on_retry: Optional[Callable[[int], Any]] = None,
    sleep: Optional[SleepFunc] = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Retry any coroutine function with exponential backoff.

    Unlike the API client this retries on every exception; it is meant for
    composite operations made of several calls.

    Args:
        max_retries: Retries after the first attempt
        retry_delay_ms: Base delay in milliseconds
        on_retry: Called with the retry number (1-based) before each wait
        sleep: Optional coroutine used to wait (defaults to asyncio.sleep)

    Returns:
        Decorator
    """
    scheduler = BackoffScheduler(retry_delay_ms, sleep=sleep)

    def _before_sleep(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        attempt = retry_state.attempt_number
        logger.warning(f"Operation failed (attempt {attempt}/{max_retries + 1}): {exception}. Retrying...")
        if on_retry is not None:
            on_retry(attempt)

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapped(*args: Any, **kwargs: Any) -> Any:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_retries + 1),
                wait=scheduler,
                retry=retry_if_exception_type(Exception),
                sleep=scheduler.sleep,
                before_sleep=_before_sleep,
                reraise=True,
            )
            return await retrying(func, *args, **kwargs)

        return wrapped

    return decorator
