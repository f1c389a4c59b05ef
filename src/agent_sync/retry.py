"""Bounded exponential backoff for network collaborators."""

import asyncio
import errno
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 0.5
DEFAULT_MAX_DELAY = 5.0

_TRANSIENT_ERRNOS = frozenset({errno.ECONNRESET, errno.ECONNREFUSED, errno.ETIMEDOUT, errno.EPIPE})


def is_retryable_network_error(error: BaseException) -> bool:
    """Whether `error` is a transient network failure worth retrying.

    Retryable: timeouts, connection reset/refused, httpx transport failures.
    Cancellation is never retryable.
    """
    if isinstance(error, asyncio.CancelledError):
        return False
    if isinstance(error, httpx.TransportError):
        return not isinstance(error, httpx.UnsupportedProtocol)
    if isinstance(error, (TimeoutError, ConnectionResetError, ConnectionRefusedError)):
        return True
    return isinstance(error, OSError) and error.errno in _TRANSIENT_ERRNOS


async def with_retry(
    fn: Callable[[int], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    should_retry: Callable[[BaseException], bool] = is_retryable_network_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call `fn(attempt)` until it succeeds or retries are exhausted.

    Delay before retry n (0-based) is min(base_delay * 2**n, max_delay)
    seconds. Errors rejected by `should_retry` are raised immediately; the
    last error is raised once retries run out.

    Example:
        >>> await with_retry(lambda attempt: client.get(url))
    """
    attempt = 0
    while True:
        try:
            return await fn(attempt)
        except Exception as e:
            if attempt >= max_retries or not should_retry(e):
                raise
            delay = min(base_delay * 2**attempt, max_delay)
            logger.debug(f"Attempt {attempt + 1} failed ({e}), retrying in {delay:.1f}s")
            await sleep(delay)
            attempt += 1
