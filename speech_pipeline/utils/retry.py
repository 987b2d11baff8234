"""Retry helpers with exponential backoff for async recognizer calls.

call_with_backoff() runs a coroutine function with retries whose limits
come from runtime configuration. Transient failures are selected via
retryable_exceptions; anything else propagates on the first attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


async def call_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
    label: str | None = None,
    **kwargs: Any,
) -> Any:
    """Await ``func(*args, **kwargs)``, retrying transient failures.

    Delay before retry ``n`` (0-based) is ``base_delay * 2**n``. The
    raised exception carries ``_retry_count`` with the number of retries
    that were attempted.

    Args:
        func: Coroutine function to call.
        max_retries: Maximum number of retry attempts.
        base_delay: Base delay in seconds before the first retry.
        retryable_exceptions: Exception types eligible for retry. None
            retries every exception.
        label: Name used in retry log lines. Defaults to func.__name__.

    Returns:
        Whatever func returns.
    """
    name = label or getattr(func, "__name__", "call")
    last_error: Exception | None = None
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            last_error = exc
            if retryable_exceptions is not None and not isinstance(
                exc, retryable_exceptions
            ):
                exc._retry_count = attempt  # type: ignore[attr-defined]
                raise
            if attempt < max_retries:
                delay = base_delay * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s after %.1fs: %s",
                    attempt + 1,
                    max_retries,
                    name,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
    last_error._retry_count = max_retries  # type: ignore[union-attr]
    raise last_error  # type: ignore[misc]
