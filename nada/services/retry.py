"""Retry helper for transient store connection failures."""

import time
from collections.abc import Callable
from typing import TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS: tuple[str, ...] = (
    "connection reset",
    "connection error",
    "connection lost",
    "gateway error",
    "econnreset",
    "server closed the connection",
)


def is_transient(exc: BaseException) -> bool:
    """True for connection-level failures worth another attempt."""
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    message: str = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def with_retry(
    operation: Callable[[], T],
    attempts: int = 5,
    delay: float = 0.5,
    backoff: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying transient failures with exponential backoff.

    Attempt ``n`` (zero-based) waits ``delay * backoff**n`` seconds before the
    next try. Non-transient errors are raised immediately; once attempts are
    exhausted the last error is raised.
    """
    attempts = max(attempts, 1)
    for attempt in range(attempts):
        try:
            return operation()
        except Exception as e:
            if not is_transient(e):
                raise
            if attempt == attempts - 1:
                logger.error("Store call failed, retries exhausted", attempts=attempts, error=str(e)[:100])
                raise
            wait: float = delay * (backoff**attempt)
            logger.warning(
                "Store call failed, retrying",
                attempt=attempt + 1,
                max_retries=attempts - 1,
                wait_seconds=round(wait, 3),
                error=str(e)[:100],
            )
            sleep(wait)
    raise AssertionError("unreachable")
