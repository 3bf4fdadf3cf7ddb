from __future__ import annotations

import logging
import random
import threading
from typing import Callable, TypeVar

from firebase_admin import exceptions as fb_exceptions

T = TypeVar("T")
logger = logging.getLogger(__name__)
_SHUTDOWN_EVENT = threading.Event()

_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    fb_exceptions.AbortedError,
    fb_exceptions.DeadlineExceededError,
    fb_exceptions.InternalError,
    fb_exceptions.ResourceExhaustedError,
    fb_exceptions.UnavailableError,
)


def request_shutdown() -> None:
    """Abort pending backoff sleeps; the next retry raises InterruptedError."""
    _SHUTDOWN_EVENT.set()


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, _TRANSIENT_EXCEPTIONS)


def with_store_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 6,
    base_delay_s: float = 0.2,
    max_delay_s: float = 5.0,
) -> T:
    """
    Retry transient Realtime Database errors with exponential backoff + full jitter.

    Runs on the calling thread (the store executes it inside a worker thread).
    Non-transient errors propagate on the first attempt.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if (not is_transient(e)) or attempt >= (max_attempts - 1):
                raise

            sleep_s = min(max_delay_s, base_delay_s * (2**attempt))
            logger.info("rtdb_retry iteration=%d sleep_s=%.3f error=%s", attempt + 1, float(sleep_s), type(e).__name__)
            if _SHUTDOWN_EVENT.is_set():
                raise InterruptedError("shutdown requested") from e
            _SHUTDOWN_EVENT.wait(timeout=float(random.random() * float(sleep_s)))
            attempt += 1
