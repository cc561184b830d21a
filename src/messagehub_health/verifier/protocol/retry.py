"""Bounded, fixed-wait retries.

`retry` is the generic loop; `run_with_retry` drives whole emit/poll/match cycles
and hands every attempt a fresh correlation token, so a retry is a new message
rather than a resend.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from messagehub_health.verifier.protocol.errors import VerificationError
from messagehub_health.verifier.protocol.tokens import TokenFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retriable(exc: BaseException) -> bool:
    return isinstance(exc, VerificationError) and exc.retriable


def retry(
    fn: Callable[[int], T],
    *,
    attempts: int,
    wait_before_retry: float,
    retriable: Callable[[BaseException], bool] = is_retriable,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """Call `fn(attempt)` until it returns, at most `attempts` times.

    Non-retriable failures propagate immediately. When the budget is exhausted the
    last failure propagates.
    """

    if attempts <= 0:
        raise ValueError("attempts must be > 0")
    if wait_before_retry < 0:
        raise ValueError("wait_before_retry must be >= 0")

    attempt = 1
    while True:
        try:
            return fn(attempt)
        except Exception as exc:
            if not retriable(exc):
                logger.error(
                    f"{description} failed with a non-retriable error",
                    extra={"attempt": attempt, "error": str(exc)},
                )
                raise
            if attempt >= attempts:
                logger.error(
                    f"{description} failed after {attempts} attempts",
                    extra={"attempt": attempt, "error": str(exc)},
                )
                raise
            logger.warning(
                f"{description} failed, retrying",
                extra={
                    "attempt": attempt,
                    "attempts": attempts,
                    "wait_before_retry": wait_before_retry,
                    "error": str(exc),
                },
            )
        sleep(wait_before_retry)
        attempt += 1


def run_with_retry(
    cycle_fn: Callable[[str], T],
    *,
    max_attempts: int,
    wait_before_retry: float,
    token_factory: Callable[[], str] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run `cycle_fn(token)` with a freshly generated token per attempt."""

    tokens = token_factory or TokenFactory()

    def _attempt(attempt: int) -> T:
        token = tokens()
        logger.info("Starting verification cycle", extra={"attempt": attempt, "token": token})
        return cycle_fn(token)

    return retry(
        _attempt,
        attempts=max_attempts,
        wait_before_retry=wait_before_retry,
        sleep=sleep,
        description="Verification cycle",
    )
