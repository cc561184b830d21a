"""Settle delay between creating a feed trigger and producing the first message."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ReadinessGate:
    """One-shot settle delay after a feed trigger was freshly created.

    The feed's consumer subscribes some time after the trigger becomes visible;
    messages produced before that are never delivered. Reused triggers pass
    straight through.
    """

    def __init__(
        self, *, settle_seconds: float = 10.0, sleep: Callable[[float], None] = time.sleep
    ) -> None:
        if settle_seconds < 0:
            raise ValueError("settle_seconds must be >= 0")
        self._settle_seconds = settle_seconds
        self._sleep = sleep
        self._passed = False

    @property
    def passed(self) -> bool:
        return self._passed

    def await_consumer_ready(self, just_created: bool) -> bool:
        """Return True when this call actually waited."""

        if self._passed:
            return False
        self._passed = True

        if not just_created:
            return False

        logger.info(
            "Giving the consumer a moment to get ready",
            extra={"settle_seconds": self._settle_seconds},
        )
        self._sleep(self._settle_seconds)
        return True
