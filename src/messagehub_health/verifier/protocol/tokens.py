"""Correlation tokens embedded in produced messages."""

from __future__ import annotations

import time
from collections.abc import Callable


class TokenFactory:
    """Epoch-millisecond tokens, strictly increasing per factory.

    Two cycles started within the same millisecond still get distinct tokens.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def __call__(self) -> str:
        now = int(self._clock() * 1000)
        if now <= self._last:
            now = self._last + 1
        self._last = now
        return str(now)
