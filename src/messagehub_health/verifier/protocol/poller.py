"""Eventually-consistent polling of the activation store."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator

from messagehub_health.verifier.protocol.errors import Diagnostics, NoActivationObserved
from messagehub_health.verifier.protocol.models import ActivationRef, TriggerBinding
from messagehub_health.verifier.protocol.ports import ActivationQuery, PlatformError

logger = logging.getLogger(__name__)


class ActivationPoller:
    """Query the activation store for a trigger's activations since an instant.

    The attempt count is the only bound: with `interval` seconds between attempts
    the effective timeout is roughly `max_attempts * interval`.
    """

    def __init__(
        self,
        *,
        query: ActivationQuery,
        limit: int = 100,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._query = query
        self._limit = limit
        self._sleep = sleep

    def iter_attempts(
        self,
        binding: TriggerBinding,
        *,
        since_ms: int,
        max_attempts: int,
        interval: float,
    ) -> Iterator[tuple[int, list[ActivationRef]]]:
        """Yield `(attempt, refs)` per store query; stops after the first non-empty batch.

        Refs reported with a start before `since_ms` are dropped, as are repeats
        within a batch.
        """

        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")

        for attempt in range(1, max_attempts + 1):
            try:
                listed = self._query.list_activations(
                    binding.name, since_ms=since_ms, limit=self._limit
                )
            except PlatformError as e:
                logger.warning(
                    "Listing activations failed",
                    extra={"trigger": binding.name, "attempt": attempt, "error": str(e)},
                )
                listed = []

            seen: set[str] = set()
            refs: list[ActivationRef] = []
            for ref in listed:
                if ref.start_ms is not None and ref.start_ms < since_ms:
                    continue
                if ref.activation_id in seen:
                    continue
                seen.add(ref.activation_id)
                refs.append(ref)

            yield attempt, refs
            if refs:
                return
            if attempt < max_attempts:
                self._sleep(interval)

    def poll_matches(
        self,
        binding: TriggerBinding,
        *,
        since_ms: int,
        max_attempts: int = 30,
        interval: float = 1.0,
        token: str | None = None,
    ) -> list[ActivationRef]:
        logger.info(
            "Polling for activations",
            extra={"trigger": binding.name, "since_ms": since_ms, "max_attempts": max_attempts},
        )
        attempts = 0
        for attempts, refs in self.iter_attempts(
            binding, since_ms=since_ms, max_attempts=max_attempts, interval=interval
        ):
            if refs:
                logger.info(
                    "Activations observed",
                    extra={"trigger": binding.name, "attempt": attempts, "count": len(refs)},
                )
                return refs

        raise NoActivationObserved(
            f"No activations for {binding.name} after {attempts} attempts",
            diagnostics=Diagnostics(trigger_name=binding.name, token=token),
        )
