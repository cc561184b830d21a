"""Produce a correlation-tagged message through the producer action."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from messagehub_health.verifier.protocol.errors import Diagnostics, EmissionFailed
from messagehub_health.verifier.protocol.models import (
    EmissionRecord,
    FeedParameters,
    TriggerBinding,
)
from messagehub_health.verifier.protocol.ports import PlatformControl, PlatformError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EventEmitter:
    def __init__(
        self,
        *,
        platform: PlatformControl,
        producer_action: str,
        feed_parameters: FeedParameters,
        initial_wait: float = 1.0,
        total_wait: float = 60.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._platform = platform
        self._producer_action = producer_action
        self._feed_parameters = feed_parameters
        self._initial_wait = initial_wait
        self._total_wait = total_wait
        self._clock = clock or _utcnow

    def emit(self, binding: TriggerBinding, *, topic: str, key: str, value: str) -> EmissionRecord:
        """Produce `value` under `key` to `topic`.

        `emitted_at` is taken before the producer is invoked; it is the lower bound
        for everything the poller may accept for this message.
        """

        diagnostics = Diagnostics(trigger_name=binding.name, token=value)
        emitted_at = self._clock()
        logger.info(
            "Producing a message",
            extra={"trigger": binding.name, "topic": topic, "key": key, "token": value},
        )

        try:
            activation_id = self._platform.invoke_action(
                self._producer_action,
                self._feed_parameters.producer_payload(topic=topic, key=key, value=value),
            )
        except PlatformError as e:
            raise EmissionFailed(f"Producer invocation failed: {e}", diagnostics=diagnostics) from e

        try:
            activation = self._platform.wait_for_activation(
                activation_id, initial_wait=self._initial_wait, total_wait=self._total_wait
            )
        except PlatformError as e:
            raise EmissionFailed(
                f"Could not read producer activation {activation_id}: {e}",
                diagnostics=diagnostics,
            ) from e
        if activation is None:
            raise EmissionFailed(
                f"Producer activation {activation_id} did not complete within {self._total_wait}s",
                diagnostics=diagnostics,
            )
        if not activation.success:
            raise EmissionFailed(
                f"Producer activation {activation_id} reported failure",
                diagnostics=Diagnostics(
                    trigger_name=binding.name, token=value, payload=activation.response
                ),
            )

        return EmissionRecord(
            topic=topic,
            key=key,
            token=value,
            emitted_at=emitted_at,
            activation_id=activation_id,
        )
