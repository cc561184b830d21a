"""Correlate polled activations with the produced message."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from messagehub_health.verifier.protocol.errors import (
    AmbiguousMatch,
    Diagnostics,
    NoMatchFound,
    StructuralMismatch,
)
from messagehub_health.verifier.protocol.models import (
    ActivationRecord,
    ActivationRef,
    EmissionRecord,
    MessageRecord,
)
from messagehub_health.verifier.protocol.ports import ActivationQuery, PlatformError

logger = logging.getLogger(__name__)


def messages_in_activation(
    activation: ActivationRecord, *, field: str, value: object
) -> list[MessageRecord]:
    """Messages delivered in `activation` whose `field` equals `value`."""

    raw = activation.result.get("messages")
    if not isinstance(raw, list):
        return []
    return [
        MessageRecord.from_json(item)
        for item in raw
        if isinstance(item, dict) and item.get(field) == value
    ]


class CandidateMatcher:
    def __init__(self, *, query: ActivationQuery) -> None:
        self._query = query

    def resolve(self, refs: Sequence[ActivationRef]) -> list[ActivationRecord]:
        """Fetch full records; refs that cannot be resolved are dropped."""

        resolved: list[ActivationRecord] = []
        for ref in refs:
            try:
                record = self._query.get_activation(ref.activation_id)
            except PlatformError as e:
                logger.warning(
                    "Could not resolve activation",
                    extra={"activation_id": ref.activation_id, "error": str(e)},
                )
                continue
            if record is None:
                logger.debug(
                    "Activation not resolvable", extra={"activation_id": ref.activation_id}
                )
                continue
            resolved.append(record)
        return resolved

    def select_match(
        self,
        refs: Sequence[ActivationRef],
        token: str,
        *,
        trigger_name: str | None = None,
    ) -> ActivationRecord:
        """Return the single activation whose response mentions `token`."""

        logger.info(
            "Validating content of activation(s)", extra={"count": len(refs), "token": token}
        )
        resolved = self.resolve(refs)
        matches = [record for record in resolved if token in record.serialized_response()]

        if not matches:
            raise NoMatchFound(
                f"None of {len(resolved)} resolved activation(s) mention token {token}",
                diagnostics=Diagnostics(
                    trigger_name=trigger_name,
                    token=token,
                    records_seen=tuple(ref.activation_id for ref in refs),
                ),
            )
        if len(matches) > 1:
            raise AmbiguousMatch(
                f"{len(matches)} activations mention token {token}",
                diagnostics=Diagnostics(
                    trigger_name=trigger_name,
                    token=token,
                    records_seen=tuple(record.activation_id for record in matches),
                ),
            )
        return matches[0]

    def verify_message(
        self,
        activation: ActivationRecord,
        emission: EmissionRecord,
        *,
        trigger_name: str | None = None,
    ) -> MessageRecord:
        """Check the matched activation carries exactly the produced message."""

        diagnostics = Diagnostics(
            trigger_name=trigger_name,
            token=emission.token,
            records_seen=(activation.activation_id,),
            payload=activation.response,
        )

        if not activation.success:
            raise StructuralMismatch(
                f"Activation {activation.activation_id} was not successful",
                diagnostics=diagnostics,
            )

        messages = messages_in_activation(activation, field="value", value=emission.token)
        if len(messages) != 1:
            raise StructuralMismatch(
                f"Expected exactly one message with value {emission.token}, found {len(messages)}",
                diagnostics=diagnostics,
            )

        message = messages[0]
        if message.topic != emission.topic:
            raise StructuralMismatch(
                f"Message topic {message.topic!r} != {emission.topic!r}", diagnostics=diagnostics
            )
        if message.key != emission.key:
            raise StructuralMismatch(
                f"Message key {message.key!r} != {emission.key!r}", diagnostics=diagnostics
            )
        return message
