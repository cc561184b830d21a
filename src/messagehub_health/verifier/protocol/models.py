"""Records exchanged between the verification steps.

Data only flows forward: the emitter produces an `EmissionRecord`, the poller
turns it into `ActivationRef`s, the matcher resolves those into
`ActivationRecord`s and decomposes the winner into `MessageRecord`s.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BindingState(str, Enum):
    ABSENT = "absent"
    CREATING = "creating"
    READY = "ready"
    FAILED = "failed"


class FeedParameters(BaseModel):
    """Broker credentials and topic shared by the feed and the producer action."""

    user: str = Field(default="")
    password: str = Field(default="")
    api_key: str = Field(default="")
    kafka_admin_url: str = Field(default="")
    brokers: list[str] = Field(default_factory=list)
    topic: str

    def feed_payload(self) -> dict[str, object]:
        """Parameters for creating a Message Hub feed trigger."""

        return {
            "user": self.user,
            "password": self.password,
            "api_key": self.api_key,
            "kafka_admin_url": self.kafka_admin_url,
            "kafka_brokers_sasl": list(self.brokers),
            "topic": self.topic,
        }

    def producer_payload(self, *, topic: str, key: str, value: str) -> dict[str, object]:
        """Parameters for the producer action."""

        return {
            "user": self.user,
            "password": self.password,
            "kafka_brokers_sasl": list(self.brokers),
            "topic": topic,
            "key": key,
            "value": value,
        }


@dataclass(frozen=True, slots=True)
class TriggerInfo:
    """Minimal trigger metadata as reported by the platform."""

    namespace: str
    name: str
    feed: str | None = None


@dataclass(frozen=True, slots=True)
class TriggerBinding:
    """A named trigger bound to a feed.

    Read-only once returned by the provisioner. `just_created` drives the
    readiness gate.
    """

    name: str
    feed: str
    state: BindingState
    just_created: bool = False
    creation_result: dict[str, Any] | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class EmissionRecord:
    topic: str
    key: str
    token: str
    emitted_at: datetime
    activation_id: str | None = None

    @property
    def emitted_at_ms(self) -> int:
        return to_epoch_ms(self.emitted_at)


@dataclass(frozen=True, slots=True)
class ActivationRef:
    """A lightweight activation listing entry; resolve it for the payload."""

    activation_id: str
    name: str = ""
    start_ms: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ActivationRef:
        start = data.get("start")
        return cls(
            activation_id=str(data.get("activationId", "")),
            name=str(data.get("name", "")),
            start_ms=start if isinstance(start, int) else None,
        )


@dataclass(frozen=True, slots=True)
class ActivationRecord:
    """A resolved activation with its response."""

    activation_id: str
    name: str
    success: bool
    result: dict[str, Any] = field(default_factory=dict, compare=False)
    response: dict[str, Any] = field(default_factory=dict, compare=False)
    start_ms: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ActivationRecord:
        response = data.get("response")
        if not isinstance(response, dict):
            response = {}
        result = response.get("result")
        start = data.get("start")
        return cls(
            activation_id=str(data.get("activationId", "")),
            name=str(data.get("name", "")),
            success=response.get("success") is True,
            result=result if isinstance(result, dict) else {},
            response=response,
            start_ms=start if isinstance(start, int) else None,
        )

    def serialized_response(self) -> str:
        return json.dumps(self.response, sort_keys=True, ensure_ascii=False, default=str)

    def summary(self) -> dict[str, object]:
        return {
            "activation_id": self.activation_id,
            "name": self.name,
            "success": self.success,
            "start_ms": self.start_ms,
        }


@dataclass(frozen=True, slots=True)
class MessageRecord:
    """A broker message as delivered inside a trigger activation."""

    topic: Any
    key: Any
    value: Any
    partition: int | None = None
    offset: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> MessageRecord:
        partition = data.get("partition")
        offset = data.get("offset")
        return cls(
            topic=data.get("topic"),
            key=data.get("key"),
            value=data.get("value"),
            partition=partition if isinstance(partition, int) else None,
            offset=offset if isinstance(offset, int) else None,
        )


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)
