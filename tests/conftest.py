"""Test configuration and fixtures."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path

import pytest

from messagehub_health.verifier.config import VerifierSettings
from messagehub_health.verifier.protocol.models import (
    ActivationRecord,
    ActivationRef,
    FeedParameters,
    TriggerInfo,
)

EMITTED_AT = datetime.fromtimestamp(1_700_000_000, tz=UTC)
EMITTED_AT_MS = 1_700_000_000_000


def _short(name: str) -> str:
    return name.rstrip("/").rsplit("/", 1)[-1]


class FakePlatform:
    """In-memory platform: triggers, action invocations and an activation store.

    `on_produce` lets a test decide what the feed delivers for a produced message.
    `empty_listings` makes the first N store queries come back empty.
    """

    def __init__(self) -> None:
        self.triggers: dict[str, TriggerInfo] = {}
        self.activations: dict[str, ActivationRecord] = {}
        self.trigger_activations: list[ActivationRecord] = []
        self.create_calls: list[tuple[str, str, dict[str, object]]] = []
        self.invocations: list[tuple[str, dict[str, object]]] = []
        self.deleted: list[str] = []
        self.list_calls: list[tuple[str, int, int]] = []
        self.feed_success = True
        self.feed_result: dict[str, object] = {"uuid": "feed-uuid-1"}
        self.producer_success = True
        self.empty_listings = 0
        self.unresolvable: set[str] = set()
        self.on_produce: Callable[[FakePlatform, dict[str, object]], None] | None = None
        self._ids = itertools.count(1)
        self.closed = False

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # PlatformControl

    def get_trigger(self, name: str) -> TriggerInfo | None:
        return self.triggers.get(name)

    def create_trigger(self, name: str, *, feed: str, parameters: Mapping[str, object]) -> str:
        self.create_calls.append((name, feed, dict(parameters)))
        self.triggers[name] = TriggerInfo(namespace="_", name=_short(name), feed=feed)
        activation_id = self._next_id("feed")
        self.activations[activation_id] = ActivationRecord(
            activation_id=activation_id,
            name=_short(feed),
            success=self.feed_success,
            result=dict(self.feed_result),
            response={"success": self.feed_success, "result": dict(self.feed_result)},
        )
        return activation_id

    def close(self) -> None:
        self.closed = True

    def delete_trigger(self, name: str, *, feed: str | None = None) -> None:
        self.deleted.append(name)
        self.triggers.pop(name, None)

    def invoke_action(self, action: str, parameters: Mapping[str, object]) -> str:
        params = dict(parameters)
        self.invocations.append((action, params))
        activation_id = self._next_id("produce")
        self.activations[activation_id] = ActivationRecord(
            activation_id=activation_id,
            name=_short(action),
            success=self.producer_success,
            response={"success": self.producer_success, "result": {"success": True}},
        )
        if self.on_produce is not None:
            self.on_produce(self, params)
        return activation_id

    def wait_for_activation(
        self,
        activation_id: str,
        *,
        initial_wait: float,
        total_wait: float,
        interval: float = 1.0,
    ) -> ActivationRecord | None:
        return self.activations.get(activation_id)

    # ActivationQuery

    def list_activations(
        self, trigger_name: str, *, since_ms: int, limit: int
    ) -> list[ActivationRef]:
        self.list_calls.append((trigger_name, since_ms, limit))
        if self.empty_listings > 0:
            self.empty_listings -= 1
            return []
        return [
            ActivationRef(
                activation_id=record.activation_id, name=record.name, start_ms=record.start_ms
            )
            for record in self.trigger_activations
            if record.name == _short(trigger_name)
        ][:limit]

    def get_activation(self, activation_id: str) -> ActivationRecord | None:
        if activation_id in self.unresolvable:
            return None
        return self.activations.get(activation_id)

    # helpers

    @property
    def produce_calls(self) -> list[dict[str, object]]:
        return [params for action, params in self.invocations if action.endswith("Produce")]

    def deliver(
        self,
        trigger_name: str,
        messages: list[dict[str, object]],
        *,
        start_ms: int = EMITTED_AT_MS + 500,
        success: bool = True,
    ) -> ActivationRecord:
        """Record a trigger activation carrying `messages`."""

        activation_id = self._next_id("trigger")
        result = {"messages": messages}
        record = ActivationRecord(
            activation_id=activation_id,
            name=_short(trigger_name),
            success=success,
            result=result,
            response={"status": "success", "success": success, "result": result},
            start_ms=start_ms,
        )
        self.activations[activation_id] = record
        self.trigger_activations.append(record)
        return record


def _deliver_produced(
    trigger_name: str, *, copies: int = 1, start_ms: int = EMITTED_AT_MS + 500
):
    def _hook(platform: FakePlatform, params: dict[str, object]) -> None:
        for _ in range(copies):
            platform.deliver(
                trigger_name,
                [
                    {
                        "topic": params["topic"],
                        "key": params["key"],
                        "value": params["value"],
                        "partition": 0,
                        "offset": 42,
                    }
                ],
                start_ms=start_ms,
            )

    return _hook


@pytest.fixture
def deliver_produced():
    """Factory for `on_produce` hooks delivering each produced message `copies` times."""
    return _deliver_produced


@pytest.fixture
def emitted_at() -> datetime:
    return EMITTED_AT


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def feed_parameters() -> FeedParameters:
    return FeedParameters(
        user="hub-user",
        password="hub-password",
        api_key="hub-api-key",
        kafka_admin_url="https://admin.example.com",
        brokers=["broker-0:9093", "broker-1:9093"],
        topic="test",
    )


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> VerifierSettings:
    """Settings built only from explicit values (no `.env` from the working tree)."""

    monkeypatch.chdir(tmp_path)
    return VerifierSettings(
        api_host="https://whisk.example.com",
        auth="uuid-1:key-1",
        messagehub_user="hub-user",
        messagehub_password="hub-password",
        messagehub_api_key="hub-api-key",
        messagehub_kafka_admin_url="https://admin.example.com",
        messagehub_brokers="broker-0:9093,broker-1:9093",
        trigger_suffix="ci",
    )
