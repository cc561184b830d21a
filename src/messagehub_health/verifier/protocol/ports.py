"""Collaborator boundaries the verification protocol is written against.

`messagehub_health.verifier.whisk.client.WhiskClient` implements both against the
OpenWhisk REST API; tests use an in-memory fake.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from messagehub_health.verifier.protocol.models import (
    ActivationRecord,
    ActivationRef,
    TriggerInfo,
)


class PlatformError(RuntimeError):
    """A platform call failed (transport error or unexpected status)."""


class PlatformControl(Protocol):
    """Trigger and action management on the platform under test."""

    def get_trigger(self, name: str) -> TriggerInfo | None: ...

    def create_trigger(self, name: str, *, feed: str, parameters: Mapping[str, object]) -> str:
        """Create a feed trigger; returns the activation id of the feed creation."""
        ...

    def delete_trigger(self, name: str, *, feed: str | None = None) -> None: ...

    def invoke_action(self, action: str, parameters: Mapping[str, object]) -> str:
        """Invoke an action without blocking; returns its activation id."""
        ...

    def wait_for_activation(
        self,
        activation_id: str,
        *,
        initial_wait: float,
        total_wait: float,
        interval: float = 1.0,
    ) -> ActivationRecord | None: ...


class ActivationQuery(Protocol):
    """Read access to the activation store."""

    def list_activations(
        self, trigger_name: str, *, since_ms: int, limit: int
    ) -> list[ActivationRef]: ...

    def get_activation(self, activation_id: str) -> ActivationRecord | None: ...


__all__ = ["ActivationQuery", "PlatformControl", "PlatformError"]
