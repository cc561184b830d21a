"""Create-if-absent provisioning of the feed trigger."""

from __future__ import annotations

import logging
from typing import Any

from messagehub_health.verifier.protocol.errors import Diagnostics, ProvisioningFailed
from messagehub_health.verifier.protocol.models import (
    BindingState,
    FeedParameters,
    TriggerBinding,
)
from messagehub_health.verifier.protocol.ports import PlatformControl, PlatformError

logger = logging.getLogger(__name__)


class ResourceProvisioner:
    """Ensure a feed trigger exists, creating it only when it is absent.

    Creation is confirmed through the feed's lifecycle activation. Two concurrent
    runs racing on the same absent name can both attempt the create; the loser's
    create fails and surfaces as `ProvisioningFailed`.
    """

    def __init__(
        self,
        *,
        platform: PlatformControl,
        feed: str,
        initial_wait: float = 5.0,
        total_wait: float = 60.0,
    ) -> None:
        self._platform = platform
        self._feed = feed
        self._initial_wait = initial_wait
        self._total_wait = total_wait
        self._states: dict[str, BindingState] = {}
        self._created: set[str] = set()

    def state_of(self, name: str) -> BindingState:
        return self._states.get(name, BindingState.ABSENT)

    def was_created(self, name: str) -> bool:
        """True once this provisioner issued a create for `name` that the platform accepted."""
        return name in self._created

    def _fail(
        self, name: str, message: str, *, payload: dict[str, Any] | None = None
    ) -> ProvisioningFailed:
        self._states[name] = BindingState.FAILED
        logger.error(message, extra={"trigger": name})
        return ProvisioningFailed(
            message, diagnostics=Diagnostics(trigger_name=name, payload=payload)
        )

    def ensure_trigger(self, name: str, feed_params: FeedParameters) -> TriggerBinding:
        try:
            existing = self._platform.get_trigger(name)
        except PlatformError as e:
            raise self._fail(name, f"Could not look up trigger {name}: {e}") from e

        if existing is not None:
            self._states[name] = BindingState.READY
            logger.info("Trigger already exists, reusing it", extra={"trigger": name})
            return TriggerBinding(
                name=name,
                feed=existing.feed or self._feed,
                state=BindingState.READY,
                just_created=False,
            )

        self._states[name] = BindingState.CREATING
        logger.info("Creating trigger", extra={"trigger": name, "feed": self._feed})
        try:
            activation_id = self._platform.create_trigger(
                name, feed=self._feed, parameters=feed_params.feed_payload()
            )
        except PlatformError as e:
            raise self._fail(name, f"Could not create trigger {name}: {e}") from e

        self._created.add(name)

        try:
            activation = self._platform.wait_for_activation(
                activation_id, initial_wait=self._initial_wait, total_wait=self._total_wait
            )
        except PlatformError as e:
            raise self._fail(
                name, f"Could not read feed creation activation {activation_id}: {e}"
            ) from e
        if activation is None:
            raise self._fail(
                name,
                f"Feed creation for {name} was not confirmed within {self._total_wait}s",
            )
        if not activation.success:
            raise self._fail(
                name,
                f"Feed creation for {name} failed (activation {activation.activation_id})",
                payload=activation.response,
            )

        self._states[name] = BindingState.READY
        logger.info(
            "Trigger created",
            extra={"trigger": name, "activation_id": activation.activation_id},
        )
        return TriggerBinding(
            name=name,
            feed=self._feed,
            state=BindingState.READY,
            just_created=True,
            creation_result=activation.result,
        )
