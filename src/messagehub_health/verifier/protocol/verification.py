"""The two end-to-end checks of the Message Hub feed.

`FeedVerifier`: a produced message must show up, exactly once, in an activation of
the feed trigger. `TriggerCreationCheck`: a freshly created feed trigger must be
listed by the feed provider's health endpoint.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from messagehub_health.verifier.config import VerifierSettings
from messagehub_health.verifier.protocol.cleanup import AssetCleaner
from messagehub_health.verifier.protocol.emitter import EventEmitter
from messagehub_health.verifier.protocol.errors import Diagnostics, ProvisioningFailed
from messagehub_health.verifier.protocol.matcher import CandidateMatcher
from messagehub_health.verifier.protocol.models import (
    ActivationRecord,
    EmissionRecord,
    FeedParameters,
    MessageRecord,
    TriggerBinding,
)
from messagehub_health.verifier.protocol.poller import ActivationPoller
from messagehub_health.verifier.protocol.ports import ActivationQuery, PlatformControl
from messagehub_health.verifier.protocol.provisioner import ResourceProvisioner
from messagehub_health.verifier.protocol.readiness import ReadinessGate
from messagehub_health.verifier.protocol.retry import run_with_retry
from messagehub_health.verifier.whisk.health import HealthProbe

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VerificationResult:
    binding: TriggerBinding
    emission: EmissionRecord
    activation: ActivationRecord
    message: MessageRecord
    attempts: int

    def to_json(self) -> dict[str, object]:
        return {
            "trigger": self.binding.name,
            "trigger_created": self.binding.just_created,
            "token": self.emission.token,
            "emitted_at": self.emission.emitted_at.isoformat(),
            "activation": self.activation.summary(),
            "message": {
                "topic": self.message.topic,
                "key": self.message.key,
                "value": self.message.value,
            },
            "attempts": self.attempts,
        }


@dataclass(frozen=True, slots=True)
class TriggerCreationResult:
    trigger_name: str
    uuid: str

    def to_json(self) -> dict[str, object]:
        return {"trigger": self.trigger_name, "uuid": self.uuid}


class FeedVerifier:
    """Provision -> readiness gate -> retried (emit -> poll -> match)."""

    def __init__(
        self,
        *,
        trigger_name: str,
        feed_parameters: FeedParameters,
        key: str,
        provisioner: ResourceProvisioner,
        gate: ReadinessGate,
        emitter: EventEmitter,
        poller: ActivationPoller,
        matcher: CandidateMatcher,
        poll_attempts: int = 30,
        poll_interval: float = 1.0,
        cycle_attempts: int = 3,
        cycle_retry_wait: float = 1.0,
        token_factory: Callable[[], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._trigger_name = trigger_name
        self._feed_parameters = feed_parameters
        self._topic = feed_parameters.topic
        self._key = key
        self._provisioner = provisioner
        self._gate = gate
        self._emitter = emitter
        self._poller = poller
        self._matcher = matcher
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._cycle_attempts = cycle_attempts
        self._cycle_retry_wait = cycle_retry_wait
        self._token_factory = token_factory
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: VerifierSettings,
        *,
        platform: PlatformControl,
        query: ActivationQuery,
        trigger_name: str,
        token_factory: Callable[[], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> FeedVerifier:
        feed_parameters = settings.feed_parameters
        return cls(
            trigger_name=trigger_name,
            feed_parameters=feed_parameters,
            key=settings.message_key,
            provisioner=ResourceProvisioner(
                platform=platform,
                feed=settings.feed_action,
                initial_wait=settings.feed_initial_wait_seconds,
                total_wait=settings.feed_total_wait_seconds,
            ),
            gate=ReadinessGate(settle_seconds=settings.consumer_init_seconds, sleep=sleep),
            emitter=EventEmitter(
                platform=platform,
                producer_action=settings.producer_action,
                feed_parameters=feed_parameters,
                initial_wait=settings.producer_initial_wait_seconds,
                total_wait=settings.producer_total_wait_seconds,
                clock=clock,
            ),
            poller=ActivationPoller(query=query, limit=settings.poll_limit, sleep=sleep),
            matcher=CandidateMatcher(query=query),
            poll_attempts=settings.poll_attempts,
            poll_interval=settings.poll_interval_seconds,
            cycle_attempts=settings.cycle_attempts,
            cycle_retry_wait=settings.cycle_retry_wait_seconds,
            token_factory=token_factory,
            sleep=sleep,
        )

    def verify(self) -> VerificationResult:
        binding = self._provisioner.ensure_trigger(self._trigger_name, self._feed_parameters)
        self._gate.await_consumer_ready(binding.just_created)

        attempts = 0

        def _cycle(token: str) -> VerificationResult:
            nonlocal attempts
            attempts += 1
            return self._run_cycle(binding, token, attempt=attempts)

        result = run_with_retry(
            _cycle,
            max_attempts=self._cycle_attempts,
            wait_before_retry=self._cycle_retry_wait,
            token_factory=self._token_factory,
            sleep=self._sleep,
        )
        logger.info(
            "Feed verified",
            extra={"trigger": binding.name, "token": result.emission.token, "attempts": attempts},
        )
        return result

    def _run_cycle(
        self, binding: TriggerBinding, token: str, *, attempt: int
    ) -> VerificationResult:
        emission = self._emitter.emit(binding, topic=self._topic, key=self._key, value=token)
        refs = self._poller.poll_matches(
            binding,
            since_ms=emission.emitted_at_ms,
            max_attempts=self._poll_attempts,
            interval=self._poll_interval,
            token=token,
        )
        activation = self._matcher.select_match(refs, token, trigger_name=binding.name)
        message = self._matcher.verify_message(activation, emission, trigger_name=binding.name)
        return VerificationResult(
            binding=binding,
            emission=emission,
            activation=activation,
            message=message,
            attempts=attempt,
        )


class TriggerCreationCheck:
    """Create a new feed trigger and confirm the feed provider lists it."""

    def __init__(
        self,
        *,
        provisioner: ResourceProvisioner,
        probe: HealthProbe,
        cleaner: AssetCleaner,
        feed: str,
        feed_parameters: FeedParameters,
        probe_attempts: int = 3,
        probe_wait: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provisioner = provisioner
        self._probe = probe
        self._cleaner = cleaner
        self._feed = feed
        self._feed_parameters = feed_parameters
        self._probe_attempts = probe_attempts
        self._probe_wait = probe_wait
        self._clock = clock

    def run(self, trigger_name: str | None = None) -> TriggerCreationResult:
        name = trigger_name or f"newTrigger-{int(self._clock() * 1000)}"
        try:
            binding = self._provisioner.ensure_trigger(name, self._feed_parameters)
        except ProvisioningFailed:
            if self._provisioner.was_created(name):
                self._cleaner.register_trigger(name, feed=self._feed)
            raise
        if not binding.just_created:
            raise ProvisioningFailed(
                f"Trigger {name} already existed; expected a fresh trigger",
                diagnostics=Diagnostics(trigger_name=name),
            )
        self._cleaner.register_trigger(name, feed=self._feed)

        uuid = (binding.creation_result or {}).get("uuid")
        if not isinstance(uuid, str) or not uuid:
            raise ProvisioningFailed(
                f"Feed creation for {name} did not report a uuid",
                diagnostics=Diagnostics(trigger_name=name, payload=binding.creation_result),
            )

        self._probe.check_contains(
            uuid, attempts=self._probe_attempts, wait_before_retry=self._probe_wait
        )
        return TriggerCreationResult(trigger_name=name, uuid=uuid)
