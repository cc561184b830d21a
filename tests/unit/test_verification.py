"""End-to-end tests of the verification protocol against the in-memory platform."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import Mock

import pytest

from messagehub_health.verifier.config import VerifierSettings
from messagehub_health.verifier.protocol.cleanup import AssetCleaner
from messagehub_health.verifier.protocol.errors import (
    AmbiguousMatch,
    HealthCheckFailed,
    NoActivationObserved,
    ProvisioningFailed,
)
from messagehub_health.verifier.protocol.ports import PlatformError
from messagehub_health.verifier.protocol.provisioner import ResourceProvisioner
from messagehub_health.verifier.protocol.verification import FeedVerifier, TriggerCreationCheck
from messagehub_health.verifier.whisk.health import HealthProbe

TRIGGER = "/_/BasicHealthTestTrigger-ci"
TOKEN = "1700000000000"


def _tokens(*values: str):
    remaining = list(values)
    return lambda: remaining.pop(0)


def _verifier(settings, platform, emitted_at, fake_sleep, *tokens: str) -> FeedVerifier:
    return FeedVerifier.from_settings(
        settings,
        platform=platform,
        query=platform,
        trigger_name=TRIGGER,
        token_factory=_tokens(*(tokens or (TOKEN,))),
        sleep=fake_sleep,
        clock=lambda: emitted_at,
    )


def test_run_succeeds_and_matches_the_injected_message(
    settings: VerifierSettings, platform, emitted_at: datetime, sleeps, fake_sleep, deliver_produced
) -> None:
    platform.on_produce = deliver_produced(TRIGGER)

    result = _verifier(settings, platform, emitted_at, fake_sleep).verify()

    assert result.binding.just_created is True
    assert result.attempts == 1
    assert result.emission.token == TOKEN
    assert (result.message.topic, result.message.key, result.message.value) == (
        "test",
        "TheKey",
        TOKEN,
    )
    assert sleeps == [10.0]
    assert result.to_json()["token"] == TOKEN


def test_reused_trigger_skips_creation_and_settle_delay(
    settings: VerifierSettings, platform, emitted_at: datetime, sleeps, fake_sleep, deliver_produced
) -> None:
    platform.create_trigger(TRIGGER, feed=settings.feed_action, parameters={})
    platform.create_calls.clear()
    platform.on_produce = deliver_produced(TRIGGER)

    result = _verifier(settings, platform, emitted_at, fake_sleep).verify()

    assert result.binding.just_created is False
    assert platform.create_calls == []
    assert sleeps == []


def test_duplicate_delivery_is_ambiguous_and_not_retried(
    settings: VerifierSettings, platform, emitted_at: datetime, fake_sleep, deliver_produced
) -> None:
    platform.on_produce = deliver_produced(TRIGGER, copies=2)

    with pytest.raises(AmbiguousMatch) as excinfo:
        _verifier(settings, platform, emitted_at, fake_sleep, TOKEN, "1700000000001").verify()

    assert len(platform.produce_calls) == 1
    assert excinfo.value.diagnostics.token == TOKEN
    assert excinfo.value.diagnostics.trigger_name == TRIGGER


def test_lost_message_is_retried_with_a_fresh_token(
    settings: VerifierSettings, platform, emitted_at: datetime, fake_sleep, deliver_produced
) -> None:
    hook = deliver_produced(TRIGGER)
    produced: list[str] = []

    def _lose_first(p, params):
        produced.append(str(params["value"]))
        if len(produced) > 1:
            hook(p, params)

    platform.on_produce = _lose_first
    settings = settings.model_copy(update={"poll_attempts": 2})

    verifier = _verifier(
        settings, platform, emitted_at, fake_sleep, "1700000000000", "1700000000001"
    )

    result = verifier.verify()

    assert produced == ["1700000000000", "1700000000001"]
    assert result.attempts == 2
    assert result.message.value == "1700000000001"


def test_transient_error_reading_producer_activation_is_retried(
    settings: VerifierSettings, platform, emitted_at: datetime, fake_sleep, deliver_produced
) -> None:
    platform.on_produce = deliver_produced(TRIGGER)
    original_wait = platform.wait_for_activation
    failures: list[str] = []

    def _flaky_wait(activation_id: str, **kwargs):
        if activation_id.startswith("produce") and not failures:
            failures.append(activation_id)
            raise PlatformError("GET activation returned HTTP 503")
        return original_wait(activation_id, **kwargs)

    platform.wait_for_activation = _flaky_wait

    result = _verifier(
        settings, platform, emitted_at, fake_sleep, "1700000000000", "1700000000001"
    ).verify()

    assert len(failures) == 1
    assert result.attempts == 2
    assert result.message.value == "1700000000001"

def test_budget_exhausted_raises_last_failure(
    settings: VerifierSettings, platform, emitted_at: datetime, fake_sleep
) -> None:
    settings = settings.model_copy(update={"poll_attempts": 1})

    with pytest.raises(NoActivationObserved):
        _verifier(settings, platform, emitted_at, fake_sleep, "1", "2", "3").verify()

    assert len(platform.produce_calls) == 3


def test_trigger_creation_check_probes_health_for_uuid(
    settings: VerifierSettings, platform
) -> None:
    probe = Mock(spec=HealthProbe)
    provisioner = ResourceProvisioner(platform=platform, feed=settings.feed_action)

    with AssetCleaner(platform) as cleaner:
        check = TriggerCreationCheck(
            provisioner=provisioner,
            probe=probe,
            cleaner=cleaner,
            feed=settings.feed_action,
            feed_parameters=settings.feed_parameters,
            clock=lambda: 1_700_000_000.0,
        )
        result = check.run()

    assert result.trigger_name == "newTrigger-1700000000000"
    assert result.uuid == "feed-uuid-1"
    probe.check_contains.assert_called_once_with("feed-uuid-1", attempts=3, wait_before_retry=1.0)
    assert platform.deleted == ["newTrigger-1700000000000"]


def test_trigger_creation_check_requires_uuid(settings: VerifierSettings, platform) -> None:
    platform.feed_result = {}
    probe = Mock(spec=HealthProbe)

    with AssetCleaner(platform) as cleaner:
        check = TriggerCreationCheck(
            provisioner=ResourceProvisioner(platform=platform, feed=settings.feed_action),
            probe=probe,
            cleaner=cleaner,
            feed=settings.feed_action,
            feed_parameters=settings.feed_parameters,
        )
        with pytest.raises(ProvisioningFailed, match="uuid"):
            check.run("newTrigger-x")

    probe.check_contains.assert_not_called()
    assert platform.deleted == ["newTrigger-x"]


def test_trigger_creation_check_cleans_up_when_probe_fails(
    settings: VerifierSettings, platform
) -> None:
    probe = Mock(spec=HealthProbe)
    probe.check_contains.side_effect = HealthCheckFailed("uuid not listed")

    with pytest.raises(HealthCheckFailed):
        with AssetCleaner(platform) as cleaner:
            TriggerCreationCheck(
                provisioner=ResourceProvisioner(platform=platform, feed=settings.feed_action),
                probe=probe,
                cleaner=cleaner,
                feed=settings.feed_action,
                feed_parameters=settings.feed_parameters,
            ).run("newTrigger-y")

    assert platform.deleted == ["newTrigger-y"]


def test_trigger_creation_check_leaves_existing_trigger_alone(
    settings: VerifierSettings, platform
) -> None:
    platform.create_trigger("newTrigger-z", feed=settings.feed_action, parameters={})
    probe = Mock(spec=HealthProbe)

    with pytest.raises(ProvisioningFailed, match="already existed"):
        with AssetCleaner(platform) as cleaner:
            TriggerCreationCheck(
                provisioner=ResourceProvisioner(platform=platform, feed=settings.feed_action),
                probe=probe,
                cleaner=cleaner,
                feed=settings.feed_action,
                feed_parameters=settings.feed_parameters,
            ).run("newTrigger-z")

    assert platform.deleted == []
    assert "newTrigger-z" in platform.triggers


def test_trigger_creation_check_cleans_up_unconfirmed_creation(
    settings: VerifierSettings, platform
) -> None:
    platform.feed_success = False
    probe = Mock(spec=HealthProbe)

    with pytest.raises(ProvisioningFailed, match="failed"):
        with AssetCleaner(platform) as cleaner:
            TriggerCreationCheck(
                provisioner=ResourceProvisioner(platform=platform, feed=settings.feed_action),
                probe=probe,
                cleaner=cleaner,
                feed=settings.feed_action,
                feed_parameters=settings.feed_parameters,
            ).run("newTrigger-w")

    probe.check_contains.assert_not_called()
    assert platform.deleted == ["newTrigger-w"]
