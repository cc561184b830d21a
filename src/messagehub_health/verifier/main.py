"""CLI entrypoint for the Message Hub feed health checks."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from messagehub_health import __version__
from messagehub_health.verifier.config import VerifierSettings
from messagehub_health.verifier.logging import configure_logging
from messagehub_health.verifier.protocol.cleanup import AssetCleaner
from messagehub_health.verifier.protocol.errors import VerificationError
from messagehub_health.verifier.protocol.provisioner import ResourceProvisioner
from messagehub_health.verifier.protocol.verification import FeedVerifier, TriggerCreationCheck
from messagehub_health.verifier.whisk.client import WhiskClient
from messagehub_health.verifier.whisk.health import HealthProbe

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="messagehub-health",
        description="End-to-end health checks for the OpenWhisk Message Hub feed",
    )
    parser.add_argument(
        "--version", action="version", version=f"messagehub-health {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_feed = subparsers.add_parser(
        "verify-feed",
        help="Produce a message and verify the feed trigger fires with it exactly once",
    )
    verify_feed.add_argument(
        "--trigger-suffix",
        default=None,
        help=(
            "Suffix for the shared trigger name (overrides TRIGGER_SUFFIX). "
            "A fixed suffix lets later runs reuse the trigger"
        ),
    )
    verify_feed.add_argument(
        "--no-cleanup",
        action="store_true",
        help="Keep a per-run trigger instead of deleting it when the run ends",
    )

    creation = subparsers.add_parser(
        "verify-trigger-creation",
        help="Create a new feed trigger and check the health endpoint lists it",
    )
    creation.add_argument(
        "--health-url",
        default=None,
        help="Feed provider health endpoint (overrides HEALTH_URL)",
    )

    return parser


def _report_success(payload: dict[str, object]) -> None:
    print(json.dumps({"status": "passed", **payload}, indent=2, default=str))


def _report_failure(exc: VerificationError) -> None:
    report = {"status": "failed", **exc.to_json()}
    print(json.dumps(report, indent=2, default=str), file=sys.stderr)


def _verify_feed(
    settings: VerifierSettings, client: WhiskClient, args: argparse.Namespace
) -> int:
    if args.trigger_suffix is not None:
        settings = settings.model_copy(update={"trigger_suffix": args.trigger_suffix})

    trigger_name = settings.shared_trigger_name()
    verifier = FeedVerifier.from_settings(
        settings, platform=client, query=client, trigger_name=trigger_name
    )

    with AssetCleaner(client) as cleaner:
        if settings.trigger_name_is_generated and not args.no_cleanup:
            cleaner.register_trigger(trigger_name, feed=settings.feed_action)
        result = verifier.verify()

    _report_success(result.to_json())
    return 0


def _verify_trigger_creation(
    settings: VerifierSettings, client: WhiskClient, args: argparse.Namespace
) -> int:
    health_url = args.health_url or settings.health_url
    if not health_url:
        print("Configuration error: HEALTH_URL (or --health-url) is required", file=sys.stderr)
        return 2

    probe = HealthProbe(
        health_url,
        timeout=settings.http_timeout_seconds,
        verify=not settings.insecure,
    )
    provisioner = ResourceProvisioner(
        platform=client,
        feed=settings.feed_action,
        initial_wait=settings.feed_initial_wait_seconds,
        total_wait=settings.feed_total_wait_seconds,
    )

    with AssetCleaner(client) as cleaner:
        check = TriggerCreationCheck(
            provisioner=provisioner,
            probe=probe,
            cleaner=cleaner,
            feed=settings.feed_action,
            feed_parameters=settings.feed_parameters,
            probe_attempts=settings.health_attempts,
            probe_wait=settings.health_retry_wait_seconds,
        )
        result = check.run()

    _report_success(result.to_json())
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = VerifierSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    client = WhiskClient(
        api_host=settings.api_host,
        auth=settings.auth,
        namespace=settings.namespace,
        verify=not settings.insecure,
        timeout=settings.http_timeout_seconds,
    )

    try:
        if args.command == "verify-feed":
            return _verify_feed(settings, client, args)
        if args.command == "verify-trigger-creation":
            return _verify_trigger_creation(settings, client, args)
    except VerificationError as e:
        logger.error(
            "Verification failed",
            extra={"kind": e.kind, "diagnostics": e.diagnostics},
        )
        _report_failure(e)
        return 1
    finally:
        client.close()

    parser.error(f"Unknown command: {args.command}")
    return 2
