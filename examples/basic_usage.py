#!/usr/bin/env python3
"""Programmatic feed verification example.

This demonstrates using the verifier components directly:

* load settings from `.env`
* reuse (or create) a named feed trigger
* produce one message and wait for the trigger to fire with it

The trigger name is passed as an argument (not read from `.env`), and the trigger
is kept afterwards so the next run skips the consumer start-up wait.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from messagehub_health.verifier.config import VerifierSettings
from messagehub_health.verifier.logging import configure_logging
from messagehub_health.verifier.protocol.errors import VerificationError
from messagehub_health.verifier.protocol.verification import FeedVerifier
from messagehub_health.verifier.whisk.client import WhiskClient


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify a Message Hub feed trigger.")
    parser.add_argument(
        "--trigger", required=True, help='Trigger name, e.g. "/_/MyHealthTrigger"'
    )
    parser.add_argument(
        "--key", default=None, help="Message key (defaults to MESSAGEHUB_MESSAGE_KEY)"
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = VerifierSettings()
    if args.key:
        settings = settings.model_copy(update={"message_key": args.key})
    configure_logging(settings.log_level)

    client = WhiskClient(
        api_host=settings.api_host,
        auth=settings.auth,
        namespace=settings.namespace,
        verify=not settings.insecure,
    )
    verifier = FeedVerifier.from_settings(
        settings, platform=client, query=client, trigger_name=args.trigger
    )

    try:
        result = verifier.verify()
    except VerificationError as exc:
        print(f"Verification failed ({exc.kind}): {exc}")
        print(json.dumps(exc.diagnostics.to_json(), indent=2, default=str))
        return 1
    finally:
        client.close()

    print(f"Trigger {result.binding.name} fired with token {result.emission.token}")
    print(f"Activation: {result.activation.activation_id}")
    print(f"Cycles used: {result.attempts}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
