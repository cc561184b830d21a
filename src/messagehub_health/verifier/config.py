"""Configuration for the feed health checks.

Configuration is loaded from:
- environment variables
- a local `.env` file (if present)
- optionally, a JSON credentials file for the broker (`MESSAGEHUB_CREDENTIALS_FILE`)

Values set through the environment always win over the credentials file.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from messagehub_health.verifier.protocol.models import FeedParameters

SHARED_TRIGGER_BASE_NAME = "/_/BasicHealthTestTrigger"

_CREDENTIAL_FIELDS: dict[str, str] = {
    "user": "messagehub_user",
    "password": "messagehub_password",
    "api_key": "messagehub_api_key",
    "kafka_admin_url": "messagehub_kafka_admin_url",
    "brokers": "messagehub_brokers",
}


class VerifierSettings(BaseSettings):
    """Settings for the health checks.

    Environment variables:
    - WHISK_API_HOST, WHISK_AUTH          (required)
    - WHISK_NAMESPACE, WHISK_INSECURE     (optional)
    - MESSAGEHUB_*                        (broker credentials and topic)
    - HEALTH_URL, TRIGGER_SUFFIX          (optional)
    - LOG_LEVEL                           (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `VerifierSettings(_env_file=path_to_env)`.
    """

    api_host: str = Field(
        default="",
        validation_alias="WHISK_API_HOST",
        description="OpenWhisk API host, e.g. https://openwhisk.example.com",
    )
    auth: str = Field(
        default="",
        validation_alias="WHISK_AUTH",
        description="OpenWhisk credentials in the form '<uuid>:<key>'",
    )
    namespace: str = Field(default="_", validation_alias="WHISK_NAMESPACE")
    insecure: bool = Field(
        default=False,
        validation_alias="WHISK_INSECURE",
        description="Skip TLS certificate verification (local deployments)",
    )
    http_timeout_seconds: float = Field(default=30.0, validation_alias="WHISK_HTTP_TIMEOUT")

    messagehub_user: str = Field(default="", validation_alias="MESSAGEHUB_USER")
    messagehub_password: str = Field(default="", validation_alias="MESSAGEHUB_PASSWORD")
    messagehub_api_key: str = Field(default="", validation_alias="MESSAGEHUB_API_KEY")
    messagehub_kafka_admin_url: str = Field(
        default="", validation_alias="MESSAGEHUB_KAFKA_ADMIN_URL"
    )
    messagehub_brokers: str = Field(
        default="",
        validation_alias="MESSAGEHUB_BROKERS",
        description="Broker endpoints as a JSON list or a comma-separated string",
    )
    credentials_file: Path | None = Field(
        default=None,
        validation_alias="MESSAGEHUB_CREDENTIALS_FILE",
        description="JSON file with user/password/api_key/kafka_admin_url/brokers",
    )

    topic: str = Field(default="test", validation_alias="MESSAGEHUB_TOPIC")
    message_key: str = Field(default="TheKey", validation_alias="MESSAGEHUB_MESSAGE_KEY")

    messaging_package: str = Field(
        default="/whisk.system/messaging", validation_alias="MESSAGING_PACKAGE"
    )
    feed_action_name: str = Field(default="messageHubFeed", validation_alias="MESSAGEHUB_FEED")
    producer_action_name: str = Field(
        default="messageHubProduce", validation_alias="MESSAGEHUB_PRODUCE"
    )

    health_url: str = Field(default="", validation_alias="HEALTH_URL")
    trigger_suffix: str = Field(
        default="",
        validation_alias="TRIGGER_SUFFIX",
        description="Suffix for the shared trigger; set it to reuse the trigger across runs",
    )

    feed_initial_wait_seconds: float = Field(default=5.0, ge=0.0)
    feed_total_wait_seconds: float = Field(default=60.0, gt=0.0)
    producer_initial_wait_seconds: float = Field(default=1.0, ge=0.0)
    producer_total_wait_seconds: float = Field(default=60.0, gt=0.0)
    consumer_init_seconds: float = Field(default=10.0, ge=0.0)
    poll_limit: int = Field(default=100, gt=0)
    poll_attempts: int = Field(default=30, gt=0)
    poll_interval_seconds: float = Field(default=1.0, ge=0.0)
    cycle_attempts: int = Field(default=3, gt=0)
    cycle_retry_wait_seconds: float = Field(default=1.0, ge=0.0)
    health_attempts: int = Field(default=3, gt=0)
    health_retry_wait_seconds: float = Field(default=1.0, ge=0.0)

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _require_platform_auth(self) -> VerifierSettings:
        if not self.api_host.strip():
            raise ValueError("WHISK_API_HOST is required")
        if not self.auth.strip():
            raise ValueError("WHISK_AUTH is required")
        if ":" not in self.auth:
            raise ValueError("WHISK_AUTH must be in the form '<uuid>:<key>'")
        return self

    @model_validator(mode="after")
    def _merge_credentials_file(self) -> VerifierSettings:
        if self.credentials_file is None:
            return self

        try:
            raw = json.loads(self.credentials_file.read_text(encoding="utf-8"))
        except OSError as e:
            raise ValueError(f"Cannot read credentials file {self.credentials_file}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Credentials file must hold a JSON object: {self.credentials_file}")

        for key, attr in _CREDENTIAL_FIELDS.items():
            if getattr(self, attr) or key not in raw:
                continue
            setattr(self, attr, _credential_to_str(raw[key]))
        return self

    @property
    def brokers(self) -> list[str]:
        """Broker endpoints parsed from `MESSAGEHUB_BROKERS`."""

        raw = self.messagehub_brokers.strip()
        if not raw:
            return []
        if raw.startswith("["):
            parsed = json.loads(raw)
            return [str(b).strip() for b in parsed if str(b).strip()]
        return [b.strip() for b in raw.split(",") if b.strip()]

    @property
    def feed_parameters(self) -> FeedParameters:
        return FeedParameters(
            user=self.messagehub_user,
            password=self.messagehub_password,
            api_key=self.messagehub_api_key,
            kafka_admin_url=self.messagehub_kafka_admin_url,
            brokers=self.brokers,
            topic=self.topic,
        )

    @property
    def feed_action(self) -> str:
        return f"{self.messaging_package.rstrip('/')}/{self.feed_action_name}"

    @property
    def producer_action(self) -> str:
        return f"{self.messaging_package.rstrip('/')}/{self.producer_action_name}"

    @property
    def trigger_name_is_generated(self) -> bool:
        return not self.trigger_suffix.strip()

    def shared_trigger_name(self, *, now_ms: int | None = None) -> str:
        """Name of the trigger used by the feed verification.

        A configured suffix gives a stable name that later runs reuse; otherwise the
        name is unique to this run.
        """

        suffix = self.trigger_suffix.strip()
        if not suffix:
            suffix = str(now_ms if now_ms is not None else int(time.time() * 1000))
        return f"{SHARED_TRIGGER_BASE_NAME}-{suffix}"


def _credential_to_str(value: Any) -> str:
    if isinstance(value, list):
        return json.dumps([str(v) for v in value])
    return str(value)
