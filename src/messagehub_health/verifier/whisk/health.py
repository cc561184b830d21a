"""Probe of the feed provider's `/health` endpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests

from messagehub_health.verifier.protocol.errors import Diagnostics, HealthCheckFailed
from messagehub_health.verifier.protocol.retry import retry

logger = logging.getLogger(__name__)


class HealthProbe:
    """GET a health endpoint and look for an identifier in its body."""

    def __init__(
        self,
        url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not url.strip():
            raise ValueError("health URL is required")
        self._url = url.strip()
        self._session = session or requests.Session()
        self._timeout = timeout
        self._verify = verify
        self._sleep = sleep

    @property
    def url(self) -> str:
        return self._url

    def fetch(self) -> tuple[int, str]:
        resp = self._session.get(self._url, timeout=self._timeout, verify=self._verify)
        return resp.status_code, resp.text or ""

    def _check_once(self, identifier: str) -> str:
        diagnostics = Diagnostics(token=identifier)
        try:
            status, body = self.fetch()
        except requests.RequestException as e:
            raise HealthCheckFailed(
                f"GET {self._url} failed: {e}", diagnostics=diagnostics
            ) from e

        if status != 200:
            raise HealthCheckFailed(
                f"GET {self._url} returned HTTP {status}", diagnostics=diagnostics
            )
        if identifier not in body:
            raise HealthCheckFailed(
                f"{identifier!r} not listed by {self._url}",
                diagnostics=Diagnostics(token=identifier, payload={"body": body[:2000]}),
            )
        return body

    def check_contains(
        self, identifier: str, *, attempts: int = 3, wait_before_retry: float = 1.0
    ) -> str:
        """Return the body once it lists `identifier`; raise `HealthCheckFailed` otherwise."""

        body = retry(
            lambda _attempt: self._check_once(identifier),
            attempts=attempts,
            wait_before_retry=wait_before_retry,
            retriable=lambda exc: isinstance(exc, HealthCheckFailed),
            sleep=self._sleep,
            description="Health probe",
        )
        logger.info("Health endpoint lists identifier", extra={"identifier": identifier})
        return body
