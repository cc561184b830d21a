"""OpenWhisk REST client for the operations the health checks need.

This keeps platform calls out of the verification protocol and makes tests easy:
the client satisfies both `PlatformControl` and `ActivationQuery`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests

from messagehub_health.verifier.protocol.models import (
    ActivationRecord,
    ActivationRef,
    TriggerInfo,
)
from messagehub_health.verifier.protocol.ports import PlatformError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "_"


class WhiskError(PlatformError):
    """Raised when the OpenWhisk API cannot be reached or answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True, slots=True)
class EntityName:
    """A fully qualified entity name: `/<namespace>/<path>`.

    `path` is either a bare name or `<package>/<name>`.
    """

    namespace: str
    path: str

    @classmethod
    def parse(cls, name: str, *, default_namespace: str = DEFAULT_NAMESPACE) -> EntityName:
        raw = name.strip()
        if not raw.strip("/"):
            raise ValueError("entity name must not be empty")
        if raw.startswith("/"):
            parts = raw.strip("/").split("/", 1)
            if len(parts) != 2 or not parts[1]:
                raise ValueError(f"fully qualified name needs a namespace and a name: {name!r}")
            return cls(namespace=parts[0], path=parts[1])
        return cls(namespace=default_namespace, path=raw.strip("/"))

    @property
    def qualified(self) -> str:
        return f"/{self.namespace}/{self.path}"

    @property
    def short_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class WhiskClient:
    """Small wrapper around the OpenWhisk REST API (`/api/v1`)."""

    def __init__(
        self,
        *,
        api_host: str,
        auth: str,
        namespace: str = DEFAULT_NAMESPACE,
        session: requests.Session | None = None,
        verify: bool = True,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not api_host.strip():
            raise ValueError("OpenWhisk API host is required")
        if ":" not in auth:
            raise ValueError("OpenWhisk auth must be in the form '<uuid>:<key>'")

        host = api_host.strip().rstrip("/")
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"

        self._base_url = f"{host}/api/v1"
        self._auth = auth
        user, key = auth.split(":", 1)
        self._basic_auth = (user, key)
        self._headers = {
            "Accept": "application/json",
            "User-Agent": "messagehub-health",
        }
        self._namespace = namespace or DEFAULT_NAMESPACE
        self._session = session or requests.Session()
        self._verify = verify
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock

    @property
    def namespace(self) -> str:
        return self._namespace

    def _parse(self, name: str) -> EntityName:
        return EntityName.parse(name, default_namespace=self._namespace)

    def _url(self, *, namespace: str, collection: str, path: str = "") -> str:
        url = f"{self._base_url}/namespaces/{quote(namespace, safe='')}/{collection}"
        path = path.strip("/")
        if path:
            url = f"{url}/{quote(path, safe='/')}"
        return url

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, object] | None = None,
        json_body: object | None = None,
        allow_not_found: bool = False,
    ) -> Any:
        try:
            resp = self._session.request(
                method,
                url,
                params=dict(params) if params else None,
                json=json_body,
                auth=self._basic_auth,
                headers=self._headers,
                timeout=self._timeout,
                verify=self._verify,
            )
        except requests.RequestException as e:
            raise WhiskError(f"{method} {url} failed: {e}") from e

        if resp.status_code == 404 and allow_not_found:
            return None
        if resp.status_code >= 400:
            body = resp.text or ""
            raise WhiskError(
                f"{method} {url} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=body[:2000],
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise WhiskError(
                f"{method} {url} returned a non-JSON body", status_code=resp.status_code
            ) from e

    # -- triggers ---------------------------------------------------------------------------

    def get_trigger(self, name: str) -> TriggerInfo | None:
        entity = self._parse(name)
        data = self._request(
            "GET",
            self._url(namespace=entity.namespace, collection="triggers", path=entity.path),
            allow_not_found=True,
        )
        if data is None:
            logger.debug("Trigger not found", extra={"trigger": entity.qualified})
            return None

        feed: str | None = None
        annotations = data.get("annotations") if isinstance(data, dict) else None
        for annotation in annotations or []:
            if isinstance(annotation, dict) and annotation.get("key") == "feed":
                value = annotation.get("value")
                feed = value if isinstance(value, str) else None
        return TriggerInfo(
            namespace=str(data.get("namespace") or entity.namespace),
            name=str(data.get("name") or entity.path),
            feed=feed,
        )

    def create_trigger(self, name: str, *, feed: str, parameters: Mapping[str, object]) -> str:
        """Create a trigger and start its feed.

        Returns the activation id of the feed's CREATE lifecycle invocation; the trigger
        is only usable once that activation succeeds.
        """

        entity = self._parse(name)
        feed_entity = self._parse(feed)
        logger.info(
            "Creating trigger", extra={"trigger": entity.qualified, "feed": feed_entity.qualified}
        )

        self._request(
            "PUT",
            self._url(namespace=entity.namespace, collection="triggers", path=entity.path),
            params={"overwrite": "false"},
            json_body={"annotations": [{"key": "feed", "value": feed_entity.qualified}]},
        )

        payload: dict[str, object] = dict(parameters)
        payload.update(
            {
                "lifecycleEvent": "CREATE",
                "triggerName": entity.qualified,
                "authKey": self._auth,
            }
        )
        try:
            return self.invoke_action(feed_entity.qualified, payload)
        except WhiskError:
            logger.warning(
                "Feed invocation failed; removing the half-created trigger",
                extra={"trigger": entity.qualified},
            )
            try:
                self._request(
                    "DELETE",
                    self._url(namespace=entity.namespace, collection="triggers", path=entity.path),
                    allow_not_found=True,
                )
            except WhiskError as cleanup_error:
                logger.warning(
                    "Could not remove the half-created trigger",
                    extra={"trigger": entity.qualified, "error": str(cleanup_error)},
                )
            raise

    def delete_trigger(self, name: str, *, feed: str | None = None) -> None:
        entity = self._parse(name)
        if feed:
            self.invoke_action(
                feed,
                {
                    "lifecycleEvent": "DELETE",
                    "triggerName": entity.qualified,
                    "authKey": self._auth,
                },
            )
        self._request(
            "DELETE",
            self._url(namespace=entity.namespace, collection="triggers", path=entity.path),
            allow_not_found=True,
        )
        logger.info("Trigger deleted", extra={"trigger": entity.qualified})

    # -- actions and activations ------------------------------------------------------------

    def invoke_action(self, action: str, parameters: Mapping[str, object]) -> str:
        entity = self._parse(action)
        data = self._request(
            "POST",
            self._url(namespace=entity.namespace, collection="actions", path=entity.path),
            params={"blocking": "false"},
            json_body=dict(parameters),
        )
        activation_id = data.get("activationId") if isinstance(data, dict) else None
        if not isinstance(activation_id, str) or not activation_id:
            raise WhiskError(f"Invocation of {entity.qualified} returned no activation id")
        logger.debug(
            "Action invoked",
            extra={"action": entity.qualified, "activation_id": activation_id},
        )
        return activation_id

    def get_activation(self, activation_id: str) -> ActivationRecord | None:
        data = self._request(
            "GET",
            self._url(namespace=self._namespace, collection="activations", path=activation_id),
            allow_not_found=True,
        )
        if not isinstance(data, dict):
            return None
        return ActivationRecord.from_json(data)

    def wait_for_activation(
        self,
        activation_id: str,
        *,
        initial_wait: float,
        total_wait: float,
        interval: float = 1.0,
    ) -> ActivationRecord | None:
        """Wait until an activation record is available.

        Returns None when `total_wait` seconds (measured from the call, including
        `initial_wait`) pass without the record showing up.
        """

        if total_wait <= 0:
            raise ValueError("total_wait must be > 0")

        started = self._clock()
        if initial_wait > 0:
            self._sleep(initial_wait)

        while True:
            activation = self.get_activation(activation_id)
            if activation is not None:
                return activation
            if (self._clock() - started) >= total_wait:
                logger.warning(
                    "Activation did not become available",
                    extra={"activation_id": activation_id, "total_wait": total_wait},
                )
                return None
            self._sleep(interval)

    def list_activations(
        self, trigger_name: str, *, since_ms: int, limit: int
    ) -> list[ActivationRef]:
        entity = self._parse(trigger_name)
        data = self._request(
            "GET",
            self._url(namespace=entity.namespace, collection="activations"),
            params={
                "name": entity.short_name,
                "since": since_ms,
                "limit": limit,
                "docs": "false",
            },
        )
        if not isinstance(data, list):
            return []
        return [ActivationRef.from_json(item) for item in data if isinstance(item, dict)]

    def close(self) -> None:
        self._session.close()
