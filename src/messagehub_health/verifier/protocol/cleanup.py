"""Delete triggers created during a run when the run ends."""

from __future__ import annotations

import logging
from types import TracebackType

from messagehub_health.verifier.protocol.ports import PlatformControl, PlatformError

logger = logging.getLogger(__name__)


class AssetCleaner:
    """Context manager tracking triggers to delete on exit.

    Deletion failures are logged and never replace the error that ended the run.
    """

    def __init__(self, platform: PlatformControl) -> None:
        self._platform = platform
        self._triggers: list[tuple[str, str | None]] = []

    @property
    def registered(self) -> list[str]:
        return [name for name, _ in self._triggers]

    def register_trigger(self, name: str, *, feed: str | None = None) -> None:
        if any(existing == name for existing, _ in self._triggers):
            return
        self._triggers.append((name, feed))

    def cleanup(self) -> list[str]:
        """Delete registered triggers, newest first; returns the names deleted."""

        deleted: list[str] = []
        while self._triggers:
            name, feed = self._triggers.pop()
            try:
                self._platform.delete_trigger(name, feed=feed)
            except PlatformError as e:
                logger.warning(
                    "Failed to delete trigger", extra={"trigger": name, "error": str(e)}
                )
                continue
            deleted.append(name)
        return deleted

    def __enter__(self) -> AssetCleaner:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()
