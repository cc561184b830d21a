"""Unit tests for cleanup-on-exit bookkeeping."""

from __future__ import annotations

import pytest

from messagehub_health.verifier.protocol.cleanup import AssetCleaner
from messagehub_health.verifier.protocol.ports import PlatformError


def test_registered_triggers_are_deleted_newest_first(platform) -> None:
    with AssetCleaner(platform) as cleaner:
        cleaner.register_trigger("first", feed="/whisk.system/messaging/f")
        cleaner.register_trigger("second")
        cleaner.register_trigger("first")
        assert cleaner.registered == ["first", "second"]

    assert platform.deleted == ["second", "first"]


def test_cleanup_runs_when_the_run_fails(platform) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        with AssetCleaner(platform) as cleaner:
            cleaner.register_trigger("t")
            raise RuntimeError("boom")

    assert platform.deleted == ["t"]


def test_delete_failures_do_not_stop_cleanup(platform) -> None:
    real_delete = platform.delete_trigger

    def _delete(name: str, *, feed: str | None = None) -> None:
        if name == "broken":
            raise PlatformError("HTTP 500")
        real_delete(name, feed=feed)

    platform.delete_trigger = _delete
    cleaner = AssetCleaner(platform)
    cleaner.register_trigger("ok")
    cleaner.register_trigger("broken")

    assert cleaner.cleanup() == ["ok"]
    assert cleaner.registered == []
