"""OpenWhisk binding of the platform ports and the feed health probe."""

from messagehub_health.verifier.whisk.client import WhiskClient, WhiskError
from messagehub_health.verifier.whisk.health import HealthProbe

__all__ = ["HealthProbe", "WhiskClient", "WhiskError"]
