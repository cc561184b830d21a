"""Message Hub feed health checks.

End-to-end verification that a message produced to a Message Hub topic is picked
up by the OpenWhisk Message Hub feed and shows up as a trigger activation:
- configuration loaded from `.env`
- structured logging
- idempotent trigger provisioning, retried produce/poll/match cycles
"""

__version__ = "0.1.0"

from messagehub_health.verifier.config import VerifierSettings

__all__ = ["__version__", "VerifierSettings"]
