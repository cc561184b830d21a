"""The asynchronous-event verification protocol.

Provisioner -> readiness gate -> retry orchestrator{emitter -> poller -> matcher}.
"""

from messagehub_health.verifier.protocol.errors import (
    AmbiguousMatch,
    Diagnostics,
    EmissionFailed,
    HealthCheckFailed,
    NoActivationObserved,
    NoMatchFound,
    ProvisioningFailed,
    StructuralMismatch,
    VerificationError,
)

__all__ = [
    "AmbiguousMatch",
    "Diagnostics",
    "EmissionFailed",
    "HealthCheckFailed",
    "NoActivationObserved",
    "NoMatchFound",
    "ProvisioningFailed",
    "StructuralMismatch",
    "VerificationError",
]
