"""Failure taxonomy of the verification protocol.

Every failure carries a `Diagnostics` snapshot so a failed run can be diagnosed
from its report alone. `retriable` tells the retry orchestrator whether another
emit/poll/match cycle could change the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Diagnostics:
    trigger_name: str | None = None
    token: str | None = None
    records_seen: tuple[str, ...] = ()
    payload: dict[str, Any] | None = field(default=None, compare=False)

    def to_json(self) -> dict[str, object]:
        return {
            "trigger_name": self.trigger_name,
            "token": self.token,
            "records_seen": list(self.records_seen),
            "payload": self.payload,
        }


class VerificationError(Exception):
    """Base class for all verification failures."""

    retriable: bool = False
    kind: str = "verification_failed"

    def __init__(self, message: str, *, diagnostics: Diagnostics | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.diagnostics = diagnostics or Diagnostics()

    def to_json(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "message": self.message,
            "retriable": self.retriable,
            "diagnostics": self.diagnostics.to_json(),
        }


class ProvisioningFailed(VerificationError):
    """The trigger could not be looked up or created. Fatal for the run."""

    kind = "provisioning_failed"


class EmissionFailed(VerificationError):
    retriable = True
    kind = "emission_failed"


class NoActivationObserved(VerificationError):
    retriable = True
    kind = "no_activation_observed"


class NoMatchFound(VerificationError):
    retriable = True
    kind = "no_match_found"


class AmbiguousMatch(VerificationError):
    """More than one activation carries the token; a retry cannot disambiguate."""

    kind = "ambiguous_match"


class StructuralMismatch(VerificationError):
    """The matched activation does not hold the expected message."""

    kind = "structural_mismatch"


class HealthCheckFailed(VerificationError):
    kind = "health_check_failed"
