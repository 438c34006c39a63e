"""
Error taxonomy for the ballot engine.

Every error carries a stable ``reason`` code (``already_voted``,
``capacity_reached`` ...) that callers can match on, plus a human readable
message. Errors are raised before any state is written.
"""

from __future__ import annotations

from typing import Dict, Optional


class BallotError(Exception):
    """Base class for every rejection raised by the engine."""

    kind = "ballot_error"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        self.reason = reason
        self.message = message or reason.replace("_", " ")
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.reason, "detail": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(reason={self.reason!r}, message={self.message!r})"


class ValidationError(BallotError):
    kind = "validation"


class AuthorizationError(BallotError):
    kind = "authorization"


class StateConflictError(BallotError):
    kind = "state_conflict"


__all__ = [
    "BallotError",
    "ValidationError",
    "AuthorizationError",
    "StateConflictError",
]
