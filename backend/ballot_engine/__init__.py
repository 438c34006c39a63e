"""Permissioned ballot engine: whitelisted voters, delegation and a ballot registry."""

from ballot_engine.ballot import Ballot
from ballot_engine.events import BallotEvent, EventLog
from ballot_engine.exceptions import (
    AuthorizationError,
    BallotError,
    StateConflictError,
    ValidationError,
)
from ballot_engine.models import (
    BallotDetails,
    BallotRecord,
    BallotStatus,
    Proposal,
    RegistryBallotStatus,
    Voter,
)
from ballot_engine.registry import BallotRegistry
from ballot_engine.security import AdminAuthority

__version__ = "0.1.0"

__all__ = [
    "AdminAuthority",
    "AuthorizationError",
    "Ballot",
    "BallotDetails",
    "BallotError",
    "BallotEvent",
    "BallotRecord",
    "BallotRegistry",
    "BallotStatus",
    "EventLog",
    "Proposal",
    "RegistryBallotStatus",
    "StateConflictError",
    "ValidationError",
    "Voter",
]
