from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ballot_engine.exceptions import ValidationError

MAX_PROPOSALS = 5
# Proposal labels are fixed-size 32 byte values.
PROPOSAL_NAME_MAX_BYTES = 32


class Proposal(BaseModel):
    name: str
    vote_count: int = Field(default=0, ge=0)


class Voter(BaseModel):
    has_voted: bool = False
    is_whitelisted: bool = False
    voted_proposal_id: Optional[int] = None
    delegate_to: Optional[str] = None
    weight: int = Field(default=0, ge=0)


class BallotStatus(BaseModel):
    total_voters: int
    votes_count: int
    voting_open: bool
    allow_delegation: bool
    max_votes: int


class BallotRecord(BaseModel):
    ballot_id: str
    description: str
    owner: str
    max_votes: int
    allow_delegation: bool
    proposal_count: int
    is_active: bool = True


class RegistryBallotStatus(BaseModel):
    is_active: bool
    total_voters: int
    votes_count: int
    voting_open: bool
    allow_delegation: bool
    max_votes: int


class BallotDetails(BaseModel):
    record: BallotRecord
    status: BallotStatus
    proposals: List[Proposal]


def check_proposal_count(proposal_names: Sequence[str]) -> None:
    if len(proposal_names) == 0:
        raise ValidationError("no_proposals", "Must provide at least one proposal")
    if len(proposal_names) > MAX_PROPOSALS:
        raise ValidationError(
            "too_many_proposals", f"Maximum {MAX_PROPOSALS} proposals allowed"
        )


def check_proposal_names(proposal_names: Sequence[str]) -> List[str]:
    check_proposal_count(proposal_names)
    names = []
    for name in proposal_names:
        if not isinstance(name, str) or not name:
            raise ValidationError("invalid_proposal_name", "Proposal name must be a non-empty string")
        if len(name.encode("utf-8")) > PROPOSAL_NAME_MAX_BYTES:
            raise ValidationError(
                "invalid_proposal_name",
                f"Proposal name {name!r} exceeds {PROPOSAL_NAME_MAX_BYTES} bytes",
            )
        names.append(name)
    return names


def check_max_votes(max_votes: int) -> int:
    # bool is an int subclass but never a capacity
    if isinstance(max_votes, bool) or not isinstance(max_votes, int) or max_votes < 0:
        raise ValidationError("invalid_max_votes", "maxVotes must be a non-negative integer")
    return max_votes
