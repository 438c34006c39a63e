"""
Ballot state machine: whitelist, direct votes, delegated votes, winner.

Voting with delegation works on weights. A whitelisted voter starts with a
weight of 1. Delegating hands the voter's weight to the current end of the
delegate's chain: if that voter already voted the weight lands on their
proposal straight away, otherwise it is added to their weight and realised
when they vote (or delegate further). Either way the delegator is marked as
having voted, so each unit of weight is counted exactly once.

All state lives behind one re-entrant lock per ballot. Every mutation checks
all of its preconditions before it writes anything.
"""

from __future__ import annotations

import secrets
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from ballot_engine import events
from ballot_engine.events import BallotEvent, EventSink, log_event
from ballot_engine.exceptions import (
    AuthorizationError,
    BallotError,
    StateConflictError,
    ValidationError,
)
from ballot_engine.models import (
    BallotStatus,
    Proposal,
    Voter,
    check_max_votes,
    check_proposal_names,
)
from ballot_engine.security import AdminAuthority, normalize_identity
from ballot_engine.security.logger import ballot_logger as logger


def new_ballot_id() -> str:
    return "0x" + secrets.token_hex(20)


class Ballot:
    def __init__(
        self,
        proposal_names: Sequence[str],
        max_votes: int,
        allow_delegation: bool,
        owner: str,
        ballot_id: Optional[str] = None,
        sink: Optional[EventSink] = None,
    ) -> None:
        names = check_proposal_names(proposal_names)
        self._max_votes = check_max_votes(max_votes)
        self._allow_delegation = bool(allow_delegation)
        self._id = ballot_id or new_ballot_id()
        self._sink: EventSink = sink if sink is not None else log_event
        self._lock = threading.RLock()
        self._pending: List[BallotEvent] = []

        self._proposals: List[Proposal] = [Proposal(name=n) for n in names]
        self._voters: Dict[str, Voter] = {}
        self._auth = AdminAuthority(owner, emit=self._emit)
        self._total_voters = 0
        self._votes_count = 0
        self._voting_open = True
        logger.info(
            "ballot %s created by %s (%d proposals, max_votes=%d, delegation=%s)",
            self._id, self._auth.owner, len(names), self._max_votes, self._allow_delegation,
        )

    @property
    def ballot_id(self) -> str:
        return self._id

    @property
    def owner(self) -> str:
        return self._auth.owner

    @property
    def allow_delegation(self) -> bool:
        return self._allow_delegation

    @property
    def max_votes(self) -> int:
        return self._max_votes

    @property
    def total_voters(self) -> int:
        with self._lock:
            return self._total_voters

    @property
    def votes_count(self) -> int:
        with self._lock:
            return self._votes_count

    @property
    def voting_open(self) -> bool:
        with self._lock:
            return self._voting_open

    @contextmanager
    def _mutating(self, operation: str) -> Iterator[None]:
        # Events raised by the body are queued and only reach the sink once
        # every write of the operation has been applied.
        with self._lock:
            outer = self._pending
            self._pending = []
            try:
                yield
                emitted = self._pending
            except BallotError as exc:
                logger.warning("ballot %s: %s rejected (%s)", self._id, operation, exc.reason)
                raise
            finally:
                self._pending = outer
            for event in emitted:
                self._sink(event)

    def _emit(self, name: str, payload: Dict[str, object]) -> None:
        self._pending.append(BallotEvent(name=name, subject=self._id, payload=payload))

    def _voter(self, identity: str) -> Voter:
        # zero-valued record on first reference
        voter = self._voters.get(identity)
        if voter is None:
            voter = Voter()
            self._voters[identity] = voter
        return voter

    def add_admin(self, caller: str, target: str) -> None:
        with self._mutating("add_admin"):
            self._auth.add_admin(caller, target)

    def remove_admin(self, caller: str, target: str) -> None:
        with self._mutating("remove_admin"):
            self._auth.remove_admin(caller, target)

    def is_admin(self, identity: str) -> bool:
        with self._lock:
            return self._auth.is_admin(identity)

    def whitelist_voter(self, caller: str, voter: str) -> None:
        with self._mutating("whitelist_voter"):
            self._auth.require_admin(caller)
            who = normalize_identity(voter)
            current = self._voters.get(who)
            if current is not None and current.is_whitelisted:
                raise StateConflictError("already_whitelisted", "Voter already whitelisted")
            if self._total_voters >= self._max_votes:
                raise StateConflictError("capacity_reached", "Maximum number of voters reached")
            self._add_voter(who)

    def whitelist_voters(self, caller: str, voters: Iterable[str]) -> List[str]:
        """Whitelist many voters at once.

        Unlike :meth:`whitelist_voter` this never fails on a voter that is
        already whitelisted, it simply skips it. Processing stops once the
        ballot is full; the remaining entries are left untouched. Returns the
        voters that were actually added.
        """
        with self._mutating("whitelist_voters"):
            self._auth.require_admin(caller)
            if isinstance(voters, str):
                raise ValidationError("invalid_identity", "voters must be a list of identities, not a string")
            # a malformed entry rejects the whole batch before anything is written
            entries = [normalize_identity(v) for v in voters]
            added = []
            for position, who in enumerate(entries):
                if self._total_voters >= self._max_votes:
                    logger.info("ballot %s full, %d entries not processed",
                                self._id, len(entries) - position)
                    break
                current = self._voters.get(who)
                if current is not None and current.is_whitelisted:
                    continue
                self._add_voter(who)
                added.append(who)
            return added

    def _add_voter(self, who: str) -> None:
        voter = self._voter(who)
        voter.is_whitelisted = True
        voter.weight = 1
        self._total_voters += 1
        logger.info("ballot %s: voter %s whitelisted", self._id, who)
        self._emit(events.VOTER_WHITELISTED, {"voter": who})

    def _require_can_vote(self, who: str) -> Voter:
        if not self._voting_open:
            raise StateConflictError("voting_closed", "Voting is not open")
        voter = self._voters.get(who)
        if voter is None or not voter.is_whitelisted:
            raise AuthorizationError("not_whitelisted", "Not whitelisted to vote")
        if voter.has_voted:
            raise StateConflictError("already_voted", "Already voted")
        return voter

    def delegate(self, caller: str, to: str) -> str:
        """Delegate the caller's vote to ``to``.

        The delegation is attached to the end of ``to``'s current chain and
        that voter's identity is returned.
        """
        with self._mutating("delegate"):
            who = normalize_identity(caller)
            target = normalize_identity(to)
            if not self._voting_open:
                raise StateConflictError("voting_closed", "Voting is not open")
            if not self._allow_delegation:
                raise StateConflictError(
                    "delegation_disabled", "Delegation not allowed in this ballot"
                )
            sender = self._require_can_vote(who)
            if target == who:
                raise StateConflictError("self_delegation", "Cannot delegate to yourself")
            delegate_voter = self._voters.get(target)
            if delegate_voter is None or not delegate_voter.is_whitelisted:
                raise ValidationError("delegate_not_whitelisted", "Delegate is not whitelisted")

            resolved = self._resolve_delegate(who, target)
            final = self._voters[resolved]

            sender.delegate_to = resolved
            sender.has_voted = True
            if final.has_voted:
                self._proposals[final.voted_proposal_id].vote_count += sender.weight
            else:
                final.weight += sender.weight
            logger.info("ballot %s: %s delegated to %s (weight %d)",
                        self._id, who, resolved, sender.weight)
            self._emit(events.DELEGATED_VOTE, {"from": who, "to": resolved})
            return resolved

    def _resolve_delegate(self, who: str, target: str) -> str:
        # Walk forward along delegate_to; a chain can never be longer than
        # the number of registered voters.
        node = target
        for _ in range(self._total_voters):
            nxt = self._voters[node].delegate_to
            if nxt is None:
                return node
            if nxt == who:
                raise StateConflictError("delegation_loop", "Loop in delegation detected")
            node = nxt
        raise StateConflictError("delegation_loop", "Loop in delegation detected")

    def vote(self, caller: str, proposal_id: int) -> None:
        with self._mutating("vote"):
            who = normalize_identity(caller)
            voter = self._require_can_vote(who)
            if (
                isinstance(proposal_id, bool)
                or not isinstance(proposal_id, int)
                or not 0 <= proposal_id < len(self._proposals)
            ):
                raise ValidationError("invalid_proposal", "Invalid proposal")

            voter.has_voted = True
            voter.voted_proposal_id = proposal_id
            self._proposals[proposal_id].vote_count += voter.weight
            self._votes_count += 1
            logger.info("ballot %s: %s voted for %d (weight %d)",
                        self._id, who, proposal_id, voter.weight)
            self._emit(events.VOTE_CAST, {"voter": who, "proposal_id": proposal_id})

    def set_voting_state(self, caller: str, is_open: bool) -> None:
        with self._mutating("set_voting_state"):
            self._auth.require_admin(caller)
            self._voting_open = bool(is_open)
            logger.info("ballot %s: voting %s", self._id, "opened" if is_open else "closed")
            self._emit(events.VOTING_STATE_CHANGED, {"is_open": self._voting_open})

    def winning_proposal(self) -> int:
        with self._lock:
            winning_vote_count = 0
            winner = 0
            for i, proposal in enumerate(self._proposals):
                if proposal.vote_count > winning_vote_count:
                    winning_vote_count = proposal.vote_count
                    winner = i
            return winner

    def winner_name(self) -> str:
        with self._lock:
            return self._proposals[self.winning_proposal()].name

    def get_proposal_count(self) -> int:
        return len(self._proposals)

    def get_proposal(self, index: int) -> Proposal:
        with self._lock:
            if not 0 <= index < len(self._proposals):
                raise ValidationError("invalid_proposal", "Invalid proposal")
            return self._proposals[index].model_copy()

    def get_proposals(self) -> List[Proposal]:
        with self._lock:
            return [p.model_copy() for p in self._proposals]

    def get_voter(self, identity: str) -> Voter:
        with self._lock:
            voter = self._voters.get(normalize_identity(identity))
            return voter.model_copy() if voter is not None else Voter()

    def get_ballot_status(self) -> BallotStatus:
        with self._lock:
            return BallotStatus(
                total_voters=self._total_voters,
                votes_count=self._votes_count,
                voting_open=self._voting_open,
                allow_delegation=self._allow_delegation,
                max_votes=self._max_votes,
            )

    def __repr__(self) -> str:
        return f"Ballot(id={self._id!r}, owner={self.owner!r}, proposals={len(self._proposals)})"


__all__ = ["Ballot", "new_ballot_id"]
