"""
Ballot registry: creates ballots and keeps an append-only catalogue of them.

Records are snapshots taken when a ballot is created and are never refreshed;
``get_ballot_status`` is the one read that goes through to the live ballot.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

from ballot_engine import events
from ballot_engine.ballot import Ballot, new_ballot_id
from ballot_engine.events import BallotEvent, EventSink, log_event
from ballot_engine.exceptions import BallotError, ValidationError
from ballot_engine.models import (
    BallotDetails,
    BallotRecord,
    RegistryBallotStatus,
    check_proposal_count,
)
from ballot_engine.security import normalize_identity
from ballot_engine.security.logger import ballot_logger as logger

REGISTRY_SUBJECT = "registry"


class BallotRegistry:
    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self._sink: EventSink = sink if sink is not None else log_event
        self._lock = threading.RLock()
        # ordered by creation
        self._ballots: Dict[str, Ballot] = {}
        self._records: List[BallotRecord] = []
        self._by_owner: Dict[str, List[int]] = {}

    def create_ballot(
        self,
        caller: str,
        proposal_names: Sequence[str],
        description: str,
        max_votes: int,
        allow_delegation: bool,
    ) -> str:
        try:
            owner = normalize_identity(caller)
            check_proposal_count(proposal_names)
            with self._lock:
                ballot_id = new_ballot_id()
                while ballot_id in self._ballots:
                    ballot_id = new_ballot_id()
                ballot = Ballot(
                    proposal_names,
                    max_votes,
                    allow_delegation,
                    owner,
                    ballot_id=ballot_id,
                    sink=self._sink,
                )
                record = BallotRecord(
                    ballot_id=ballot_id,
                    description=description,
                    owner=owner,
                    max_votes=ballot.max_votes,
                    allow_delegation=ballot.allow_delegation,
                    proposal_count=ballot.get_proposal_count(),
                    is_active=True,
                )
                self._ballots[ballot_id] = ballot
                self._records.append(record)
                self._by_owner.setdefault(owner, []).append(len(self._records) - 1)
                logger.info("registry: ballot %s created by %s (%r)", ballot_id, owner, description)
                # still under the lock so events arrive in catalogue order
                self._sink(BallotEvent(
                    name=events.BALLOT_CREATED,
                    subject=REGISTRY_SUBJECT,
                    payload={
                        "id": ballot_id,
                        "description": description,
                        "owner": owner,
                        "max_votes": record.max_votes,
                        "allow_delegation": record.allow_delegation,
                        "proposal_count": record.proposal_count,
                    },
                ))
        except BallotError as exc:
            logger.warning("create_ballot rejected for %s (%s)", caller, exc.reason)
            raise
        return ballot_id

    def get_all_ballots(self) -> List[BallotRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records]

    def get_user_ballots(self, owner: str) -> List[BallotRecord]:
        who = normalize_identity(owner)
        with self._lock:
            return [self._records[i].model_copy() for i in self._by_owner.get(who, [])]

    def get_active_ballots(self) -> List[BallotRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records if r.is_active]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get_record(self, index: int) -> BallotRecord:
        with self._lock:
            return self._record_at(index).model_copy()

    def _record_at(self, index: int) -> BallotRecord:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._records):
            raise ValidationError("invalid_ballot_index", "Invalid ballot index")
        return self._records[index]

    def get_ballot(self, ballot_id: str) -> Ballot:
        with self._lock:
            ballot = self._ballots.get((ballot_id or "").strip().lower())
        if ballot is None:
            raise ValidationError("unknown_ballot", "Ballot not found")
        return ballot

    def get_ballot_status(self, index: int) -> RegistryBallotStatus:
        with self._lock:
            record = self._record_at(index)
            ballot = self._ballots[record.ballot_id]
        status = ballot.get_ballot_status()
        return RegistryBallotStatus(
            is_active=record.is_active,
            total_voters=status.total_voters,
            votes_count=status.votes_count,
            voting_open=status.voting_open,
            allow_delegation=status.allow_delegation,
            max_votes=status.max_votes,
        )

    def get_ballot_details(self, index: int) -> BallotDetails:
        with self._lock:
            record = self._record_at(index).model_copy()
            ballot = self._ballots[record.ballot_id]
        return BallotDetails(
            record=record,
            status=ballot.get_ballot_status(),
            proposals=ballot.get_proposals(),
        )


__all__ = ["BallotRegistry", "REGISTRY_SUBJECT"]
