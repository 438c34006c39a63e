import pytest

from ballot_engine.ballot import Ballot
from ballot_engine.events import EventLog
from ballot_engine.exceptions import AuthorizationError, StateConflictError, ValidationError

OWNER = "0xowner"
PROPOSALS = ["Proposal 1", "Proposal 2", "Proposal 3"]


def _ballot(voters=(), sink=None, **kwargs):
    ballot = Ballot(
        kwargs.get("proposals", PROPOSALS),
        kwargs.get("max_votes", 100),
        kwargs.get("allow_delegation", True),
        OWNER,
        sink=sink,
    )
    if voters:
        ballot.whitelist_voters(OWNER, voters)
    return ballot


def test_rejects_empty_proposals():
    with pytest.raises(ValidationError) as exc:
        Ballot([], 10, True, OWNER)
    assert exc.value.reason == "no_proposals"


def test_rejects_more_than_five_proposals():
    with pytest.raises(ValidationError) as exc:
        Ballot([f"P{i}" for i in range(6)], 10, True, OWNER)
    assert exc.value.reason == "too_many_proposals"
    assert Ballot([f"P{i}" for i in range(5)], 10, True, OWNER).get_proposal_count() == 5


def test_rejects_oversized_proposal_name():
    with pytest.raises(ValidationError) as exc:
        Ballot(["x" * 33], 10, True, OWNER)
    assert exc.value.reason == "invalid_proposal_name"
    assert Ballot(["x" * 32], 10, True, OWNER).winner_name() == "x" * 32


def test_rejects_negative_capacity():
    with pytest.raises(ValidationError) as exc:
        Ballot(["A"], -1, True, OWNER)
    assert exc.value.reason == "invalid_max_votes"


def test_vote_counts():
    sink = EventLog()
    ballot = _ballot(["0xv1"], sink=sink)
    ballot.vote("0xv1", 0)

    voter = ballot.get_voter("0xv1")
    assert voter.has_voted
    assert voter.voted_proposal_id == 0
    assert ballot.get_proposal(0).vote_count == 1
    assert ballot.votes_count == 1
    assert sink.named("VoteCast")[0].payload == {"voter": "0xv1", "proposal_id": 0}


def test_non_whitelisted_cannot_vote():
    ballot = _ballot()
    with pytest.raises(AuthorizationError) as exc:
        ballot.vote("0xv1", 0)
    assert exc.value.reason == "not_whitelisted"
    assert ballot.votes_count == 0


def test_cannot_vote_twice():
    ballot = _ballot(["0xv1"])
    ballot.vote("0xv1", 0)
    with pytest.raises(StateConflictError) as exc:
        ballot.vote("0xv1", 1)
    assert exc.value.reason == "already_voted"
    assert ballot.get_proposal(1).vote_count == 0
    assert ballot.votes_count == 1


@pytest.mark.parametrize("proposal_id", [-1, 3, 99])
def test_invalid_proposal(proposal_id):
    ballot = _ballot(["0xv1"])
    with pytest.raises(ValidationError) as exc:
        ballot.vote("0xv1", proposal_id)
    assert exc.value.reason == "invalid_proposal"
    assert not ballot.get_voter("0xv1").has_voted
    assert ballot.votes_count == 0


def test_close_and_reopen_voting():
    sink = EventLog()
    ballot = _ballot(["0xv1"], sink=sink)
    ballot.set_voting_state(OWNER, False)
    assert ballot.get_ballot_status().voting_open is False

    with pytest.raises(StateConflictError) as exc:
        ballot.vote("0xv1", 0)
    assert exc.value.reason == "voting_closed"
    assert not ballot.get_voter("0xv1").has_voted

    ballot.set_voting_state(OWNER, True)
    assert ballot.get_ballot_status().voting_open is True
    ballot.vote("0xv1", 0)
    assert ballot.votes_count == 1
    changes = [e.payload["is_open"] for e in sink.named("VotingStateChanged")]
    assert changes == [False, True]


def test_set_voting_state_is_idempotent():
    sink = EventLog()
    ballot = _ballot(sink=sink)
    ballot.set_voting_state(OWNER, True)
    ballot.set_voting_state(OWNER, True)
    assert ballot.voting_open
    assert len(sink.named("VotingStateChanged")) == 2


def test_non_admin_cannot_toggle_voting():
    ballot = _ballot(["0xv1"])
    with pytest.raises(AuthorizationError):
        ballot.set_voting_state("0xv1", False)
    assert ballot.voting_open


def test_winner():
    ballot = _ballot(["0xv1", "0xv2", "0xv3"])
    ballot.vote("0xv1", 0)
    ballot.vote("0xv2", 1)
    ballot.vote("0xv3", 1)
    assert ballot.winning_proposal() == 1
    assert ballot.winner_name() == "Proposal 2"


def test_tie_goes_to_lowest_index():
    ballot = _ballot(["0xv1", "0xv2", "0xv3", "0xv4", "0xv5"])
    ballot.vote("0xv1", 0)
    ballot.vote("0xv2", 1)
    ballot.vote("0xv3", 1)
    ballot.vote("0xv4", 2)
    ballot.vote("0xv5", 2)
    # tally [1, 2, 2]
    assert [p.vote_count for p in ballot.get_proposals()] == [1, 2, 2]
    assert ballot.winning_proposal() == 1


def test_no_votes_winner_is_first():
    ballot = _ballot()
    assert ballot.winning_proposal() == 0
    assert ballot.winner_name() == "Proposal 1"


def test_returned_records_are_copies():
    ballot = _ballot(["0xv1"])
    ballot.get_voter("0xv1").weight = 50
    ballot.get_proposal(0).vote_count = 50
    ballot.vote("0xv1", 0)
    assert ballot.get_proposal(0).vote_count == 1


def test_vote_applied_before_sink_runs():
    observed = []
    holder = {}

    def sink(event):
        if event.name == "VoteCast":
            ballot = holder["ballot"]
            observed.append((ballot.votes_count, ballot.get_proposal(0).vote_count))
            raise RuntimeError("sink unavailable")

    ballot = _ballot(["0xv1"], sink=sink)
    holder["ballot"] = ballot
    with pytest.raises(RuntimeError):
        ballot.vote("0xv1", 0)
    assert observed == [(1, 1)]
    assert ballot.get_voter("0xv1").has_voted
    assert ballot.votes_count == 1
