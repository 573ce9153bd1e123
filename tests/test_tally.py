"""Tests for the tally — proves earliest-id tie-break and the no-vote rejection."""

import pytest

from ballotbox.engine.tally import tally_proposals
from ballotbox.errors import NoVotesCast
from ballotbox.models.ballot import Proposal


def _proposals(*counts: int) -> list[Proposal]:
    result = [Proposal(proposal_id=0, description="Blank vote", vote_count=counts[0])]
    for i, count in enumerate(counts[1:], start=1):
        result.append(Proposal(
            proposal_id=i, description=f"proposal{i}",
            vote_count=count, proposer=f"voter{i}",
        ))
    return result


class TestWinnerSelection:
    def test_single_vote(self) -> None:
        result = tally_proposals(_proposals(0, 1))
        assert result.winning_description == "proposal1"
        assert result.total_votes == 1
        assert result.winning_vote_count == 1

    def test_clear_majority(self) -> None:
        result = tally_proposals(_proposals(1, 1, 2, 1))
        assert result.winning_proposal_id == 2
        assert result.total_votes == 5
        assert result.winning_vote_count == 2

    def test_blank_can_win(self) -> None:
        result = tally_proposals(_proposals(2, 1))
        assert result.winning_proposal_id == 0
        assert result.winning_description == "Blank vote"


class TestTieBreak:
    def test_earliest_id_wins(self) -> None:
        result = tally_proposals(_proposals(0, 1, 2, 2))
        assert result.winning_proposal_id == 2

    def test_blank_wins_its_ties(self) -> None:
        result = tally_proposals(_proposals(1, 1))
        assert result.winning_proposal_id == 0

    def test_input_order_does_not_matter(self) -> None:
        proposals = _proposals(0, 3, 3)
        result = tally_proposals(list(reversed(proposals)))
        assert result.winning_proposal_id == 1


class TestNoVotes:
    def test_nobody_voted(self) -> None:
        with pytest.raises(NoVotesCast):
            tally_proposals(_proposals(0, 0, 0))

    def test_no_proposals(self) -> None:
        with pytest.raises(NoVotesCast):
            tally_proposals([])
