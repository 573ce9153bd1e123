"""Vote tally — picks the winning proposal.

Proposals are scanned in ascending id order and the leader only changes
on a strictly greater count, so on a tie the earliest id wins. The blank
slot at index 0 is counted like any other proposal and therefore wins
every tie it takes part in.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ballotbox.errors import NoVotesCast
from ballotbox.models.ballot import Proposal, TallyResult


def tally_proposals(proposals: Iterable[Proposal]) -> TallyResult:
    """Compute the tally over `proposals`.

    Raises:
        NoVotesCast: If no proposal received a vote.
    """
    ordered = sorted(proposals, key=lambda p: p.proposal_id)

    total_votes = 0
    winner: Optional[Proposal] = None
    for proposal in ordered:
        total_votes += proposal.vote_count
        if winner is None or proposal.vote_count > winner.vote_count:
            winner = proposal

    if total_votes == 0 or winner is None:
        raise NoVotesCast()

    return TallyResult(
        winning_proposal_id=winner.proposal_id,
        winning_description=winner.description,
        total_votes=total_votes,
        winning_vote_count=winner.vote_count,
    )
