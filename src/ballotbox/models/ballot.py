"""Ballot data models.

The workflow is a strict six-phase line. Voters and proposals are
append-only records; the only field that moves after creation is a
proposal's vote count (and a voter's vote flags). The tally result is
computed once and frozen.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class WorkflowStatus(str, enum.Enum):
    """Election workflow phases, in order.

    Progression is one-way and one step at a time.
    """
    REGISTERING_VOTERS = "registering_voters"
    PROPOSALS_REGISTRATION_STARTED = "proposals_registration_started"
    PROPOSALS_REGISTRATION_ENDED = "proposals_registration_ended"
    VOTING_SESSION_STARTED = "voting_session_started"
    VOTING_SESSION_ENDED = "voting_session_ended"
    VOTES_TALLIED = "votes_tallied"

    @property
    def ordinal(self) -> int:
        """Ordinal position in the workflow (0 = REGISTERING_VOTERS)."""
        return PHASE_ORDER.index(self)

    def next(self) -> Optional[WorkflowStatus]:
        """The phase that follows this one, or None for the last phase."""
        position = self.ordinal
        if position + 1 >= len(PHASE_ORDER):
            return None
        return PHASE_ORDER[position + 1]


PHASE_ORDER: tuple[WorkflowStatus, ...] = (
    WorkflowStatus.REGISTERING_VOTERS,
    WorkflowStatus.PROPOSALS_REGISTRATION_STARTED,
    WorkflowStatus.PROPOSALS_REGISTRATION_ENDED,
    WorkflowStatus.VOTING_SESSION_STARTED,
    WorkflowStatus.VOTING_SESSION_ENDED,
    WorkflowStatus.VOTES_TALLIED,
)

# Index of the reserved abstention slot.
BLANK_PROPOSAL_ID = 0


@dataclass
class Voter:
    """An identity admitted to the election.

    Unknown identities are represented by an unregistered Voter so that
    lookups never return None.
    """
    identity: str
    is_registered: bool = False
    has_proposed: bool = False
    has_voted: bool = False
    voted_proposal_id: Optional[int] = None


@dataclass
class Proposal:
    """A proposal slot. proposer is None for the blank slot."""
    proposal_id: int
    description: str
    vote_count: int = 0
    proposer: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return self.proposer is None and self.proposal_id == BLANK_PROPOSAL_ID


@dataclass(frozen=True)
class TallyResult:
    """Outcome of the one-time tally."""
    winning_proposal_id: int
    winning_description: str
    total_votes: int
    winning_vote_count: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "winning_proposal_id": self.winning_proposal_id,
            "winning_description": self.winning_description,
            "total_votes": self.total_votes,
            "winning_vote_count": self.winning_vote_count,
        }


class NotificationKind(str, enum.Enum):
    """Observable side effects of successful operations."""
    PHASE_CHANGED = "phase_changed"
    VOTER_REGISTERED = "voter_registered"
    PROPOSAL_REGISTERED = "proposal_registered"
    VOTED = "voted"
    VOTES_TALLIED = "votes_tallied"


@dataclass(frozen=True)
class Notification:
    """A change notification. Fired only after the change is applied."""
    kind: NotificationKind
    payload: dict[str, Any] = field(default_factory=dict)
