"""Core data models for the ballot."""

from ballotbox.models.ballot import (
    BLANK_PROPOSAL_ID,
    PHASE_ORDER,
    Notification,
    NotificationKind,
    Proposal,
    TallyResult,
    Voter,
    WorkflowStatus,
)

__all__ = [
    "BLANK_PROPOSAL_ID",
    "PHASE_ORDER",
    "Notification",
    "NotificationKind",
    "Proposal",
    "TallyResult",
    "Voter",
    "WorkflowStatus",
]
