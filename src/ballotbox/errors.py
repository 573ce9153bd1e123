"""Ballot error taxonomy.

Every rejection is synchronous and leaves the election untouched: no
state change, no notification. Callers can keep using the election
after any of these is raised.
"""

from __future__ import annotations

from typing import Optional

from ballotbox.models.ballot import WorkflowStatus


class BallotError(Exception):
    """Base class for every rejected ballot operation."""

    code = "ballot_error"


class Unauthorized(BallotError):
    """Raised when a non-administrator calls an administrator operation."""

    code = "unauthorized"

    def __init__(self, caller: str) -> None:
        super().__init__("Caller is not the administrator")
        self.caller = caller


class PhaseViolation(BallotError):
    """Raised when an operation is called outside its required phase."""

    code = "phase_violation"

    def __init__(
        self,
        message: str,
        expected: WorkflowStatus,
        actual: WorkflowStatus,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class DuplicateVoter(BallotError):
    code = "duplicate_voter"

    def __init__(self, identity: str) -> None:
        super().__init__("Voter already registered")
        self.identity = identity


class DuplicateProposal(BallotError):
    code = "duplicate_proposal"

    def __init__(self, identity: str) -> None:
        super().__init__("Voter already registered a proposal")
        self.identity = identity


class VoterNotRegistered(BallotError):
    code = "voter_not_registered"

    def __init__(self, identity: str) -> None:
        super().__init__("Voter not registered")
        self.identity = identity


class AlreadyVoted(BallotError):
    code = "already_voted"

    def __init__(self, identity: str) -> None:
        super().__init__("Voter already voted")
        self.identity = identity


class InvalidProposal(BallotError):
    code = "invalid_proposal"

    def __init__(self, proposal_id: object) -> None:
        super().__init__(f"Unknown proposal id: {proposal_id}")
        self.proposal_id = proposal_id


class TallyNotReady(BallotError):
    code = "tally_not_ready"

    def __init__(self) -> None:
        super().__init__("Vote not tallied")


class NoVotesCast(BallotError):
    code = "no_votes_cast"

    def __init__(self) -> None:
        super().__init__("Nobody voted")


class InvalidIdentity(BallotError, ValueError):
    code = "invalid_identity"

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__(reason or "Voter identity must not be empty")


class InvalidDescription(BallotError, ValueError):
    code = "invalid_description"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
