"""Workflow controller — owns the phase and gates every operation by it.

Rules:
- Six phases, strictly ordered (see WorkflowStatus).
- Only the administrator moves the phase, one step forward at a time.
- No regression, no skipping, no automatic transitions.

Authorization is always checked before the phase.
"""

from __future__ import annotations

from ballotbox.errors import PhaseViolation, Unauthorized
from ballotbox.models.ballot import PHASE_ORDER, WorkflowStatus


# Rejection message for each phase an operation can require.
_REQUIRED_PHASE_MESSAGES: dict[WorkflowStatus, str] = {
    WorkflowStatus.REGISTERING_VOTERS: "Not in a registering voters session",
    WorkflowStatus.PROPOSALS_REGISTRATION_STARTED: "Not in a proposal register session",
    WorkflowStatus.PROPOSALS_REGISTRATION_ENDED: "Proposal registration not ended",
    WorkflowStatus.VOTING_SESSION_STARTED: "Not in a vote session",
    WorkflowStatus.VOTING_SESSION_ENDED: "Voting session not ended",
    WorkflowStatus.VOTES_TALLIED: "Votes not tallied",
}


def required_phase_message(phase: WorkflowStatus) -> str:
    return _REQUIRED_PHASE_MESSAGES[phase]


class WorkflowController:
    """Holds the current phase and the administrator identity.

    Invariants:
    1. current_phase only ever advances by one position.
    2. Every advance is made by the administrator.
    """

    def __init__(
        self,
        administrator: str,
        phase: WorkflowStatus = WorkflowStatus.REGISTERING_VOTERS,
    ) -> None:
        if not administrator or not administrator.strip():
            raise ValueError("Administrator identity must not be empty")
        self._administrator = administrator.strip()
        self._phase = phase

    @property
    def administrator(self) -> str:
        return self._administrator

    @property
    def current_phase(self) -> WorkflowStatus:
        return self._phase

    def is_administrator(self, caller: str) -> bool:
        return isinstance(caller, str) and caller.strip() == self._administrator

    def require_administrator(self, caller: str) -> None:
        """Raise Unauthorized unless caller is the administrator."""
        if not self.is_administrator(caller):
            raise Unauthorized(caller)

    def require_phase(self, expected: WorkflowStatus) -> None:
        """Raise PhaseViolation unless the election is in `expected`."""
        if self._phase != expected:
            raise PhaseViolation(
                required_phase_message(expected),
                expected=expected,
                actual=self._phase,
            )

    def can_advance(self, target: WorkflowStatus) -> tuple[bool, str]:
        """Check whether the phase may move to `target`.

        Returns (allowed, reason).
        """
        current = self._phase.ordinal
        wanted = target.ordinal

        if wanted <= current:
            return False, f"Cannot regress from {self._phase.value} to {target.value}"
        if wanted != current + 1:
            return False, f"Cannot skip phases: {self._phase.value} → {target.value}"
        return True, f"{self._phase.value} → {target.value} allowed"

    def advance(
        self, caller: str, target: WorkflowStatus,
    ) -> tuple[WorkflowStatus, WorkflowStatus]:
        """Move to `target`. Returns (previous, current).

        Raises Unauthorized for a non-administrator, PhaseViolation when
        `target` is not the immediate successor of the current phase.
        """
        self.require_administrator(caller)
        allowed, _ = self.can_advance(target)
        if not allowed:
            required = _predecessor(target)
            raise PhaseViolation(
                required_phase_message(required),
                expected=required,
                actual=self._phase,
            )
        previous = self._phase
        self._phase = target
        return previous, target


def _predecessor(phase: WorkflowStatus) -> WorkflowStatus:
    position = phase.ordinal
    if position == 0:
        # Nothing transitions into the first phase.
        return phase
    return PHASE_ORDER[position - 1]
