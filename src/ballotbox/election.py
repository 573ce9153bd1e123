"""Election — the per-election ballot state and its operation surface.

One Election owns one WorkflowController and one BallotStore. Nothing is
module-global: run several elections side by side by constructing
several Election objects, each with its own administrator.

Every operation is all-or-nothing. Checks run first, in a fixed order:

- Administrator operations: caller role, then phase, then operation
  checks (duplicate voter, votes cast).
- register_proposal: caller registration, then phase, then duplicate
  proposal and description checks.
- cast_vote: phase, then caller registration, then already voted and
  proposal id.

Only after every check passes is state changed. Notifications are
recorded and delivered to subscribers after the change, so a subscriber
never sees a rejected operation. A subscriber that raises is logged and
skipped: the change is already committed, so the operation still
returns normally and later subscribers are still called.

Usage:
    election = Election(administrator="admin")
    election.admit_voter("admin", "alice")
    election.start_proposals_registration("admin")
    election.register_proposal("alice", "Plant more trees")
    election.end_proposals_registration("admin")
    election.start_voting_session("admin")
    election.cast_vote("alice", 1)
    election.end_voting_session("admin")
    election.tally_votes("admin")
    result = election.get_winner()
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ballotbox.config import BallotSettings
from ballotbox.engine.registry import BallotStore
from ballotbox.engine.tally import tally_proposals
from ballotbox.engine.workflow import WorkflowController
from ballotbox.errors import PhaseViolation, TallyNotReady
from ballotbox.models.ballot import (
    Notification,
    NotificationKind,
    Proposal,
    TallyResult,
    Voter,
    WorkflowStatus,
)


logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], None]


class Election:
    """A single-organization ballot with administrator-driven phases."""

    def __init__(
        self,
        administrator: str,
        settings: Optional[BallotSettings] = None,
    ) -> None:
        self._settings = settings or BallotSettings()
        self._workflow = WorkflowController(administrator)
        self._store = BallotStore(
            max_description_length=self._settings.max_description_length,
        )
        self._result: Optional[TallyResult] = None
        self._notifications: list[Notification] = []
        self._subscribers: list[Subscriber] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> None:
        """Register a callback invoked after every successful change."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers.remove(callback)

    @property
    def notifications(self) -> list[Notification]:
        """Every notification emitted so far, oldest first."""
        return list(self._notifications)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def administrator(self) -> str:
        return self._workflow.administrator

    @property
    def current_phase(self) -> WorkflowStatus:
        return self._workflow.current_phase

    @property
    def settings(self) -> BallotSettings:
        return self._settings

    @property
    def voter_count(self) -> int:
        return self._store.voter_count

    @property
    def proposal_count(self) -> int:
        return self._store.proposal_count

    @property
    def votes_cast(self) -> int:
        return self._store.votes_cast

    def proposals(self) -> list[Proposal]:
        return self._store.proposals()

    def is_registered(self, identity: str) -> bool:
        return self._store.is_registered(identity)

    def get_voter(self, caller: str, identity: str) -> Voter:
        """Voter record for `identity`. Only admitted voters may look."""
        self._store.require_registered(caller)
        return self._store.get_voter(identity)

    def get_proposal(self, caller: str, proposal_id: int) -> Proposal:
        """Proposal by id. Only admitted voters may look."""
        self._store.require_registered(caller)
        return self._store.get_proposal(proposal_id)

    def get_winner(self) -> TallyResult:
        """The stored tally result. Anyone may call this.

        Raises TallyNotReady until tally_votes() has succeeded.
        """
        if self._result is None:
            raise TallyNotReady()
        return self._result

    # ------------------------------------------------------------------
    # Voter registration
    # ------------------------------------------------------------------

    def admit_voter(self, caller: str, identity: str) -> Voter:
        self._workflow.require_administrator(caller)
        self._workflow.require_phase(WorkflowStatus.REGISTERING_VOTERS)
        voter = self._store.add_voter(identity)
        logger.info("Voter registered: %s", voter.identity)
        self._emit(NotificationKind.VOTER_REGISTERED, voter=voter.identity)
        return voter

    # ------------------------------------------------------------------
    # Phase transitions
    # ------------------------------------------------------------------

    def start_proposals_registration(self, caller: str) -> None:
        """Open proposal registration and create the blank slot at index 0."""
        self._workflow.require_administrator(caller)
        self._workflow.require_phase(WorkflowStatus.REGISTERING_VOTERS)
        self._store.add_blank_proposal(self._settings.blank_label)
        self._advance(caller, WorkflowStatus.PROPOSALS_REGISTRATION_STARTED)

    def end_proposals_registration(self, caller: str) -> None:
        self._advance(caller, WorkflowStatus.PROPOSALS_REGISTRATION_ENDED)

    def start_voting_session(self, caller: str) -> None:
        self._advance(caller, WorkflowStatus.VOTING_SESSION_STARTED)

    def end_voting_session(self, caller: str) -> None:
        self._advance(caller, WorkflowStatus.VOTING_SESSION_ENDED)

    def tally_votes(self, caller: str) -> TallyResult:
        """Count the votes once and close the election.

        Raises:
            Unauthorized: caller is not the administrator.
            PhaseViolation: voting session has not ended, or the tally
                already ran.
            NoVotesCast: nobody voted.
        """
        self._workflow.require_administrator(caller)
        if self._workflow.current_phase == WorkflowStatus.VOTES_TALLIED:
            raise PhaseViolation(
                "Votes already tallied",
                expected=WorkflowStatus.VOTING_SESSION_ENDED,
                actual=WorkflowStatus.VOTES_TALLIED,
            )
        self._workflow.require_phase(WorkflowStatus.VOTING_SESSION_ENDED)
        result = tally_proposals(self._store.proposals())

        self._result = result
        self._advance(caller, WorkflowStatus.VOTES_TALLIED)
        logger.info(
            "Votes tallied: proposal %d wins with %d of %d votes",
            result.winning_proposal_id,
            result.winning_vote_count,
            result.total_votes,
        )
        self._emit(NotificationKind.VOTES_TALLIED, **result.as_dict())
        return result

    # ------------------------------------------------------------------
    # Proposals and votes
    # ------------------------------------------------------------------

    def register_proposal(self, caller: str, description: str) -> Proposal:
        self._store.require_registered(caller)
        self._workflow.require_phase(WorkflowStatus.PROPOSALS_REGISTRATION_STARTED)
        proposal = self._store.add_proposal(caller, description)
        logger.info("Proposal %d registered by %s", proposal.proposal_id, caller)
        self._emit(
            NotificationKind.PROPOSAL_REGISTERED,
            proposal_id=proposal.proposal_id,
        )
        return proposal

    def cast_vote(self, caller: str, proposal_id: int) -> Proposal:
        self._workflow.require_phase(WorkflowStatus.VOTING_SESSION_STARTED)
        voter = self._store.require_registered(caller)
        proposal = self._store.record_vote(voter.identity, proposal_id)
        logger.info(
            "Vote cast by %s for proposal %d", voter.identity, proposal.proposal_id,
        )
        self._emit(
            NotificationKind.VOTED,
            voter=voter.identity,
            proposal_id=proposal.proposal_id,
        )
        return proposal

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _advance(self, caller: str, target: WorkflowStatus) -> None:
        previous, current = self._workflow.advance(caller, target)
        logger.info("Workflow status: %s → %s", previous.value, current.value)
        self._emit(
            NotificationKind.PHASE_CHANGED,
            previous=previous.value,
            current=current.value,
        )

    def _emit(self, kind: NotificationKind, **payload: object) -> None:
        notification = Notification(kind=kind, payload=dict(payload))
        self._notifications.append(notification)
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception:
                logger.exception(
                    "Subscriber %r failed on %s", callback, notification.kind.value,
                )
