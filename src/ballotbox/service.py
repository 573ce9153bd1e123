"""Ballot service — facade over one Election with an audit trail.

This is the primary interface for programmatic callers that want result
objects rather than exceptions. It:
- Forwards every operation to the Election.
- Converts rejections (BallotError) into failed ServiceResults carrying
  the error code.
- Appends an EventRecord to the EventLog for every notification the
  Election emits, with the calling identity as actor.
- Rebuilds an Election from a previously written log.

If the audit append fails after the Election accepted an operation, the
operation still stands (the Election is the source of truth in memory):
the result carries a warning and the service is flagged as
persistence-degraded until an operator repairs the log.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Optional

from ballotbox.config import BallotSettings
from ballotbox.election import Election
from ballotbox.errors import BallotError, InvalidProposal
from ballotbox.models.ballot import (
    Notification,
    NotificationKind,
    WorkflowStatus,
)
from ballotbox.persistence.event_log import EventKind, EventLog, EventRecord


logger = logging.getLogger(__name__)

_EVENT_KINDS: dict[NotificationKind, EventKind] = {
    NotificationKind.PHASE_CHANGED: EventKind.PHASE_CHANGED,
    NotificationKind.VOTER_REGISTERED: EventKind.VOTER_REGISTERED,
    NotificationKind.PROPOSAL_REGISTERED: EventKind.PROPOSAL_REGISTERED,
    NotificationKind.VOTED: EventKind.VOTE_CAST,
    NotificationKind.VOTES_TALLIED: EventKind.VOTES_TALLIED,
}

# Election operation that produces each recorded target phase.
_TRANSITIONS: dict[WorkflowStatus, Callable[[Election, str], Any]] = {
    WorkflowStatus.PROPOSALS_REGISTRATION_STARTED: Election.start_proposals_registration,
    WorkflowStatus.PROPOSALS_REGISTRATION_ENDED: Election.end_proposals_registration,
    WorkflowStatus.VOTING_SESSION_STARTED: Election.start_voting_session,
    WorkflowStatus.VOTING_SESSION_ENDED: Election.end_voting_session,
    WorkflowStatus.VOTES_TALLIED: Election.tally_votes,
}


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class BallotService:
    """Election facade with an append-only audit log.

    Usage:
        service = BallotService.create("admin", event_log=EventLog(path))
        service.admit_voter("admin", "alice")
        service.start_proposals_registration("admin")
        service.register_proposal("alice", "Plant more trees")
        ...
        result = service.get_winner()

    Recovery:
        service = BallotService.from_event_log(EventLog(path))
    """

    def __init__(
        self,
        election: Election,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._election = election
        self._event_log = event_log
        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0
        self._actor: Optional[str] = None
        self._warnings: list[str] = []
        self._persistence_degraded = False
        election.subscribe(self._on_notification)

    @classmethod
    def create(
        cls,
        administrator: str,
        settings: Optional[BallotSettings] = None,
        event_log: Optional[EventLog] = None,
    ) -> BallotService:
        """Start a new election and record its creation.

        Raises:
            ValueError: If administrator is empty or the log already
                holds events.
            RuntimeError: If the creation event cannot be written.
        """
        if event_log is not None and event_log.count:
            raise ValueError("Event log already holds an election")
        election = Election(administrator, settings)
        service = cls(election, event_log)
        err = service._record(
            EventKind.ELECTION_CREATED,
            election.administrator,
            {
                "administrator": election.administrator,
                "blank_label": election.settings.blank_label,
            },
        )
        if err:
            raise RuntimeError(err)
        logger.info("Election created by %s", election.administrator)
        return service

    @classmethod
    def from_event_log(
        cls,
        event_log: EventLog,
        settings: Optional[BallotSettings] = None,
    ) -> BallotService:
        """Rebuild an election by replaying every event in `event_log`.

        The first event must be ELECTION_CREATED. Replayed operations go
        straight to the Election, so nothing is appended during replay.

        Raises:
            ValueError: If the log is empty or does not replay cleanly.
        """
        events = event_log.events()
        if not events:
            raise ValueError("Event log is empty")
        first = events[0]
        if first.event_kind != EventKind.ELECTION_CREATED:
            raise ValueError(
                f"First event must be {EventKind.ELECTION_CREATED.value}, "
                f"got {first.event_kind.value}"
            )

        settings = settings or BallotSettings()
        try:
            administrator = first.payload["administrator"]
            blank_label = first.payload.get("blank_label", settings.blank_label)
        except (KeyError, AttributeError) as e:
            raise ValueError(f"Malformed {first.event_id}: {e}") from e
        election = Election(administrator, replace(settings, blank_label=blank_label))

        for event in events[1:]:
            _replay(election, event)

        logger.info(
            "Replayed %d events: phase %s",
            len(events), election.current_phase.value,
        )
        return cls(election, event_log)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def election(self) -> Election:
        return self._election

    @property
    def current_phase(self) -> WorkflowStatus:
        return self._election.current_phase

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    def get_winner(self) -> ServiceResult:
        try:
            result = self._election.get_winner()
        except BallotError as e:
            return self._rejected("get_winner", e)
        return ServiceResult(success=True, data=result.as_dict())

    def get_voter(self, caller: str, identity: str) -> ServiceResult:
        try:
            voter = self._election.get_voter(caller, identity)
        except BallotError as e:
            return self._rejected("get_voter", e)
        return ServiceResult(success=True, data={
            "voter": voter.identity,
            "is_registered": voter.is_registered,
            "has_proposed": voter.has_proposed,
            "has_voted": voter.has_voted,
            "voted_proposal_id": voter.voted_proposal_id,
        })

    def get_proposal(self, caller: str, proposal_id: int) -> ServiceResult:
        try:
            proposal = self._election.get_proposal(caller, proposal_id)
        except BallotError as e:
            return self._rejected("get_proposal", e)
        return ServiceResult(success=True, data={
            "proposal_id": proposal.proposal_id,
            "description": proposal.description,
            "vote_count": proposal.vote_count,
        })

    def status(self) -> dict[str, Any]:
        """Return an election summary."""
        election = self._election
        summary: dict[str, Any] = {
            "administrator": election.administrator,
            "phase": election.current_phase.value,
            "voters": election.voter_count,
            "proposals": [
                {
                    "proposal_id": p.proposal_id,
                    "description": p.description,
                    "vote_count": p.vote_count,
                }
                for p in election.proposals()
            ],
            "votes_cast": election.votes_cast,
            "events": self._event_log.count if self._event_log is not None else 0,
            "persistence_degraded": self._persistence_degraded,
        }
        if election.current_phase == WorkflowStatus.VOTES_TALLIED:
            summary["winner"] = election.get_winner().as_dict()
        return summary

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def admit_voter(self, caller: str, identity: str) -> ServiceResult:
        try:
            with self._acting_as(caller):
                voter = self._election.admit_voter(caller, identity)
        except BallotError as e:
            return self._rejected("admit_voter", e)
        return self._ok({"voter": voter.identity})

    def start_proposals_registration(self, caller: str) -> ServiceResult:
        return self._transition(caller, self._election.start_proposals_registration)

    def end_proposals_registration(self, caller: str) -> ServiceResult:
        return self._transition(caller, self._election.end_proposals_registration)

    def start_voting_session(self, caller: str) -> ServiceResult:
        return self._transition(caller, self._election.start_voting_session)

    def end_voting_session(self, caller: str) -> ServiceResult:
        return self._transition(caller, self._election.end_voting_session)

    def tally_votes(self, caller: str) -> ServiceResult:
        try:
            with self._acting_as(caller):
                result = self._election.tally_votes(caller)
        except BallotError as e:
            return self._rejected("tally_votes", e)
        data = result.as_dict()
        data["phase"] = self._election.current_phase.value
        return self._ok(data)

    def register_proposal(self, caller: str, description: str) -> ServiceResult:
        try:
            with self._acting_as(caller):
                proposal = self._election.register_proposal(caller, description)
        except BallotError as e:
            return self._rejected("register_proposal", e)
        return self._ok({
            "proposal_id": proposal.proposal_id,
            "description": proposal.description,
        })

    def cast_vote(self, caller: str, proposal_id: int) -> ServiceResult:
        try:
            with self._acting_as(caller):
                proposal = self._election.cast_vote(caller, proposal_id)
        except BallotError as e:
            return self._rejected("cast_vote", e)
        return self._ok({"voter": caller, "proposal_id": proposal.proposal_id})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _transition(self, caller: str, operation: Callable[[str], Any]) -> ServiceResult:
        previous = self._election.current_phase
        try:
            with self._acting_as(caller):
                operation(caller)
        except BallotError as e:
            return self._rejected(operation.__name__, e)
        return self._ok({
            "previous": previous.value,
            "phase": self._election.current_phase.value,
        })

    @contextmanager
    def _acting_as(self, caller: str) -> Iterator[None]:
        self._actor = caller
        self._warnings = []
        try:
            yield
        finally:
            self._actor = None

    def _ok(self, data: dict[str, Any]) -> ServiceResult:
        if self._warnings:
            data["warning"] = "; ".join(self._warnings)
        return ServiceResult(success=True, data=data)

    def _rejected(self, operation: str, error: BallotError) -> ServiceResult:
        logger.debug("%s rejected (%s): %s", operation, error.code, error)
        return ServiceResult(
            success=False,
            errors=[str(error)],
            data={"error_code": error.code},
        )

    def _on_notification(self, notification: Notification) -> None:
        payload = dict(notification.payload)
        if notification.kind == NotificationKind.PROPOSAL_REGISTERED:
            proposal = self._election.proposals()[payload["proposal_id"]]
            payload["description"] = proposal.description
        err = self._record(
            _EVENT_KINDS[notification.kind],
            self._actor or self._election.administrator,
            payload,
        )
        if err:
            self._warnings.append(err)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record(
        self, kind: EventKind, actor_id: str, payload: dict[str, Any],
    ) -> Optional[str]:
        """Append an audit event. Returns error string or None."""
        if self._event_log is None:
            return None
        try:
            self._event_log.append(EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
            ))
        except (ValueError, OSError) as e:
            self._persistence_degraded = True
            logger.error("Event log failure for %s: %s", kind.value, e)
            return f"Event log failure: {e}"
        return None


def _replay(election: Election, event: EventRecord) -> None:
    """Re-apply one recorded event to `election`."""
    actor = event.actor_id
    payload = event.payload
    try:
        if event.event_kind == EventKind.VOTER_REGISTERED:
            election.admit_voter(actor, payload["voter"])
        elif event.event_kind == EventKind.PROPOSAL_REGISTERED:
            proposal = election.register_proposal(actor, payload["description"])
            if proposal.proposal_id != payload["proposal_id"]:
                raise InvalidProposal(payload["proposal_id"])
        elif event.event_kind == EventKind.VOTE_CAST:
            election.cast_vote(actor, payload["proposal_id"])
        elif event.event_kind == EventKind.PHASE_CHANGED:
            target = WorkflowStatus(payload["current"])
            operation = _TRANSITIONS.get(target)
            if operation is None:
                raise ValueError(f"No operation leads to {target.value}")
            operation(election, actor)
        elif event.event_kind == EventKind.VOTES_TALLIED:
            if election.get_winner().as_dict() != payload:
                raise ValueError("Recorded tally does not match replayed votes")
        else:
            raise ValueError(f"Unexpected {event.event_kind.value} event")
    except (BallotError, KeyError, ValueError, TypeError) as e:
        raise ValueError(f"Cannot replay {event.event_id}: {e}") from e
