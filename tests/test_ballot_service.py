"""Tests for BallotService — proves result objects, audit events and replay."""

from pathlib import Path

import pytest

from ballotbox.config import BallotSettings
from ballotbox.models.ballot import WorkflowStatus
from ballotbox.persistence.event_log import EventKind, EventLog, EventRecord
from ballotbox.service import BallotService


ADMIN = "admin"


@pytest.fixture
def service() -> BallotService:
    return BallotService.create(ADMIN, event_log=EventLog())


def _run_election(service: BallotService) -> None:
    for voter in ("alice", "bob", "carol"):
        assert service.admit_voter(ADMIN, voter).success
    assert service.start_proposals_registration(ADMIN).success
    assert service.register_proposal("alice", "Plant trees").success
    assert service.register_proposal("bob", "Paint the hall").success
    assert service.end_proposals_registration(ADMIN).success
    assert service.start_voting_session(ADMIN).success
    assert service.cast_vote("alice", 2).success
    assert service.cast_vote("bob", 2).success
    assert service.cast_vote("carol", 0).success
    assert service.end_voting_session(ADMIN).success


class TestCreate:
    def test_creation_is_recorded(self, service: BallotService) -> None:
        events = service._event_log.events()
        assert len(events) == 1
        assert events[0].event_kind == EventKind.ELECTION_CREATED
        assert events[0].event_id == "EVT-00000001"
        assert events[0].payload == {"administrator": ADMIN, "blank_label": "Blank vote"}

    def test_refuses_used_log(self, service: BallotService) -> None:
        with pytest.raises(ValueError, match="already holds"):
            BallotService.create(ADMIN, event_log=service._event_log)

    def test_blank_administrator(self) -> None:
        with pytest.raises(ValueError):
            BallotService.create("  ", event_log=EventLog())


class TestResults:
    def test_success_data(self, service: BallotService) -> None:
        result = service.admit_voter(ADMIN, "alice")
        assert result.success
        assert result.errors == []
        assert result.data == {"voter": "alice"}

    def test_transition_data(self, service: BallotService) -> None:
        result = service.start_proposals_registration(ADMIN)
        assert result.data == {
            "previous": "registering_voters",
            "phase": "proposals_registration_started",
        }

    def test_rejection_carries_code(self, service: BallotService) -> None:
        result = service.admit_voter("alice", "bob")
        assert result.success is False
        assert result.errors == ["Caller is not the administrator"]
        assert result.data == {"error_code": "unauthorized"}

    def test_phase_violation_code(self, service: BallotService) -> None:
        result = service.end_voting_session(ADMIN)
        assert not result.success
        assert result.data["error_code"] == "phase_violation"

    def test_rejections_record_nothing(self, service: BallotService) -> None:
        service.admit_voter("alice", "bob")
        service.cast_vote("alice", 0)
        service.tally_votes(ADMIN)
        assert service._event_log.count == 1

    def test_winner_before_tally(self, service: BallotService) -> None:
        result = service.get_winner()
        assert not result.success
        assert result.data["error_code"] == "tally_not_ready"

    def test_tally_result(self, service: BallotService) -> None:
        _run_election(service)
        result = service.tally_votes(ADMIN)
        assert result.success
        assert result.data == {
            "winning_proposal_id": 2,
            "winning_description": "Paint the hall",
            "winning_vote_count": 2,
            "total_votes": 3,
            "phase": "votes_tallied",
        }
        assert service.get_winner().data["winning_description"] == "Paint the hall"

    def test_no_votes_code(self, service: BallotService) -> None:
        service.start_proposals_registration(ADMIN)
        service.end_proposals_registration(ADMIN)
        service.start_voting_session(ADMIN)
        service.end_voting_session(ADMIN)
        result = service.tally_votes(ADMIN)
        assert result.data["error_code"] == "no_votes_cast"
        assert service.current_phase == WorkflowStatus.VOTING_SESSION_ENDED


class TestQueries:
    def test_voter_and_proposal_lookup(self, service: BallotService) -> None:
        service.admit_voter(ADMIN, "alice")
        service.start_proposals_registration(ADMIN)
        service.register_proposal("alice", "Plant trees")

        voter = service.get_voter("alice", "alice")
        assert voter.data["has_proposed"] is True
        assert voter.data["has_voted"] is False

        proposal = service.get_proposal("alice", 1)
        assert proposal.data == {
            "proposal_id": 1, "description": "Plant trees", "vote_count": 0,
        }
        assert service.get_proposal("alice", 9).data["error_code"] == "invalid_proposal"
        assert service.get_voter(ADMIN, "alice").data["error_code"] == "voter_not_registered"

    def test_status(self, service: BallotService) -> None:
        _run_election(service)
        service.tally_votes(ADMIN)
        status = service.status()
        assert status["phase"] == "votes_tallied"
        assert status["voters"] == 3
        assert status["votes_cast"] == 3
        assert [p["vote_count"] for p in status["proposals"]] == [1, 0, 2]
        assert status["winner"]["winning_proposal_id"] == 2
        assert status["persistence_degraded"] is False


class TestAuditTrail:
    def test_event_per_notification(self, service: BallotService) -> None:
        _run_election(service)
        service.tally_votes(ADMIN)
        kinds = [e.event_kind for e in service._event_log.events()]
        assert kinds.count(EventKind.VOTER_REGISTERED) == 3
        assert kinds.count(EventKind.PROPOSAL_REGISTERED) == 2
        assert kinds.count(EventKind.VOTE_CAST) == 3
        assert kinds.count(EventKind.PHASE_CHANGED) == 5
        assert kinds[-2:] == [EventKind.PHASE_CHANGED, EventKind.VOTES_TALLIED]

    def test_actor_is_caller(self, service: BallotService) -> None:
        service.admit_voter(ADMIN, "alice")
        service.start_proposals_registration(ADMIN)
        service.register_proposal("alice", "Plant trees")
        event = service._event_log.last_event
        assert event.actor_id == "alice"
        assert event.payload == {"proposal_id": 1, "description": "Plant trees"}

    def test_event_ids_are_sequential(self, service: BallotService) -> None:
        service.admit_voter(ADMIN, "alice")
        service.admit_voter(ADMIN, "bob")
        ids = [e.event_id for e in service._event_log.events()]
        assert ids == ["EVT-00000001", "EVT-00000002", "EVT-00000003"]

    def test_audit_failure_degrades_but_keeps_operation(
        self, service: BallotService,
    ) -> None:
        # Occupy the next event id so the service's own append collides.
        service._event_log.append(EventRecord.create(
            event_id="EVT-00000002",
            event_kind=EventKind.VOTER_REGISTERED,
            actor_id=ADMIN,
            payload={"voter": "ghost"},
        ))
        result = service.admit_voter(ADMIN, "alice")
        assert result.success
        assert "Event log failure" in result.data["warning"]
        assert service.persistence_degraded
        assert service.election.is_registered("alice")
        assert service.status()["persistence_degraded"] is True

        # Warnings do not leak into the next result.
        assert "warning" not in service.admit_voter(ADMIN, "bob").data


class TestReplay:
    def test_rebuild_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        service = BallotService.create(ADMIN, event_log=EventLog(path))
        _run_election(service)
        service.tally_votes(ADMIN)

        rebuilt = BallotService.from_event_log(EventLog(path))
        assert rebuilt.current_phase == WorkflowStatus.VOTES_TALLIED
        assert rebuilt.get_winner().data == service.get_winner().data
        assert rebuilt.status()["proposals"] == service.status()["proposals"]

    def test_rebuilt_service_keeps_appending(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        service = BallotService.create(ADMIN, event_log=EventLog(path))
        service.admit_voter(ADMIN, "alice")

        rebuilt = BallotService.from_event_log(EventLog(path))
        assert rebuilt.election.is_registered("alice")
        result = rebuilt.admit_voter(ADMIN, "bob")
        assert result.success
        assert "warning" not in result.data
        assert EventLog(path).last_event.event_id == "EVT-00000003"

    def test_recorded_blank_label_wins(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        service = BallotService.create(
            ADMIN, BallotSettings(blank_label="Abstain"), EventLog(path),
        )
        service.start_proposals_registration(ADMIN)

        rebuilt = BallotService.from_event_log(EventLog(path), BallotSettings())
        assert rebuilt.election.proposals()[0].description == "Abstain"

    def test_empty_log(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            BallotService.from_event_log(EventLog())

    def test_first_event_must_be_creation(self) -> None:
        log = EventLog()
        log.append(EventRecord.create(
            event_id="EVT-00000001",
            event_kind=EventKind.VOTER_REGISTERED,
            actor_id=ADMIN,
            payload={"voter": "alice"},
        ))
        with pytest.raises(ValueError, match="First event"):
            BallotService.from_event_log(log)

    def test_inconsistent_log_rejected(self) -> None:
        log = EventLog()
        service = BallotService.create(ADMIN, event_log=log)
        service.admit_voter(ADMIN, "alice")
        # An admission recorded twice cannot replay.
        log.append(EventRecord.create(
            event_id="EVT-00000099",
            event_kind=EventKind.VOTER_REGISTERED,
            actor_id=ADMIN,
            payload={"voter": "alice"},
        ))
        with pytest.raises(ValueError, match="Cannot replay EVT-00000099"):
            BallotService.from_event_log(log)
