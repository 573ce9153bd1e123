"""Tests for the append-only event log — proves replay protection and tamper detection."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ballotbox.persistence.event_log import EventKind, EventLog, EventRecord


def _event(n: int, kind: EventKind = EventKind.VOTER_REGISTERED) -> EventRecord:
    return EventRecord.create(
        event_id=f"EVT-{n:08d}",
        event_kind=kind,
        actor_id="admin",
        payload={"voter": f"voter{n}"},
        timestamp_utc=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _event(1).event_hash == _event(1).event_hash
        assert _event(1).event_hash.startswith("sha256:")

    def test_hash_covers_payload(self) -> None:
        assert _event(1).event_hash != _event(2).event_hash

    def test_timestamp_format(self) -> None:
        assert _event(1).timestamp_utc == "2026-01-01T00:00:00Z"


class TestInMemoryLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log.append(_event(1))
        log.append(_event(2, EventKind.PHASE_CHANGED))
        assert log.count == 2
        assert [e.event_id for e in log.events(EventKind.PHASE_CHANGED)] == ["EVT-00000002"]
        assert log.last_event.event_id == "EVT-00000002"

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_event(1))
        with pytest.raises(ValueError, match="Duplicate event ID"):
            log.append(_event(1))
        assert log.count == 1

    def test_empty_log(self) -> None:
        log = EventLog()
        assert log.count == 0
        assert log.last_event is None


class TestFilePersistence:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "events.jsonl"
        log = EventLog(path)
        log.append(_event(1))
        log.append(_event(2))

        reloaded = EventLog(path)
        assert reloaded.count == 2
        assert reloaded.event_hashes() == log.event_hashes()
        assert reloaded.events()[0].payload == {"voter": "voter1"}

    def test_tampered_payload_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event(1))

        record = json.loads(path.read_text(encoding="utf-8"))
        record["payload"]["voter"] = "mallory"
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(path)

    def test_malformed_line_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        path.write_text("{not json\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Malformed event record"):
            EventLog(path)

    def test_unknown_kind_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event(1))
        record = json.loads(path.read_text(encoding="utf-8"))
        record["event_kind"] = "proposal_withdrawn"
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Malformed event record"):
            EventLog(path)

    def test_duplicate_id_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event(1))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate event ID on recovery"):
            EventLog(path)

    def test_blank_lines_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event(1))
        path.write_text(path.read_text(encoding="utf-8") + "\n\n", encoding="utf-8")
        assert EventLog(path).count == 1
