"""Persistence — the append-only election event log."""

from ballotbox.persistence.event_log import EventKind, EventLog, EventRecord

__all__ = ["EventKind", "EventLog", "EventRecord"]
