"""Tests for the JSONL event log."""

import json
from pathlib import Path

import pytest

from vitalcoach.events import EventEntry, EventLog, configure_event_log, get_event_log


@pytest.fixture
def event_log(tmp_path: Path) -> EventLog:
    return EventLog(log_dir=tmp_path)


def read_entries(event_log: EventLog) -> list[dict]:
    return [json.loads(line) for line in event_log.log_path.read_text().splitlines()]


def test_entry_to_dict_excludes_empty():
    """None values and empty extra are dropped."""
    data = EventEntry(timestamp="2024-01-01T00:00:00Z", event="test").to_dict()

    assert "timestamp" in data
    assert "user_id" not in data
    assert "extra" not in data


def test_log_writes_jsonl(event_log: EventLog):
    event_log.log("first", user_id=1)
    event_log.log("second", operation="sweep", duration_ms=1.5)

    entries = read_entries(event_log)
    assert [e["event"] for e in entries] == ["first", "second"]
    assert entries[0]["user_id"] == 1
    assert entries[1]["duration_ms"] == 1.5


def test_log_file_deleted(event_log: EventLog):
    event_log.log_file_deleted("old.jpg", "low", 45, 2048)

    entry = read_entries(event_log)[0]
    assert entry["event"] == "attachment_deleted"
    assert entry["extra"] == {"file_name": "old.jpg", "tier": "low", "age_days": 45, "size": 2048}


def test_log_request_failure(event_log: EventLog):
    event_log.log_request_failure("/api/memory/stats", "HTTP 500", attempts=4, duration_ms=12.0)

    entry = read_entries(event_log)[0]
    assert entry["event"] == "accelerator_failure"
    assert entry["operation"] == "/api/memory/stats"
    assert entry["error"] == "HTTP 500"


def test_rotation(tmp_path: Path):
    """Log rotates once it reaches the size limit."""
    event_log = EventLog(log_dir=tmp_path, max_size_mb=0.0001)
    for i in range(20):
        event_log.log("filler", payload="x" * 50, index=i)

    assert len(list(tmp_path.glob("events_*.jsonl"))) >= 1
    assert event_log.log_path.exists()


def test_configure_replaces_global(tmp_path: Path):
    configured = configure_event_log(tmp_path)
    assert get_event_log() is configured
    assert configured.log_dir == tmp_path
