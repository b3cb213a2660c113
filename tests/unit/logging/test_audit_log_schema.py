from __future__ import annotations

import json
from pathlib import Path

from repogrep.logging import JsonlAuditLogger, sanitize_arguments


def test_audit_log_writes_jsonl_schema(tmp_path: Path) -> None:
    logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
    logger.record("search", {"query": "secret token", "mode": "hybrid", "limit": 5})

    lines = (tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])

    assert set(event.keys()) == {"error_code", "metadata", "ok", "operation", "timestamp"}
    assert event["operation"] == "search"
    assert event["ok"] is True
    assert event["error_code"] is None
    assert event["timestamp"].endswith("Z")
    assert event["metadata"] == {
        "limit": 5,
        "mode": "hybrid",
        "query_length": 12,
        "query_present": True,
    }


def test_failed_operation_records_error_code(tmp_path: Path) -> None:
    logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
    logger.record("index", {"repo": "demo"}, error=FileNotFoundError("gone"))

    [event] = logger.read()

    assert event["ok"] is False
    assert event["error_code"] == "FileNotFoundError"
    assert event["metadata"] == {"repo": "demo"}


def test_read_returns_most_recent_events(tmp_path: Path) -> None:
    logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
    for number in range(5):
        logger.record("reset", {"repo": f"r{number}"})

    events = logger.read(limit=2)

    assert [event["metadata"]["repo"] for event in events] == ["r3", "r4"]
    assert logger.read(limit=0) == []


def test_sanitize_reduces_collections_and_free_text() -> None:
    sanitized = sanitize_arguments(
        {"include_globs": ["**/*.py"], "options": {"b": 1, "a": 2}, "force": True, "note": "hi"}
    )

    assert sanitized == {
        "force": True,
        "include_globs_length": 1,
        "include_globs_type": "list",
        "note_length": 2,
        "note_present": True,
        "options_keys": ["a", "b"],
        "options_type": "dict",
    }
