"""Unit tests for canonical JSON and record hashing."""

from datetime import date, datetime, timezone

from ipms.utils.canonical import canonical_json, record_hash


def test_canonical_json_sorts_keys():
    """Canonical JSON sorts keys."""
    obj = {"b": 1, "a": 2}
    assert canonical_json(obj) == '{"a":2,"b":1}'


def test_canonical_json_dates():
    """Dates and datetimes serialize as ISO strings."""
    obj = {"end_date": date(2026, 3, 1), "closed_at": datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)}
    assert canonical_json(obj) == '{"closed_at":"2026-03-10T12:00:00+00:00","end_date":"2026-03-01"}'


def test_record_hash_deterministic():
    """Record hash ignores key order."""
    record = {"practice_id": 1, "final_grade": 5.5, "policy_version": 1}
    reordered = {"policy_version": 1, "final_grade": 5.5, "practice_id": 1}
    assert record_hash(record) == record_hash(reordered)
    assert len(record_hash(record)) == 64  # SHA256 hex


def test_record_hash_changes_with_content():
    """Any field change produces a different hash."""
    record = {"practice_id": 1, "final_grade": 5.5}
    assert record_hash(record) != record_hash({**record, "final_grade": 5.51})
