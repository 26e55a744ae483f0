"""Tests for the append-only audit log."""

from datetime import timedelta

import pytest

from conftest import ADMIN, COORDINATOR, NOW
from ipms.config import settings
from ipms.schemas.audit import AuditQuery
from ipms.schemas.common import AuditAction
from ipms.services import audit


async def _record(db, n: int, caller=COORDINATOR):
    for i in range(n):
        await audit.record(
            db,
            caller,
            AuditAction.PRACTICE_CREATED,
            "Practice",
            i + 1,
            f"Practice {i + 1} created",
            metadata={"index": i},
            now=NOW + timedelta(minutes=i),
        )
    await db.commit()


async def test_record_entry(db):
    """Entries keep the actor, origin and metadata."""
    entry = await audit.record(
        db,
        COORDINATOR,
        AuditAction.SUPERVISOR_ASSIGNED,
        "Practice",
        7,
        "Supervisor 20 assigned",
        metadata={"supervisor_id": 20, "end_date": NOW.date()},
        now=NOW,
    )
    assert entry.actor_user_id == COORDINATOR.user_id
    assert entry.entity_id == "7"
    assert entry.request_origin == "10.0.0.2"
    assert entry.metadata_json == {"supervisor_id": 20, "end_date": "2026-03-10"}


async def test_query_newest_first(db):
    """Entries come back newest first with the total count."""
    await _record(db, 5)
    page = await audit.query(db, AuditQuery(limit=2))
    assert page.total == 5
    assert [e.entity_id for e in page.items] == ["5", "4"]

    page = await audit.query(db, AuditQuery(limit=2, offset=4))
    assert [e.entity_id for e in page.items] == ["1"]


async def test_query_limit_clamped(db):
    """Limits above the maximum are clamped, not rejected."""
    await _record(db, 3)
    page = await audit.query(db, AuditQuery(limit=500))
    assert page.limit == settings.audit_max_page_size
    assert page.total == 3


async def test_query_filters(db):
    """Entries can be filtered by actor, entity and date."""
    await _record(db, 3)
    await _record(db, 2, caller=ADMIN)

    page = await audit.query(db, AuditQuery(actor_user_id=ADMIN.user_id))
    assert page.total == 2
    page = await audit.query(db, AuditQuery(entity_type="Practice", entity_id="2"))
    assert page.total == 2
    page = await audit.query(db, AuditQuery(date_from=NOW + timedelta(minutes=2)))
    assert page.total == 1
    page = await audit.query(db, AuditQuery(action="PRACTICE_CLOSED"))
    assert page.total == 0


async def test_entries_cannot_be_modified(db):
    """Audit entries are append-only."""
    await _record(db, 1)
    page = await audit.query(db, AuditQuery())
    assert page.total == 1

    entry = await audit.record(
        db, ADMIN, AuditAction.POLICY_UPDATED, "EvaluationWeightPolicy", 2, "Policy updated", now=NOW
    )
    await db.commit()
    entry.description = "rewritten"
    with pytest.raises(RuntimeError):
        await db.flush()
