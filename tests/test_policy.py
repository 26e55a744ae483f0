"""Tests for the versioned evaluation weight policy."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import ADMIN, COORDINATOR, NOW
from ipms.errors import ConcurrentModification, InvalidPolicy, Unauthorized
from ipms.schemas.audit import AuditQuery
from ipms.schemas.policy import UpdatePolicyRequest
from ipms.services import policy as policy_service
from ipms.storage import repositories as repo


async def test_default_policy_seeded(db):
    """The first read seeds a 50/50 version 1."""
    policy = await policy_service.get_active_policy(db)
    assert (policy.version, policy.employer_weight_pct, policy.report_weight_pct) == (1, 50, 50)
    again = await policy_service.get_active_policy(db)
    assert again == policy


async def test_snapshot_is_frozen(db):
    """Readers get an immutable snapshot."""
    policy = await policy_service.get_active_policy(db)
    with pytest.raises(PydanticValidationError):
        policy.employer_weight_pct = 80


async def test_update_policy(db):
    """SUPER_ADMIN updates create a new version and an audit entry."""
    await policy_service.get_active_policy(db)
    updated = await policy_service.update_policy(
        db, ADMIN, UpdatePolicyRequest(employer_weight_pct=60, report_weight_pct=40), now=NOW
    )
    assert updated.version == 2
    assert updated.updated_by == ADMIN.user_id

    active = await policy_service.get_active_policy(db)
    assert (active.version, active.employer_weight_pct, active.report_weight_pct) == (2, 60, 40)

    entries, total = await repo.query_audit_entries(db, AuditQuery(action="POLICY_UPDATED"), 10, 0)
    assert total == 1
    assert entries[0].metadata_json["previous"]["employer_weight_pct"] == 50
    assert entries[0].metadata_json["new"]["employer_weight_pct"] == 60


async def test_update_policy_requires_super_admin(db):
    """Coordinators cannot change the policy."""
    with pytest.raises(Unauthorized):
        await policy_service.update_policy(
            db, COORDINATOR, UpdatePolicyRequest(employer_weight_pct=60, report_weight_pct=40), now=NOW
        )


async def test_update_policy_rejects_bad_split(db):
    """A split not summing to 100 is rejected and the active policy is unchanged."""
    with pytest.raises(InvalidPolicy):
        await policy_service.update_policy(
            db, ADMIN, UpdatePolicyRequest(employer_weight_pct=70, report_weight_pct=40), now=NOW
        )
    active = await policy_service.get_active_policy(db)
    assert (active.version, active.employer_weight_pct) == (1, 50)


async def test_version_collision(db, session_maker):
    """A concurrent writer that took the version number first wins."""
    await policy_service.get_active_policy(db)
    await db.commit()

    async with session_maker() as other:
        with pytest.raises(ConcurrentModification):
            await repo.insert_policy_version(
                other, version=1, employer_weight_pct=60, report_weight_pct=40, updated_by=ADMIN.user_id
            )
