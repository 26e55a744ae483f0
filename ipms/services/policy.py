"""Evaluation weight policy - versioned, read as immutable snapshots."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ipms.engine.scoring import validate_policy
from ipms.errors import Unauthorized
from ipms.models import EvaluationWeightPolicy
from ipms.schemas.common import AuditAction, Identity, Role
from ipms.schemas.policy import UpdatePolicyRequest, WeightPolicy
from ipms.services import audit
from ipms.storage import repositories as repo

logger = logging.getLogger(__name__)

DEFAULT_EMPLOYER_WEIGHT_PCT = 50
DEFAULT_REPORT_WEIGHT_PCT = 50


async def get_active_policy_row(db: AsyncSession) -> EvaluationWeightPolicy:
    """Latest policy row, seeding the 50/50 default as version 1 when none exists."""
    policy = await repo.get_latest_policy(db)
    if policy is None:
        policy = await repo.insert_policy_version(
            db,
            version=1,
            employer_weight_pct=DEFAULT_EMPLOYER_WEIGHT_PCT,
            report_weight_pct=DEFAULT_REPORT_WEIGHT_PCT,
            updated_by=None,
        )
        logger.info("Seeded default evaluation weight policy (50/50)")
    return policy


async def get_active_policy(db: AsyncSession) -> WeightPolicy:
    """Immutable snapshot of the active policy."""
    return WeightPolicy.model_validate(await get_active_policy_row(db))


async def update_policy(
    db: AsyncSession,
    caller: Identity,
    body: UpdatePolicyRequest,
    now: datetime | None = None,
) -> EvaluationWeightPolicy:
    """Validate and store a new policy version. SUPER_ADMIN only."""
    if caller.role is not Role.SUPER_ADMIN:
        raise Unauthorized("Only SUPER_ADMIN may change the evaluation weight policy")

    current = await get_active_policy_row(db)
    candidate = WeightPolicy(
        version=current.version + 1,
        employer_weight_pct=body.employer_weight_pct,
        report_weight_pct=body.report_weight_pct,
    )
    validate_policy(candidate)

    policy = await repo.insert_policy_version(
        db,
        version=candidate.version,
        employer_weight_pct=candidate.employer_weight_pct,
        report_weight_pct=candidate.report_weight_pct,
        updated_by=caller.user_id,
        now=now,
    )
    await audit.record(
        db,
        caller,
        AuditAction.POLICY_UPDATED,
        "EvaluationWeightPolicy",
        policy.version,
        f"Weight policy set to employer {policy.employer_weight_pct}% / report {policy.report_weight_pct}%",
        metadata={
            "previous": {
                "version": current.version,
                "employer_weight_pct": current.employer_weight_pct,
                "report_weight_pct": current.report_weight_pct,
            },
            "new": candidate.model_dump(),
        },
        now=now,
    )
    return policy
