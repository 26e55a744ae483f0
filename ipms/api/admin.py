"""Admin endpoints - evaluation weight policy and criteria catalogs."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ipms.auth.middleware import IdentityDep
from ipms.database import get_db
from ipms.engine.scoring import EMPLOYER_CRITERIA, REPORT_RUBRIC
from ipms.schemas.policy import PolicyResponse, UpdatePolicyRequest
from ipms.services import policy as policy_service

router = APIRouter()


@router.get("/evaluation-policy", response_model=PolicyResponse)
async def get_evaluation_policy(
    caller: IdentityDep,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Active employer/report split."""
    policy = await policy_service.get_active_policy_row(db)
    # First read may have seeded the default row.
    await db.commit()
    return PolicyResponse.model_validate(policy)


@router.put("/evaluation-policy", response_model=PolicyResponse)
async def update_evaluation_policy(
    body: UpdatePolicyRequest,
    caller: IdentityDep,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Store a new policy version. SUPER_ADMIN only."""
    policy = await policy_service.update_policy(db, caller, body)
    await db.commit()
    return PolicyResponse.model_validate(policy)


@router.get("/criteria")
async def list_criteria(caller: IdentityDep):
    """Employer criteria catalog and report rubric."""
    return {
        "employer": [c.model_dump() for c in EMPLOYER_CRITERIA],
        "report_rubric": [c.model_dump() for c in REPORT_RUBRIC],
    }
