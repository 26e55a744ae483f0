"""Audit log query endpoint."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ipms.auth.middleware import IdentityDep
from ipms.database import get_db
from ipms.errors import Unauthorized
from ipms.schemas.audit import AuditPage, AuditQuery
from ipms.schemas.common import Role
from ipms.services import audit

router = APIRouter()


@router.get("/audit", response_model=AuditPage)
async def query_audit(
    caller: IdentityDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_user_id: int | None = None,
    action: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: Annotated[int, Query(ge=1)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """
    Newest-first page of audit entries. SUPER_ADMIN only.
    Limits above the configured maximum are clamped, not rejected.
    """
    if caller.role is not Role.SUPER_ADMIN:
        raise Unauthorized("Only SUPER_ADMIN may query the audit log")
    filters = AuditQuery(
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        action=action,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return await audit.query(db, filters)
