"""Alert endpoints - computed scans, pending-closure report, manual dispatch."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ipms.auth.middleware import IdentityDep
from ipms.database import get_db
from ipms.notifications import Notifier, Outbox, get_notifier
from ipms.schemas.alert import (
    Alert,
    AlertScope,
    ManualAlertRequest,
    ManualAlertResponse,
    PendingClosureReport,
)
from ipms.services import alerts

router = APIRouter()


@router.get("/alerts", response_model=list[Alert])
async def scan_alerts(
    caller: IdentityDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    program_id: int | None = None,
    campus_id: int | None = None,
):
    """Operational alerts for the caller's campus or program."""
    scope = alerts.resolve_scope(caller, AlertScope(program_id=program_id, campus_id=campus_id))
    return await alerts.scan(db, scope)


@router.get("/alerts/pending-closure", response_model=PendingClosureReport)
async def pending_closure(
    caller: IdentityDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    program_id: int | None = None,
    campus_id: int | None = None,
):
    """Practices past their end date that are still open, graded by delay."""
    scope = alerts.resolve_scope(caller, AlertScope(program_id=program_id, campus_id=campus_id))
    return await alerts.pending_closure_report(db, scope)


@router.post(
    "/alerts/manual",
    response_model=ManualAlertResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_manual_alert(
    body: ManualAlertRequest,
    caller: IdentityDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    background_tasks: BackgroundTasks,
):
    """Send an ad-hoc alert to a practice's student or supervisor."""
    outbox = Outbox()
    alert = await alerts.dispatch_manual_alert(db, caller, body, outbox)
    await db.commit()
    background_tasks.add_task(outbox.deliver, notifier)
    return ManualAlertResponse.model_validate(alert)
