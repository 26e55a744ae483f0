"""Alerting engine - read-only practice scans and manual alert dispatch."""

import logging
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from ipms.config import settings
from ipms.engine.lifecycle import in_scope
from ipms.errors import DuplicateAlert, NotFound, Unauthorized, ValidationError
from ipms.models import ManualAlert
from ipms.notifications import Notification, Outbox
from ipms.schemas.alert import (
    Alert,
    AlertScope,
    Criticality,
    ManualAlertRequest,
    OverduePractice,
    PendingClosureReport,
)
from ipms.schemas.common import AuditAction, Identity, PracticeState, Role
from ipms.services import audit
from ipms.storage import repositories as repo

logger = logging.getLogger(__name__)

SUBJECT_MAX = 200
MESSAGE_MIN = 10
MESSAGE_MAX = 1000

_UNASSIGNED_STATES = (
    PracticeState.PENDIENTE.value,
    PracticeState.PENDIENTE_ACEPTACION_DOCENTE.value,
)


def resolve_scope(caller: Identity, requested: AlertScope) -> AlertScope:
    """Pin coordinators to their campus and directors to their program."""
    if caller.role is Role.SUPER_ADMIN:
        return requested
    if caller.scope_id is None:
        raise Unauthorized(f"{caller.role.value} caller has no assigned scope")
    if caller.role is Role.COORDINATOR:
        return AlertScope(program_id=requested.program_id, campus_id=caller.scope_id)
    if caller.role is Role.PROGRAM_DIRECTOR:
        return AlertScope(program_id=caller.scope_id, campus_id=requested.campus_id)
    raise Unauthorized(f"Role {caller.role.value} may not view practice alerts")


async def scan(
    db: AsyncSession,
    scope: AlertScope | None = None,
    now: datetime | None = None,
    horizon_days: int | None = None,
) -> list[Alert]:
    """
    Count-based operational alerts for the scope. Only non-zero counts are reported.
    Safe to run concurrently with lifecycle mutations; results are advisory.
    """
    now = now or repo.utcnow()
    horizon = settings.alert_horizon_days if horizon_days is None else horizon_days
    alerts: list[Alert] = []

    unsupervised = await repo.count_practices(
        db, _UNASSIGNED_STATES, scope, without_supervisor=True
    )
    if unsupervised:
        alerts.append(
            Alert(
                id="practices-without-supervisor",
                type="warning",
                title="Practices without supervisor",
                description=f"{unsupervised} practices need a supervising instructor",
                count=unsupervised,
            )
        )

    pending = await repo.count_practices(
        db, (PracticeState.PENDIENTE_ACEPTACION_DOCENTE.value,), scope
    )
    if pending:
        alerts.append(
            Alert(
                id="practices-pending-supervisor",
                type="info",
                title="Practices awaiting supervisor decision",
                description=f"{pending} practices are waiting for the supervisor to accept",
                count=pending,
            )
        )

    ending = await repo.count_practices(
        db,
        (PracticeState.EN_CURSO.value,),
        scope,
        end_on_or_before=repo.institution_date(now) + timedelta(days=horizon),
    )
    if ending:
        alerts.append(
            Alert(
                id="practices-approaching-end",
                type="warning",
                title="Practices approaching their end date",
                description=f"{ending} practices end within the next {horizon} days",
                count=ending,
            )
        )

    inactive = await repo.count_inactive_accounts(db, scope)
    if inactive:
        alerts.append(
            Alert(
                id="inactive-accounts",
                type="warning",
                title="Inactive accounts",
                description=f"{inactive} accounts are marked inactive",
                count=inactive,
            )
        )

    logger.info("alert scan %s: %d alerts", (scope or AlertScope()).model_dump(), len(alerts))
    return alerts


def criticality(days_late: int) -> Criticality:
    if days_late >= settings.overdue_critical_days:
        return Criticality.CRITICAL
    if days_late >= settings.overdue_low_days:
        return Criticality.LOW
    return Criticality.NORMAL


async def pending_closure_report(
    db: AsyncSession,
    scope: AlertScope | None = None,
    now: datetime | None = None,
) -> PendingClosureReport:
    """Practices past their end date (plus a grace period) that are still not closed."""
    today = repo.institution_date(now)
    cutoff = today - timedelta(days=settings.overdue_grace_days)
    practices = await repo.list_practices_ended_before(
        db, cutoff, (PracticeState.CERRADA.value,), scope
    )

    overdue = []
    for p in practices:
        days_late = (today - p.end_date).days
        overdue.append(
            OverduePractice(
                practice_id=p.id,
                student_id=p.student_id,
                supervisor_id=p.supervisor_id,
                program_id=p.program_id,
                campus_id=p.campus_id,
                state=p.state,
                end_date=p.end_date,
                days_late=days_late,
                criticality=criticality(days_late),
            )
        )

    levels = Counter(o.criticality for o in overdue)
    return PendingClosureReport(
        total=len(overdue),
        critical=levels[Criticality.CRITICAL],
        low=levels[Criticality.LOW],
        normal=levels[Criticality.NORMAL],
        by_program=dict(Counter(o.program_id for o in overdue)),
        mean_days_late=round(sum(o.days_late for o in overdue) / len(overdue)) if overdue else 0,
        practices=overdue,
    )


def _validate_manual_alert(body: ManualAlertRequest) -> tuple[str, str]:
    subject = body.subject.strip()
    message = body.message.strip()
    if not 1 <= len(subject) <= SUBJECT_MAX:
        raise ValidationError(
            f"Subject must be between 1 and {SUBJECT_MAX} characters",
            extra={"field": "subject"},
        )
    if not MESSAGE_MIN <= len(message) <= MESSAGE_MAX:
        raise ValidationError(
            f"Message must be between {MESSAGE_MIN} and {MESSAGE_MAX} characters",
            extra={"field": "message"},
        )
    return subject, message


async def dispatch_manual_alert(
    db: AsyncSession,
    caller: Identity,
    body: ManualAlertRequest,
    outbox: Outbox,
    now: datetime | None = None,
) -> ManualAlert:
    """
    Record an ad-hoc alert for the practice's student or supervisor and audit it.

    The notification is only queued on `outbox`; the caller delivers it after commit.
    """
    now = now or repo.utcnow()
    if caller.role not in (Role.COORDINATOR, Role.PROGRAM_DIRECTOR, Role.SUPER_ADMIN):
        raise Unauthorized(f"Role {caller.role.value} may not send manual alerts")

    practice = await repo.get_practice(db, body.practice_id)
    if not in_scope(caller, practice.campus_id, practice.program_id):
        raise Unauthorized(f"Practice {practice.id} is outside the caller's scope")
    subject, message = _validate_manual_alert(body)

    if body.recipient == "supervisor":
        if practice.supervisor_id is None:
            raise ValidationError(
                f"Practice {practice.id} has no supervisor to notify",
                extra={"recipient": body.recipient},
            )
        recipient_id = practice.supervisor_id
    else:
        recipient_id = practice.student_id
    account = await repo.get_account(db, recipient_id)
    if account is None:
        raise NotFound("Account", recipient_id)

    if settings.manual_alert_dedupe_hours > 0:
        since = now - timedelta(hours=settings.manual_alert_dedupe_hours)
        previous = await repo.find_recent_manual_alert(db, practice.id, subject, since)
        if previous is not None:
            raise DuplicateAlert(
                f"An alert with this subject was already sent for practice {practice.id} "
                f"in the last {settings.manual_alert_dedupe_hours} hours",
                extra={"previous_alert_id": previous.id},
            )

    alert = await repo.create_manual_alert(
        db,
        practice_id=practice.id,
        subject=subject,
        message=message,
        recipient_user_id=account.user_id,
        recipient_role=body.recipient,
        sent_by=caller.user_id,
        sent_at=now,
    )
    await audit.record(
        db,
        caller,
        AuditAction.MANUAL_ALERT_DISPATCHED,
        "ManualAlert",
        alert.id,
        f"Manual alert sent: {subject}",
        metadata={
            "practice_id": practice.id,
            "subject": subject,
            "recipient_user_id": account.user_id,
            "recipient_role": body.recipient,
        },
        now=now,
    )
    outbox.add(
        Notification(
            recipient_user_id=account.user_id,
            recipient_email=account.email,
            recipient_name=account.display_name,
            subject=subject,
            message=message,
            practice_id=practice.id,
        )
    )
    logger.info("manual alert %s queued for practice %s", alert.id, practice.id)
    return alert


async def list_manual_alerts(
    db: AsyncSession, caller: Identity, practice_id: int
) -> list[ManualAlert]:
    """Dispatch history for one practice, newest first."""
    practice = await repo.get_practice(db, practice_id)
    if not in_scope(caller, practice.campus_id, practice.program_id):
        raise Unauthorized(f"Practice {practice_id} is outside the caller's scope")
    return await repo.list_manual_alerts(db, practice.id)
