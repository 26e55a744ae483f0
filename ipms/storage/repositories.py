"""Repository functions for practices, evaluations, policy, alerts and audit."""

from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ipms.config import settings
from ipms.errors import ConcurrentModification, PersistenceError, PracticeNotFound
from ipms.models import (
    Account,
    AuditEntry,
    EmployerEvaluation,
    EvaluationWeightPolicy,
    FinalRecord,
    ManualAlert,
    Practice,
    ReportEvaluation,
)
from ipms.schemas.alert import AlertScope
from ipms.schemas.audit import AuditQuery


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def institution_date(now: datetime | None = None) -> date:
    """Calendar date of `now` at the institution."""
    return (now or utcnow()).astimezone(ZoneInfo(settings.institution_timezone)).date()


async def _flush(db: AsyncSession, what: str) -> None:
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not persist {what}: {exc.__class__.__name__}") from exc


def _scoped(stmt, scope: AlertScope | None):
    if scope is None:
        return stmt
    if scope.program_id is not None:
        stmt = stmt.where(Practice.program_id == scope.program_id)
    if scope.campus_id is not None:
        stmt = stmt.where(Practice.campus_id == scope.campus_id)
    return stmt


# --- practices -------------------------------------------------------------


async def create_practice(db: AsyncSession, **values: Any) -> Practice:
    """Insert a practice row."""
    now = values.pop("now", None) or utcnow()
    practice = Practice(created_at=now, updated_at=now, **values)
    db.add(practice)
    await _flush(db, "practice")
    return practice


async def get_practice(db: AsyncSession, practice_id: int) -> Practice:
    """Get a practice by id or raise PracticeNotFound."""
    result = await db.execute(select(Practice).where(Practice.id == practice_id))
    practice = result.scalar_one_or_none()
    if practice is None:
        raise PracticeNotFound(practice_id)
    return practice


async def compare_and_set_state(
    db: AsyncSession,
    practice: Practice,
    expected: str,
    new_state: str,
    **changes: Any,
) -> Practice:
    """
    Atomic transition keyed by (id, expected state).
    Zero affected rows means another writer moved the practice first.
    """
    values = {"state": new_state, "updated_at": changes.pop("now", None) or utcnow(), **changes}
    result = await db.execute(
        update(Practice)
        .where(Practice.id == practice.id, Practice.state == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrentModification("Practice", practice.id, expected)
    await db.refresh(practice)
    return practice


async def list_practices(
    db: AsyncSession,
    scope: AlertScope | None = None,
    state: str | None = None,
    student_id: int | None = None,
    supervisor_id: int | None = None,
    host_organization_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Practice], int]:
    """Filtered practice page (oldest first) and total count."""
    stmt = _scoped(select(Practice), scope)
    if state is not None:
        stmt = stmt.where(Practice.state == state)
    if student_id is not None:
        stmt = stmt.where(Practice.student_id == student_id)
    if supervisor_id is not None:
        stmt = stmt.where(Practice.supervisor_id == supervisor_id)
    if host_organization_id is not None:
        stmt = stmt.where(Practice.host_organization_id == host_organization_id)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await db.execute(stmt.order_by(Practice.id).limit(limit).offset(offset))
    return list(result.scalars().all()), total or 0


async def count_practices(
    db: AsyncSession,
    states: Iterable[str],
    scope: AlertScope | None = None,
    without_supervisor: bool = False,
    end_on_or_before: date | None = None,
) -> int:
    """Count practices in the given states, optionally unsupervised / ending by a date."""
    stmt = _scoped(
        select(func.count(Practice.id)).where(Practice.state.in_(list(states))), scope
    )
    if without_supervisor:
        stmt = stmt.where(Practice.supervisor_id.is_(None))
    if end_on_or_before is not None:
        stmt = stmt.where(Practice.end_date <= end_on_or_before)
    return await db.scalar(stmt) or 0


async def list_practices_ended_before(
    db: AsyncSession,
    cutoff: date,
    excluded_states: Iterable[str],
    scope: AlertScope | None = None,
) -> list[Practice]:
    """Practices whose end date is before cutoff and not in a closed state, oldest end first."""
    stmt = _scoped(
        select(Practice).where(
            Practice.end_date < cutoff,
            Practice.state.not_in(list(excluded_states)),
        ),
        scope,
    )
    result = await db.execute(stmt.order_by(Practice.end_date, Practice.id))
    return list(result.scalars().all())


# --- evaluations -----------------------------------------------------------


async def get_employer_evaluation(
    db: AsyncSession, practice_id: int
) -> EmployerEvaluation | None:
    result = await db.execute(
        select(EmployerEvaluation).where(EmployerEvaluation.practice_id == practice_id)
    )
    return result.scalar_one_or_none()


async def get_report_evaluation(
    db: AsyncSession, practice_id: int
) -> ReportEvaluation | None:
    result = await db.execute(
        select(ReportEvaluation).where(ReportEvaluation.practice_id == practice_id)
    )
    return result.scalar_one_or_none()


async def create_employer_evaluation(
    db: AsyncSession,
    practice_id: int,
    criteria: list[dict],
    final_score: float,
    evaluator_user_id: int,
    comments: str | None = None,
    now: datetime | None = None,
) -> EmployerEvaluation:
    evaluation = EmployerEvaluation(
        practice_id=practice_id,
        criteria_json=criteria,
        comments=comments,
        final_score=final_score,
        evaluator_user_id=evaluator_user_id,
        submitted_at=now or utcnow(),
    )
    db.add(evaluation)
    await _flush(db, "employer evaluation")
    return evaluation


async def create_report_evaluation(
    db: AsyncSession,
    practice_id: int,
    score: float,
    evaluator_user_id: int,
    rubric: dict | None = None,
    comments: str | None = None,
    now: datetime | None = None,
) -> ReportEvaluation:
    evaluation = ReportEvaluation(
        practice_id=practice_id,
        score=score,
        rubric_json=rubric,
        comments=comments,
        evaluator_user_id=evaluator_user_id,
        submitted_at=now or utcnow(),
    )
    db.add(evaluation)
    await _flush(db, "report evaluation")
    return evaluation


async def get_final_record(db: AsyncSession, practice_id: int) -> FinalRecord | None:
    result = await db.execute(
        select(FinalRecord).where(FinalRecord.practice_id == practice_id)
    )
    return result.scalar_one_or_none()


async def create_final_record(db: AsyncSession, **values: Any) -> FinalRecord:
    record = FinalRecord(**values)
    db.add(record)
    await _flush(db, "final record")
    return record


# --- weight policy ---------------------------------------------------------


async def get_latest_policy(db: AsyncSession) -> EvaluationWeightPolicy | None:
    result = await db.execute(
        select(EvaluationWeightPolicy)
        .order_by(EvaluationWeightPolicy.version.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_policy_version(
    db: AsyncSession, version: int
) -> EvaluationWeightPolicy | None:
    return await db.get(EvaluationWeightPolicy, version)


async def insert_policy_version(
    db: AsyncSession,
    version: int,
    employer_weight_pct: int,
    report_weight_pct: int,
    updated_by: int | None,
    now: datetime | None = None,
) -> EvaluationWeightPolicy:
    """Insert a new policy version; a taken version number means a concurrent writer."""
    policy = EvaluationWeightPolicy(
        version=version,
        employer_weight_pct=employer_weight_pct,
        report_weight_pct=report_weight_pct,
        updated_by=updated_by,
        created_at=now or utcnow(),
    )
    db.add(policy)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConcurrentModification("EvaluationWeightPolicy", version, f"version {version - 1}") from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not persist weight policy: {exc.__class__.__name__}") from exc
    return policy


# --- accounts --------------------------------------------------------------


async def get_account(db: AsyncSession, user_id: int) -> Account | None:
    return await db.get(Account, user_id)


async def list_active_accounts(
    db: AsyncSession, role: str, campus_id: int | None = None
) -> list[Account]:
    stmt = select(Account).where(Account.role == role, Account.active.is_(True))
    if campus_id is not None:
        stmt = stmt.where(Account.campus_id == campus_id)
    result = await db.execute(stmt.order_by(Account.user_id))
    return list(result.scalars().all())


async def count_inactive_accounts(db: AsyncSession, scope: AlertScope | None = None) -> int:
    stmt = select(func.count(Account.user_id)).where(Account.active.is_(False))
    if scope is not None and scope.program_id is not None:
        stmt = stmt.where(Account.program_id == scope.program_id)
    if scope is not None and scope.campus_id is not None:
        stmt = stmt.where(Account.campus_id == scope.campus_id)
    return await db.scalar(stmt) or 0


# --- manual alerts ---------------------------------------------------------


async def find_recent_manual_alert(
    db: AsyncSession, practice_id: int, subject: str, since: datetime
) -> ManualAlert | None:
    result = await db.execute(
        select(ManualAlert)
        .where(
            ManualAlert.practice_id == practice_id,
            ManualAlert.subject == subject,
            ManualAlert.sent_at >= since,
        )
        .order_by(ManualAlert.sent_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_manual_alert(db: AsyncSession, **values: Any) -> ManualAlert:
    alert = ManualAlert(**values)
    db.add(alert)
    await _flush(db, "manual alert")
    return alert


async def list_manual_alerts(db: AsyncSession, practice_id: int) -> list[ManualAlert]:
    result = await db.execute(
        select(ManualAlert)
        .where(ManualAlert.practice_id == practice_id)
        .order_by(ManualAlert.sent_at.desc(), ManualAlert.id.desc())
    )
    return list(result.scalars().all())


# --- audit -----------------------------------------------------------------


async def create_audit_entry(db: AsyncSession, **values: Any) -> AuditEntry:
    """Append one audit entry. Persistence failures propagate as PersistenceError."""
    entry = AuditEntry(**values)
    db.add(entry)
    await _flush(db, "audit entry")
    return entry


async def query_audit_entries(
    db: AsyncSession, filters: AuditQuery, limit: int, offset: int
) -> tuple[list[AuditEntry], int]:
    """Audit entries newest first plus the total match count."""
    stmt = select(AuditEntry)
    if filters.entity_type:
        stmt = stmt.where(AuditEntry.entity_type == filters.entity_type)
    if filters.entity_id:
        stmt = stmt.where(AuditEntry.entity_id == filters.entity_id)
    if filters.actor_user_id is not None:
        stmt = stmt.where(AuditEntry.actor_user_id == filters.actor_user_id)
    if filters.action:
        stmt = stmt.where(AuditEntry.action == filters.action)
    if filters.date_from is not None:
        stmt = stmt.where(AuditEntry.occurred_at >= filters.date_from)
    if filters.date_to is not None:
        stmt = stmt.where(AuditEntry.occurred_at <= filters.date_to)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await db.execute(
        stmt.order_by(AuditEntry.occurred_at.desc(), AuditEntry.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0
