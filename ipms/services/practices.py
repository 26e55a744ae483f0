"""Practice lifecycle controller.

Every mutating operation follows the same sequence: load the practice, resolve
the (state, event) pair in the guard table, check the caller, validate the
payload, apply the transition with a compare-and-set keyed by the state that
was read, and append exactly one audit entry. Nothing is committed here; the
caller owns the transaction, so the audit entry and the business change land
or roll back together.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ipms.config import settings
from ipms.engine import lifecycle
from ipms.engine.lifecycle import Event
from ipms.engine.scoring import (
    compute_employer_score,
    compute_final_grade,
    compute_report_score,
    normalize_grade,
)
from ipms.errors import (
    InvalidStateTransition,
    NotFound,
    PrematureClose,
    Unauthorized,
    ValidationError,
)
from ipms.models import EmployerEvaluation, FinalRecord, Practice, ReportEvaluation
from ipms.notifications import Notification, Outbox
from ipms.schemas.alert import AlertScope
from ipms.schemas.common import AuditAction, Identity, PracticeState, Role
from ipms.schemas.evaluation import EmployerEvaluationRequest, ReportEvaluationRequest
from ipms.schemas.practice import (
    AssignSupervisorRequest,
    CreatePracticeRequest,
    DeclineRequest,
    SubmitReportRequest,
)
from ipms.services import audit
from ipms.services.policy import get_active_policy
from ipms.storage import repositories as repo
from ipms.utils.canonical import record_hash

logger = logging.getLogger(__name__)

ENTITY = "Practice"


def _authorize(practice: Practice, event: Event, caller: Identity | None) -> lifecycle.Transition:
    try:
        return lifecycle.authorize(practice.state, event, caller, practice)
    except (InvalidStateTransition, Unauthorized) as exc:
        logger.warning("practice %s: %s rejected: %s", practice.id, event.value, exc)
        raise


async def _transition(
    db: AsyncSession,
    practice: Practice,
    transition: lifecycle.Transition,
    now: datetime | None = None,
    **changes,
) -> Practice:
    previous = practice.state
    await repo.compare_and_set_state(
        db, practice, previous, transition.target.value, now=now, **changes
    )
    if previous != practice.state:
        logger.info(
            "practice %s: %s -> %s (%s)",
            practice.id,
            previous,
            practice.state,
            transition.event.value,
        )
    return practice


# --- create / supervision --------------------------------------------------


async def create_practice(
    db: AsyncSession,
    caller: Identity,
    body: CreatePracticeRequest,
    now: datetime | None = None,
) -> Practice:
    """Create a practice in PENDIENTE. Coordinator of the campus or SUPER_ADMIN."""
    lifecycle.check_guard(lifecycle.CREATE_GUARD, caller, body)
    if body.end_date < body.start_date:
        raise ValidationError(
            "end_date must be on or after start_date",
            extra={"start_date": body.start_date.isoformat(), "end_date": body.end_date.isoformat()},
        )

    practice = await repo.create_practice(
        db,
        student_id=body.student_id,
        program_id=body.program_id,
        campus_id=body.campus_id,
        host_organization_id=body.host_organization_id,
        kind=body.kind.value,
        start_date=body.start_date,
        end_date=body.end_date,
        state=PracticeState.PENDIENTE.value,
        now=now,
    )
    await audit.record(
        db,
        caller,
        AuditAction.PRACTICE_CREATED,
        ENTITY,
        practice.id,
        f"Practice created for student {practice.student_id}",
        metadata=body.model_dump(mode="json"),
        now=now,
    )
    logger.info("practice %s created for student %s", practice.id, practice.student_id)
    return practice


async def assign_supervisor(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    body: AssignSupervisorRequest,
    now: datetime | None = None,
) -> Practice:
    """PENDIENTE -> PENDIENTE_ACEPTACION_DOCENTE."""
    practice = await repo.get_practice(db, practice_id)
    transition = _authorize(practice, Event.ASSIGN_SUPERVISOR, caller)

    changes = {"supervisor_id": body.supervisor_id}
    if body.host_organization_id is not None:
        changes["host_organization_id"] = body.host_organization_id
    await _transition(db, practice, transition, now=now, **changes)

    await audit.record(
        db,
        caller,
        AuditAction.SUPERVISOR_ASSIGNED,
        ENTITY,
        practice.id,
        f"Supervisor {body.supervisor_id} assigned",
        metadata={"supervisor_id": body.supervisor_id, "host_organization_id": practice.host_organization_id},
        now=now,
    )
    return practice


async def accept_by_supervisor(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    now: datetime | None = None,
) -> Practice:
    """PENDIENTE_ACEPTACION_DOCENTE -> EN_CURSO, by the assigned supervisor."""
    practice = await repo.get_practice(db, practice_id)
    transition = _authorize(practice, Event.ACCEPT, caller)
    if practice.supervisor_id is None:
        raise InvalidStateTransition(
            practice.state, Event.ACCEPT.value, reason="no supervisor assigned"
        )

    await _transition(db, practice, transition, now=now)
    await audit.record(
        db,
        caller,
        AuditAction.SUPERVISOR_ACCEPTED,
        ENTITY,
        practice.id,
        "Supervision accepted",
        metadata={"supervisor_id": practice.supervisor_id},
        now=now,
    )
    return practice


async def decline_by_supervisor(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    body: DeclineRequest,
    outbox: Outbox | None = None,
    now: datetime | None = None,
) -> Practice:
    """
    PENDIENTE_ACEPTACION_DOCENTE -> PENDIENTE, clearing the supervisor.

    With notify_coordinator_on_decline set, coordinator notifications are queued on
    `outbox` for delivery after commit.
    """
    practice = await repo.get_practice(db, practice_id)
    transition = _authorize(practice, Event.DECLINE, caller)
    declined_by = practice.supervisor_id

    await _transition(db, practice, transition, now=now, supervisor_id=None)

    notified: list[int] = []
    if settings.notify_coordinator_on_decline and outbox is not None:
        notified = await _queue_decline_notifications(
            db, practice, declined_by, body.reason, outbox
        )

    await audit.record(
        db,
        caller,
        AuditAction.SUPERVISOR_DECLINED,
        ENTITY,
        practice.id,
        "Supervision declined",
        metadata={
            "supervisor_id": declined_by,
            "reason": body.reason,
            "notified_coordinators": notified,
        },
        now=now,
    )
    return practice


async def _queue_decline_notifications(
    db: AsyncSession,
    practice: Practice,
    supervisor_id: int | None,
    reason: str | None,
    outbox: Outbox,
) -> list[int]:
    coordinators = await repo.list_active_accounts(
        db, Role.COORDINATOR.value, campus_id=practice.campus_id
    )
    message = f"Supervisor {supervisor_id} declined the supervision of practice {practice.id}."
    if reason:
        message = f"{message} Reason: {reason}"
    for account in coordinators:
        outbox.add(
            Notification(
                recipient_user_id=account.user_id,
                recipient_email=account.email,
                recipient_name=account.display_name,
                subject=f"Supervision declined - practice {practice.id}",
                message=message,
                practice_id=practice.id,
            )
        )
    return [a.user_id for a in coordinators]


# --- execution / evaluation ------------------------------------------------


async def submit_report(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    body: SubmitReportRequest,
    now: datetime | None = None,
) -> Practice:
    """EN_CURSO -> FINALIZADA_PENDIENTE_EVAL, by the student, once the end date is reached."""
    now = now or repo.utcnow()
    practice = await repo.get_practice(db, practice_id)
    transition = _authorize(practice, Event.SUBMIT_REPORT, caller)
    if repo.institution_date(now) < practice.end_date:
        raise InvalidStateTransition(
            practice.state,
            Event.SUBMIT_REPORT.value,
            reason=f"report cannot be submitted before the end date {practice.end_date.isoformat()}",
        )

    await _transition(
        db,
        practice,
        transition,
        now=now,
        report_document_ref=body.report_document_ref,
        report_submitted_at=now,
    )
    await audit.record(
        db,
        caller,
        AuditAction.REPORT_SUBMITTED,
        ENTITY,
        practice.id,
        "Practice report submitted",
        metadata={"report_document_ref": body.report_document_ref},
        now=now,
    )
    return practice


async def _complete_if_ready(
    db: AsyncSession, practice: Practice, now: datetime | None = None
) -> float | None:
    """System transition to EVALUACION_COMPLETA once both evaluations exist."""
    employer = await repo.get_employer_evaluation(db, practice.id)
    report = await repo.get_report_evaluation(db, practice.id)
    if employer is None or report is None:
        return None

    transition = _authorize(practice, Event.COMPLETE_EVALUATION, None)
    policy = await get_active_policy(db)
    grade = compute_final_grade(employer.final_score, report.score, policy)
    await _transition(
        db,
        practice,
        transition,
        now=now,
        computed_grade=grade,
        policy_version=policy.version,
    )
    return grade


async def record_employer_evaluation(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    body: EmployerEvaluationRequest,
    now: datetime | None = None,
) -> EmployerEvaluation:
    """Store the host organization's evaluation; completes the practice if the report grade exists."""
    practice = await repo.get_practice(db, practice_id)
    transition = _authorize(practice, Event.RECORD_EMPLOYER_EVALUATION, caller)
    final_score = compute_employer_score(body.criteria)

    # Serializes concurrent evaluation submissions for this practice.
    await _transition(db, practice, transition, now=now)
    if await repo.get_employer_evaluation(db, practice.id) is not None:
        raise ValidationError(
            f"Practice {practice.id} already has an employer evaluation",
            extra={"practice_id": practice.id},
        )

    evaluation = await repo.create_employer_evaluation(
        db,
        practice_id=practice.id,
        criteria=[c.model_dump() for c in body.criteria],
        final_score=final_score,
        evaluator_user_id=caller.user_id,
        comments=body.comments,
        now=now,
    )
    grade = await _complete_if_ready(db, practice, now=now)

    await audit.record(
        db,
        caller,
        AuditAction.EMPLOYER_EVALUATION_RECORDED,
        "EmployerEvaluation",
        evaluation.id,
        f"Employer evaluation recorded with score {final_score}",
        metadata={
            "practice_id": practice.id,
            "final_score": final_score,
            "evaluation_complete": grade is not None,
            "computed_grade": grade,
        },
        now=now,
    )
    return evaluation


async def record_report_evaluation(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    body: ReportEvaluationRequest,
    now: datetime | None = None,
) -> ReportEvaluation:
    """Store the supervisor's report grade; completes the practice if the employer evaluation exists."""
    practice = await repo.get_practice(db, practice_id)
    transition = _authorize(practice, Event.RECORD_REPORT_EVALUATION, caller)
    if body.rubric is not None:
        score = compute_report_score(body.rubric)
    else:
        score = normalize_grade(body.score, "score")

    await _transition(db, practice, transition, now=now)
    if await repo.get_report_evaluation(db, practice.id) is not None:
        raise ValidationError(
            f"Practice {practice.id} already has a report evaluation",
            extra={"practice_id": practice.id},
        )

    evaluation = await repo.create_report_evaluation(
        db,
        practice_id=practice.id,
        score=score,
        evaluator_user_id=caller.user_id,
        rubric=body.rubric,
        comments=body.comments,
        now=now,
    )
    grade = await _complete_if_ready(db, practice, now=now)

    await audit.record(
        db,
        caller,
        AuditAction.REPORT_EVALUATION_RECORDED,
        "ReportEvaluation",
        evaluation.id,
        f"Report evaluation recorded with score {score}",
        metadata={
            "practice_id": practice.id,
            "score": score,
            "evaluation_complete": grade is not None,
            "computed_grade": grade,
        },
        now=now,
    )
    return evaluation


# --- close -----------------------------------------------------------------


async def close_practice(
    db: AsyncSession,
    caller: Identity,
    practice_id: int,
    now: datetime | None = None,
) -> FinalRecord:
    """EVALUACION_COMPLETA -> CERRADA, writing the immutable final record."""
    now = now or repo.utcnow()
    practice = await repo.get_practice(db, practice_id)
    if practice.state != PracticeState.EVALUACION_COMPLETA.value:
        logger.warning("practice %s: close rejected in state %s", practice.id, practice.state)
        raise PrematureClose(practice.state)
    transition = _authorize(practice, Event.CLOSE, caller)

    employer = await repo.get_employer_evaluation(db, practice.id)
    report = await repo.get_report_evaluation(db, practice.id)
    policy = None
    if practice.policy_version is not None:
        policy = await repo.get_policy_version(db, practice.policy_version)
    if employer is None or report is None or policy is None or practice.computed_grade is None:
        raise InvalidStateTransition(
            practice.state, Event.CLOSE.value, reason="evaluation data is incomplete"
        )

    await _transition(db, practice, transition, now=now)

    values = {
        "practice_id": practice.id,
        "final_grade": practice.computed_grade,
        "employer_score": employer.final_score,
        "report_score": report.score,
        "employer_weight_pct": policy.employer_weight_pct,
        "report_weight_pct": policy.report_weight_pct,
        "policy_version": policy.version,
        "closed_by": caller.user_id,
        "closed_at": now,
    }
    record = await repo.create_final_record(db, record_hash=record_hash(values), **values)
    await audit.record(
        db,
        caller,
        AuditAction.PRACTICE_CLOSED,
        ENTITY,
        practice.id,
        f"Practice closed with final grade {record.final_grade}",
        metadata={**values, "record_hash": record.record_hash},
        now=now,
    )
    return record


# --- reads -----------------------------------------------------------------


def can_view(caller: Identity, practice: Practice) -> bool:
    if caller.role in (Role.SUPER_ADMIN, Role.COORDINATOR, Role.PROGRAM_DIRECTOR):
        return lifecycle.in_scope(caller, practice.campus_id, practice.program_id)
    if caller.role is Role.STUDENT:
        return practice.student_id == caller.user_id
    if caller.role is Role.SUPERVISOR:
        return practice.supervisor_id == caller.user_id
    if caller.role is Role.EMPLOYER:
        return (
            practice.host_organization_id is not None
            and practice.host_organization_id == caller.scope_id
        )
    return False


async def get_practice_for(db: AsyncSession, caller: Identity, practice_id: int) -> Practice:
    practice = await repo.get_practice(db, practice_id)
    if not can_view(caller, practice):
        raise Unauthorized(f"Practice {practice_id} is outside the caller's scope")
    return practice


async def list_practices_for(
    db: AsyncSession,
    caller: Identity,
    state: PracticeState | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Practice], int]:
    """Practices visible to the caller."""
    filters: dict = {"state": state.value if state else None, "limit": limit, "offset": offset}
    if caller.role is Role.SUPER_ADMIN:
        pass
    elif caller.role in (Role.COORDINATOR, Role.PROGRAM_DIRECTOR):
        if caller.scope_id is None:
            return [], 0
        if caller.role is Role.COORDINATOR:
            filters["scope"] = AlertScope(campus_id=caller.scope_id)
        else:
            filters["scope"] = AlertScope(program_id=caller.scope_id)
    elif caller.role is Role.STUDENT:
        filters["student_id"] = caller.user_id
    elif caller.role is Role.SUPERVISOR:
        filters["supervisor_id"] = caller.user_id
    elif caller.role is Role.EMPLOYER:
        if caller.scope_id is None:
            return [], 0
        filters["host_organization_id"] = caller.scope_id
    return await repo.list_practices(db, **filters)


async def get_evaluations(
    db: AsyncSession, caller: Identity, practice_id: int
) -> tuple[EmployerEvaluation | None, ReportEvaluation | None]:
    practice = await get_practice_for(db, caller, practice_id)
    return (
        await repo.get_employer_evaluation(db, practice.id),
        await repo.get_report_evaluation(db, practice.id),
    )


async def get_final_record(db: AsyncSession, caller: Identity, practice_id: int) -> FinalRecord:
    practice = await get_practice_for(db, caller, practice_id)
    record = await repo.get_final_record(db, practice.id)
    if record is None:
        raise NotFound("FinalRecord", practice.id)
    return record
