"""Practice lifecycle endpoints."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ipms.auth.middleware import IdentityDep
from ipms.database import get_db
from ipms.notifications import Notifier, Outbox, get_notifier
from ipms.schemas.alert import ManualAlertResponse
from ipms.schemas.common import PracticeState
from ipms.schemas.evaluation import (
    EmployerEvaluationRequest,
    EmployerEvaluationResponse,
    PracticeEvaluationsResponse,
    ReportEvaluationRequest,
    ReportEvaluationResponse,
)
from ipms.schemas.practice import (
    AssignSupervisorRequest,
    CreatePracticeRequest,
    DeclineRequest,
    FinalRecordResponse,
    PracticeListResponse,
    PracticeResponse,
    SubmitReportRequest,
)
from ipms.services import alerts, practices

router = APIRouter()

DbDep = Annotated[AsyncSession, Depends(get_db)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]


@router.post("/practices", response_model=PracticeResponse, status_code=status.HTTP_201_CREATED)
async def create_practice(body: CreatePracticeRequest, caller: IdentityDep, db: DbDep):
    """Register a new practice in PENDIENTE."""
    practice = await practices.create_practice(db, caller, body)
    await db.commit()
    return PracticeResponse.model_validate(practice)


@router.get("/practices", response_model=PracticeListResponse)
async def list_practices(
    caller: IdentityDep,
    db: DbDep,
    state: PracticeState | None = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """Practices visible to the caller, filtered by state."""
    items, total = await practices.list_practices_for(db, caller, state, limit, offset)
    return PracticeListResponse(
        items=[PracticeResponse.model_validate(p) for p in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/practices/{practice_id}", response_model=PracticeResponse)
async def get_practice(practice_id: int, caller: IdentityDep, db: DbDep):
    practice = await practices.get_practice_for(db, caller, practice_id)
    return PracticeResponse.model_validate(practice)


@router.post("/practices/{practice_id}/supervisor", response_model=PracticeResponse)
async def assign_supervisor(
    practice_id: int, body: AssignSupervisorRequest, caller: IdentityDep, db: DbDep
):
    """PENDIENTE -> PENDIENTE_ACEPTACION_DOCENTE."""
    practice = await practices.assign_supervisor(db, caller, practice_id, body)
    await db.commit()
    return PracticeResponse.model_validate(practice)


@router.post("/practices/{practice_id}/supervisor/accept", response_model=PracticeResponse)
async def accept_supervision(practice_id: int, caller: IdentityDep, db: DbDep):
    """PENDIENTE_ACEPTACION_DOCENTE -> EN_CURSO."""
    practice = await practices.accept_by_supervisor(db, caller, practice_id)
    await db.commit()
    return PracticeResponse.model_validate(practice)


@router.post("/practices/{practice_id}/supervisor/decline", response_model=PracticeResponse)
async def decline_supervision(
    practice_id: int,
    body: DeclineRequest,
    caller: IdentityDep,
    db: DbDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """PENDIENTE_ACEPTACION_DOCENTE -> PENDIENTE, clearing the supervisor."""
    outbox = Outbox()
    practice = await practices.decline_by_supervisor(db, caller, practice_id, body, outbox=outbox)
    await db.commit()
    background_tasks.add_task(outbox.deliver, notifier)
    return PracticeResponse.model_validate(practice)


@router.post("/practices/{practice_id}/report", response_model=PracticeResponse)
async def submit_report(
    practice_id: int, body: SubmitReportRequest, caller: IdentityDep, db: DbDep
):
    """EN_CURSO -> FINALIZADA_PENDIENTE_EVAL once the end date has passed."""
    practice = await practices.submit_report(db, caller, practice_id, body)
    await db.commit()
    return PracticeResponse.model_validate(practice)


@router.get("/practices/{practice_id}/evaluations", response_model=PracticeEvaluationsResponse)
async def get_evaluations(practice_id: int, caller: IdentityDep, db: DbDep):
    employer, report = await practices.get_evaluations(db, caller, practice_id)
    return PracticeEvaluationsResponse(
        practice_id=practice_id,
        employer=EmployerEvaluationResponse.model_validate(employer) if employer else None,
        report=ReportEvaluationResponse.model_validate(report) if report else None,
    )


@router.post(
    "/practices/{practice_id}/evaluations/employer",
    response_model=EmployerEvaluationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_employer_evaluation(
    practice_id: int, body: EmployerEvaluationRequest, caller: IdentityDep, db: DbDep
):
    """Record the host organization's evaluation."""
    evaluation = await practices.record_employer_evaluation(db, caller, practice_id, body)
    await db.commit()
    return EmployerEvaluationResponse.model_validate(evaluation)


@router.post(
    "/practices/{practice_id}/evaluations/report",
    response_model=ReportEvaluationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_report_evaluation(
    practice_id: int, body: ReportEvaluationRequest, caller: IdentityDep, db: DbDep
):
    """Record the supervisor's report grade."""
    evaluation = await practices.record_report_evaluation(db, caller, practice_id, body)
    await db.commit()
    return ReportEvaluationResponse.model_validate(evaluation)


@router.post("/practices/{practice_id}/close", response_model=FinalRecordResponse)
async def close_practice(practice_id: int, caller: IdentityDep, db: DbDep):
    """EVALUACION_COMPLETA -> CERRADA, writing the final record."""
    record = await practices.close_practice(db, caller, practice_id)
    await db.commit()
    return FinalRecordResponse.model_validate(record)


@router.get("/practices/{practice_id}/final-record", response_model=FinalRecordResponse)
async def get_final_record(practice_id: int, caller: IdentityDep, db: DbDep):
    record = await practices.get_final_record(db, caller, practice_id)
    return FinalRecordResponse.model_validate(record)


@router.get("/practices/{practice_id}/alerts", response_model=list[ManualAlertResponse])
async def list_manual_alerts(practice_id: int, caller: IdentityDep, db: DbDep):
    """Manual alerts already sent for this practice."""
    sent = await alerts.list_manual_alerts(db, caller, practice_id)
    return [ManualAlertResponse.model_validate(a) for a in sent]
