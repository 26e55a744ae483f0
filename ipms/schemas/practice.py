"""Practice lifecycle request/response schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from ipms.schemas.common import PracticeKind, PracticeState


class CreatePracticeRequest(BaseModel):
    """POST /v1/practices request."""

    student_id: int = Field(gt=0)
    program_id: int = Field(gt=0)
    campus_id: int = Field(gt=0)
    kind: PracticeKind
    start_date: date
    end_date: date
    host_organization_id: int | None = Field(default=None, gt=0)


class AssignSupervisorRequest(BaseModel):
    """POST /v1/practices/{id}/supervisor request."""

    supervisor_id: int = Field(gt=0)
    host_organization_id: int | None = Field(default=None, gt=0)


class DeclineRequest(BaseModel):
    """POST /v1/practices/{id}/supervisor/decline request."""

    reason: str | None = Field(default=None, max_length=1000)


class SubmitReportRequest(BaseModel):
    """POST /v1/practices/{id}/report request."""

    report_document_ref: str = Field(min_length=1, max_length=500)


class PracticeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    supervisor_id: int | None
    program_id: int
    campus_id: int
    host_organization_id: int | None
    kind: PracticeKind
    start_date: date
    end_date: date
    state: PracticeState
    report_document_ref: str | None
    report_submitted_at: datetime | None
    computed_grade: float | None
    policy_version: int | None
    created_at: datetime
    updated_at: datetime


class PracticeListResponse(BaseModel):
    items: list[PracticeResponse]
    total: int
    limit: int
    offset: int


class FinalRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    practice_id: int
    final_grade: float
    employer_score: float
    report_score: float
    employer_weight_pct: int
    report_weight_pct: int
    policy_version: int
    record_hash: str
    closed_by: int
    closed_at: datetime
