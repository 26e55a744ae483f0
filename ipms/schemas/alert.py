"""Alert schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AlertScope(BaseModel):
    """Optional program/campus filter for alert scans."""

    model_config = ConfigDict(frozen=True)

    program_id: int | None = None
    campus_id: int | None = None


class Alert(BaseModel):
    """Computed operator-facing alert."""

    id: str
    type: Literal["info", "warning"]
    title: str
    description: str
    count: int


class Criticality(str, Enum):
    NORMAL = "NORMAL"
    LOW = "LOW"
    CRITICAL = "CRITICAL"


class OverduePractice(BaseModel):
    practice_id: int
    student_id: int
    supervisor_id: int | None
    program_id: int
    campus_id: int
    state: str
    end_date: date
    days_late: int
    criticality: Criticality


class PendingClosureReport(BaseModel):
    total: int
    critical: int
    low: int
    normal: int
    by_program: dict[int, int] = Field(default_factory=dict)
    mean_days_late: int = 0
    practices: list[OverduePractice] = Field(default_factory=list)


class ManualAlertRequest(BaseModel):
    """POST /v1/alerts/manual request. Length bounds are checked by the alert service."""

    practice_id: int
    subject: str
    message: str
    recipient: Literal["student", "supervisor"] = "student"


class ManualAlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    practice_id: int
    subject: str
    message: str
    recipient_user_id: int
    recipient_role: str
    sent_by: int
    sent_at: datetime
