"""Shared enums and the caller identity."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class PracticeState(str, Enum):
    """Wire-visible practice states."""

    PENDIENTE = "PENDIENTE"
    PENDIENTE_ACEPTACION_DOCENTE = "PENDIENTE_ACEPTACION_DOCENTE"
    EN_CURSO = "EN_CURSO"
    FINALIZADA_PENDIENTE_EVAL = "FINALIZADA_PENDIENTE_EVAL"
    EVALUACION_COMPLETA = "EVALUACION_COMPLETA"
    CERRADA = "CERRADA"


class PracticeKind(str, Enum):
    LABOR = "LABOR"
    PROFESSIONAL = "PROFESSIONAL"


class Role(str, Enum):
    STUDENT = "STUDENT"
    SUPERVISOR = "SUPERVISOR"
    COORDINATOR = "COORDINATOR"
    PROGRAM_DIRECTOR = "PROGRAM_DIRECTOR"
    SUPER_ADMIN = "SUPER_ADMIN"
    EMPLOYER = "EMPLOYER"


class AuditAction(str, Enum):
    """Privileged operations written to the audit log. Stored as plain strings."""

    PRACTICE_CREATED = "PRACTICE_CREATED"
    SUPERVISOR_ASSIGNED = "SUPERVISOR_ASSIGNED"
    SUPERVISOR_ACCEPTED = "SUPERVISOR_ACCEPTED"
    SUPERVISOR_DECLINED = "SUPERVISOR_DECLINED"
    REPORT_SUBMITTED = "REPORT_SUBMITTED"
    EMPLOYER_EVALUATION_RECORDED = "EMPLOYER_EVALUATION_RECORDED"
    REPORT_EVALUATION_RECORDED = "REPORT_EVALUATION_RECORDED"
    PRACTICE_CLOSED = "PRACTICE_CLOSED"
    MANUAL_ALERT_DISPATCHED = "MANUAL_ALERT_DISPATCHED"
    POLICY_UPDATED = "POLICY_UPDATED"


class Identity(BaseModel):
    """Caller as resolved by the upstream authorization gate."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: Role
    scope_id: int | None = None
    origin: str = "unknown"
