"""Practice, evaluation and final record models."""

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from ipms.database import Base, JSONType


class Practice(Base):
    """One internship assignment. Never deleted; state is the source of truth."""

    __tablename__ = "practices"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_practices_dates"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    supervisor_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    program_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    campus_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    host_organization_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    state: Mapped[str] = mapped_column(
        String(40), nullable=False, default="PENDIENTE", index=True
    )
    report_document_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Set on reaching EVALUACION_COMPLETA
    computed_grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    policy_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EmployerEvaluation(Base):
    """Host organization evaluation - one per practice."""

    __tablename__ = "employer_evaluations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    practice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("practices.id"), unique=True, nullable=False
    )
    criteria_json: Mapped[list] = mapped_column(JSONType, nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_score: Mapped[float] = mapped_column(Float, nullable=False)
    evaluator_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ReportEvaluation(Base):
    """Supervisor grade of the written report - one per practice."""

    __tablename__ = "report_evaluations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    practice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("practices.id"), unique=True, nullable=False
    )
    score: Mapped[float] = mapped_column(Float, nullable=False)
    rubric_json: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluator_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class FinalRecord(Base):
    """Closing record (acta) - immutable once written."""

    __tablename__ = "final_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    practice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("practices.id"), unique=True, nullable=False
    )
    final_grade: Mapped[float] = mapped_column(Float, nullable=False)
    employer_score: Mapped[float] = mapped_column(Float, nullable=False)
    report_score: Mapped[float] = mapped_column(Float, nullable=False)
    employer_weight_pct: Mapped[int] = mapped_column(Integer, nullable=False)
    report_weight_pct: Mapped[int] = mapped_column(Integer, nullable=False)
    policy_version: Mapped[int] = mapped_column(Integer, nullable=False)
    record_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    closed_by: Mapped[int] = mapped_column(Integer, nullable=False)
    closed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


@event.listens_for(FinalRecord, "before_update")
def _final_record_is_immutable(mapper, connection, target):
    raise RuntimeError(f"Final record for practice {target.practice_id} is immutable")
