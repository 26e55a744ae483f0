"""Evaluation weight policy model."""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ipms.database import Base


class EvaluationWeightPolicy(Base):
    """Versioned employer/report split - the highest version is active."""

    __tablename__ = "evaluation_weight_policies"

    version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    employer_weight_pct: Mapped[int] = mapped_column(Integer, nullable=False)
    report_weight_pct: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
