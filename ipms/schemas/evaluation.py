"""Evaluation request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CriterionScore(BaseModel):
    """One employer criterion score. Range is enforced by the scoring engine."""

    criterion_id: str = Field(min_length=1)
    score: int


class EmployerEvaluationRequest(BaseModel):
    """POST /v1/practices/{id}/evaluations/employer request."""

    criteria: list[CriterionScore]
    comments: str | None = Field(default=None, max_length=2000)


class ReportEvaluationRequest(BaseModel):
    """POST /v1/practices/{id}/evaluations/report request.

    Either a direct ``score`` or a full ``rubric`` (criterion id -> 1..7).
    """

    score: float | None = None
    rubric: dict[str, int] | None = None
    comments: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def score_or_rubric(self):
        if (self.score is None) == (self.rubric is None):
            raise ValueError("provide exactly one of 'score' or 'rubric'")
        return self


class Criterion(BaseModel):
    """Catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    weight: int = 0


class EmployerEvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    practice_id: int
    criteria: list[CriterionScore] = Field(validation_alias="criteria_json")
    comments: str | None
    final_score: float
    evaluator_user_id: int
    submitted_at: datetime


class ReportEvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    practice_id: int
    score: float
    rubric: dict[str, int] | None = Field(default=None, validation_alias="rubric_json")
    comments: str | None
    evaluator_user_id: int
    submitted_at: datetime


class PracticeEvaluationsResponse(BaseModel):
    practice_id: int
    employer: EmployerEvaluationResponse | None = None
    report: ReportEvaluationResponse | None = None
