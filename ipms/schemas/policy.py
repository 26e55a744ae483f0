"""Evaluation weight policy schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WeightPolicy(BaseModel):
    """Immutable snapshot of the employer/report split used for final grades."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    version: int = 0
    employer_weight_pct: int
    report_weight_pct: int


class UpdatePolicyRequest(BaseModel):
    """PUT /v1/admin/evaluation-policy request."""

    employer_weight_pct: int = Field(ge=0, le=100)
    report_weight_pct: int = Field(ge=0, le=100)


class PolicyResponse(WeightPolicy):
    updated_by: int | None = None
    created_at: datetime | None = None
