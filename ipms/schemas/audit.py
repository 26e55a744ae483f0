"""Audit log schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditQuery(BaseModel):
    """Filters and pagination for GET /v1/audit."""

    entity_type: str | None = None
    entity_id: str | None = None
    actor_user_id: int | None = None
    action: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_user_id: int
    action: str
    entity_type: str
    entity_id: str
    description: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    occurred_at: datetime
    request_origin: str


class AuditPage(BaseModel):
    items: list[AuditEntryResponse]
    total: int
    limit: int
    offset: int
