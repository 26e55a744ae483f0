"""Audit log model."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from ipms.database import Base, JSONType


class AuditEntry(Base):
    """Audit records - append-only."""

    __tablename__ = "audit_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(60), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    request_origin: Mapped[str] = mapped_column(String(255), nullable=False)


@event.listens_for(AuditEntry, "before_update")
def _audit_no_update(mapper, connection, target):
    raise RuntimeError("Audit entries are append-only")


@event.listens_for(AuditEntry, "before_delete")
def _audit_no_delete(mapper, connection, target):
    raise RuntimeError("Audit entries are append-only")
