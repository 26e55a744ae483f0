"""Audit recorder - append-only log of privileged mutations."""

import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ipms.config import settings
from ipms.models import AuditEntry
from ipms.schemas.audit import AuditEntryResponse, AuditPage, AuditQuery
from ipms.schemas.common import AuditAction, Identity
from ipms.storage import repositories as repo
from ipms.utils.canonical import canonical_json

logger = logging.getLogger(__name__)


async def record(
    db: AsyncSession,
    caller: Identity,
    action: AuditAction,
    entity_type: str,
    entity_id: Any,
    description: str,
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> AuditEntry:
    """
    Append one entry in the caller's transaction.
    Failures raise PersistenceError so the business change rolls back with it.
    """
    entry = await repo.create_audit_entry(
        db,
        actor_user_id=caller.user_id,
        action=action.value,
        entity_type=entity_type,
        entity_id=str(entity_id),
        description=description,
        # Round-trip through canonical JSON so dates/decimals are stored as plain values.
        metadata_json=_json_safe(metadata or {}),
        occurred_at=now or repo.utcnow(),
        request_origin=caller.origin,
    )
    logger.info("audit %s %s:%s by user %s", action.value, entity_type, entity_id, caller.user_id)
    return entry


def _json_safe(metadata: dict[str, Any]) -> dict[str, Any]:
    return json.loads(canonical_json(metadata))


async def query(db: AsyncSession, filters: AuditQuery) -> AuditPage:
    """Newest-first page of audit entries; limit is clamped to the configured maximum."""
    limit = min(filters.limit, settings.audit_max_page_size)
    entries, total = await repo.query_audit_entries(db, filters, limit, filters.offset)
    return AuditPage(
        items=[AuditEntryResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=filters.offset,
    )
