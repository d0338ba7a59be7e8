"""Audit logging service."""

import json
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.audit_log import AuditLogEntry

logger = get_logger(__name__)


async def log_activity(
    db: AsyncSession,
    user_id: uuid.UUID | None,
    action: str,
    resource: str,
    resource_id: uuid.UUID | str | None = None,
    detail: dict[str, Any] | None = None,
    commit: bool = True,
) -> bool:
    """Append an audit log entry.

    Fire-and-forget: logs errors but never raises so callers are not
    disrupted. With ``commit=False`` the entry is only flushed and rides
    on the caller's transaction.

    Returns:
        False if the write failed. The session was rolled back in that
        case, which expires every instance it holds, so callers that keep
        using an ORM object must refresh it first.
    """
    entry = AuditLogEntry(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        detail=json.dumps(detail, default=str) if detail else None,
    )
    try:
        db.add(entry)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return True
    except Exception:
        try:
            await db.rollback()
        except Exception:
            logger.debug("Rollback after audit failure also failed")
        logger.exception(
            "Failed to write audit log",
            action=action,
            resource=resource,
        )
        return False
