"""Audit service for logging all system changes."""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare.models import AuditLog, User
from daycare.utils.timezone import now_utc

logger = logging.getLogger(__name__)

SYSTEM_USER_NAME = "System"


def actor_fields(user: Optional[User]) -> Dict[str, Any]:
    """Audit columns describing who acted."""
    if user is None:
        return {"user_name": SYSTEM_USER_NAME, "user_type": "system", "user_id": None}
    return {
        "user_name": user.full_name,
        "user_type": user.role.value.lower(),
        "user_id": user.id,
    }


async def log_audit(
    db: AsyncSession,
    action_type: str,  # 'CREATE', 'UPDATE', 'DELETE', 'CLOSE', 'APPROVE', ...
    entity_type: str,  # 'family', 'child', 'parent', 'invoice', 'payment', 'pay_period', ...
    entity_id: Optional[int],
    entity_name: Optional[str],
    description: str,
    user: Optional[User] = None,
    changes: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit event to the caller's transaction.

    The row is only persisted when the caller commits, so a rolled back
    operation leaves no audit trace.

    Args:
        db: Database session
        action_type: Type of action (CREATE, UPDATE, DELETE, etc.)
        entity_type: Type of entity (family, child, invoice, etc.)
        entity_id: ID of the entity
        entity_name: Name of the entity for quick search
        description: Human-readable description
        user: Account that performed the action, None for background jobs
        changes: Dictionary with before/after changes
    """
    audit_log = AuditLog(
        timestamp=now_utc(),
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        description=description,
        changes_json=changes,
        **actor_fields(user),
    )
    db.add(audit_log)
    logger.info(f"Audit: {action_type} {entity_type} '{entity_name}' by {audit_log.user_name}")
    return audit_log


async def get_audit_logs(
    db: AsyncSession,
    date_from=None,
    date_to=None,
    entity_type: Optional[str] = None,
    action_type: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """
    Get audit logs with filters.

    Returns:
        Tuple of (list of audit logs, total count)
    """
    filters = []

    if date_from:
        filters.append(AuditLog.timestamp >= date_from)

    if date_to:
        filters.append(AuditLog.timestamp <= date_to)

    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)

    if action_type:
        filters.append(AuditLog.action_type == action_type)

    if search:
        search_pattern = f"%{search}%"
        filters.append(
            or_(
                AuditLog.entity_name.ilike(search_pattern),
                AuditLog.description.ilike(search_pattern),
                AuditLog.user_name.ilike(search_pattern),
            )
        )

    query = select(AuditLog)
    count_query = select(func.count(AuditLog.id))
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    # Newest first
    query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).offset(offset)

    result = await db.execute(query)
    logs = result.scalars().all()

    count_result = await db.execute(count_query)
    total_count = count_result.scalar() or 0

    return list(logs), total_count


async def delete_old_audit_logs(db: AsyncSession, days: int = 365) -> int:
    """Delete audit logs older than `days` and return how many were removed."""
    cutoff_date = now_utc() - timedelta(days=days)

    try:
        result = await db.execute(
            delete(AuditLog).where(AuditLog.timestamp < cutoff_date)
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to delete old audit logs: {e}")
        raise

    deleted_count = result.rowcount
    logger.info(f"Deleted {deleted_count} old audit logs (older than {days} days)")
    return deleted_count
