"""Audit log API endpoints."""

from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import func, select

from daycare.api.dependencies import AdminUser, DbSession
from daycare.models import AuditLog
from daycare.services.audit_service import delete_old_audit_logs, get_audit_logs
from daycare.utils.timezone import now_utc

router = APIRouter(prefix="/api/audit", tags=["audit"])


# === PYDANTIC MODELS ===

class AuditLogResponse(BaseModel):
    """Response model for audit log."""
    id: int
    timestamp: datetime
    user_type: str
    user_id: Optional[int] = None
    user_name: str
    action_type: str
    entity_type: str
    entity_id: Optional[int] = None
    entity_name: Optional[str] = None
    description: str
    changes_json: Optional[dict] = None

    class Config:
        from_attributes = True


class AuditLogsListResponse(BaseModel):
    """Response model for audit logs list with pagination."""
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


# === ENDPOINTS ===

@router.get("/logs", response_model=AuditLogsListResponse)
async def list_audit_logs(
    db: DbSession,
    admin: AdminUser,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by entity name, description or user"),
    action_type: Optional[str] = Query(None, description="Filter by action type"),
    entity_type: Optional[str] = Query(None, description="Filter by entity type"),
    date_from: Optional[datetime] = Query(None, description="Filter from date"),
    date_to: Optional[datetime] = Query(None, description="Filter to date"),
):
    """Get audit logs with filters and pagination, newest first."""
    # date_to covers the whole day
    date_to_end = date_to + timedelta(days=1) if date_to else None

    logs, total = await get_audit_logs(
        db,
        date_from=date_from,
        date_to=date_to_end,
        entity_type=entity_type,
        action_type=action_type,
        search=search,
        limit=page_size,
        offset=(page - 1) * page_size,
    )

    return AuditLogsListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/logs/{log_id}", response_model=AuditLogResponse)
async def get_audit_log_detail(log_id: int, db: DbSession, admin: AdminUser):
    log = await db.get(AuditLog, log_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Audit log not found"
        )
    return AuditLogResponse.model_validate(log)


@router.get("/entity/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
async def entity_history(entity_type: str, entity_id: int, db: DbSession, admin: AdminUser):
    """Full change history of one record."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    )
    return result.scalars().all()


@router.delete("/logs/old")
async def delete_old_logs(
    db: DbSession,
    admin: AdminUser,
    days: int = Query(365, ge=30, le=3650, description="Delete logs older than this many days"),
):
    """Delete audit logs older than the given number of days."""
    deleted = await delete_old_audit_logs(db, days=days)
    return {
        "deleted_count": deleted,
        "cutoff_date": (now_utc() - timedelta(days=days)).isoformat(),
        "message": f"Deleted {deleted} logs older than {days} days",
    }


@router.get("/stats")
async def get_audit_stats(
    db: DbSession,
    admin: AdminUser,
    days: int = Query(30, ge=1, le=365, description="Statistics for last N days"),
):
    """Counts by action and entity type over the last N days."""
    cutoff_date = now_utc() - timedelta(days=days)

    result = await db.execute(
        select(func.count(AuditLog.id)).where(AuditLog.timestamp >= cutoff_date)
    )
    total_logs = result.scalar() or 0

    result = await db.execute(
        select(AuditLog.action_type, func.count(AuditLog.id))
        .where(AuditLog.timestamp >= cutoff_date)
        .group_by(AuditLog.action_type)
    )
    actions_stats = {row[0]: row[1] for row in result.all()}

    result = await db.execute(
        select(AuditLog.entity_type, func.count(AuditLog.id))
        .where(AuditLog.timestamp >= cutoff_date)
        .group_by(AuditLog.entity_type)
    )
    entities_stats = {row[0]: row[1] for row in result.all()}

    return {
        "period_days": days,
        "total_logs": total_logs,
        "actions": actions_stats,
        "entities": entities_stats,
    }
