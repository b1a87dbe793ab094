"""
Audit trail endpoints

Who created, changed, deleted or exported what, plus sign-in events.
Everything is admin only except a user's own activity.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.auth import TokenUser, get_current_user, require_admin, has_role
from app.core.errors import PermissionDenied, ValidationFailed
from app.core.pagination import PaginationParams, paginated
from app.domain.audit import AuditAction
from app.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)

router = APIRouter()

ENTITY_TYPE_PATTERN = r"^[a-z_]{2,50}$"


@router.get("/")
async def get_audit_trail(
    pagination: PaginationParams = Depends(),
    user_id: Optional[int] = Query(None, ge=1, description="Acting user"),
    entity_type: Optional[str] = Query(None, pattern=ENTITY_TYPE_PATTERN),
    entity_id: Optional[str] = Query(None, max_length=100),
    action: Optional[AuditAction] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    admin: TokenUser = Depends(require_admin)
):
    """Query the audit trail, newest first"""
    if start_date and end_date and start_date > end_date:
        raise ValidationFailed(
            "start_date must not be after end_date",
            errors=[{"field": "start_date", "message": "Must not be after end_date"}]
        )

    try:
        repo = AuditRepository()
        entries, total = repo.find_all(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            start_date=start_date,
            end_date=end_date,
            limit=pagination.limit,
            offset=pagination.offset
        )
        return paginated([e.to_dict() for e in entries], total, pagination)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching audit trail: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching audit trail: {str(e)}")


@router.get("/recent")
async def get_recent_activity(
    limit: int = Query(50, ge=1, le=200),
    admin: TokenUser = Depends(require_admin)
):
    repo = AuditRepository()
    entries, _ = repo.find_all(limit=limit)
    return {"status": "success", "count": len(entries), "data": [e.to_dict() for e in entries]}


@router.get("/stats")
async def get_audit_stats(
    days: int = Query(30, ge=1, le=365),
    admin: TokenUser = Depends(require_admin)
):
    """Entry counts per action and per entity type"""
    repo = AuditRepository()
    return {"status": "success", "data": repo.get_stats(days)}


@router.get("/entity/{entity_type}/{entity_id}")
async def get_entity_history(
    entity_type: str,
    entity_id: str,
    limit: int = Query(100, ge=1, le=500),
    admin: TokenUser = Depends(require_admin)
):
    """Change history of one record, newest first"""
    repo = AuditRepository()
    entries, total = repo.find_all(entity_type=entity_type.lower(), entity_id=entity_id, limit=limit)
    return {
        "status": "success",
        "count": len(entries),
        "total": total,
        "data": [e.to_dict() for e in entries]
    }


@router.get("/user/{user_id}")
async def get_user_activity(
    user_id: int,
    days: int = Query(30, ge=1, le=365),
    pagination: PaginationParams = Depends(),
    user: TokenUser = Depends(get_current_user)
):
    """Actions performed by one user; non-admins may only see their own"""
    if user_id != user.id and not has_role(user.role, "admin"):
        raise PermissionDenied("You can only view your own activity")

    repo = AuditRepository()
    entries, total = repo.find_all(
        user_id=user_id,
        days=days,
        limit=pagination.limit,
        offset=pagination.offset
    )
    return paginated([e.to_dict() for e in entries], total, pagination, days=days)


@router.delete("/")
async def purge_audit_trail(
    older_than_days: int = Query(365, ge=30, description="Keep at least this many days"),
    admin: TokenUser = Depends(require_admin)
):
    repo = AuditRepository()
    deleted = repo.delete_older_than(older_than_days)
    logger.info(f"Audit entries older than {older_than_days} days purged by admin {admin.id}")

    return {
        "status": "success",
        "message": f"Deleted {deleted} audit entries",
        "data": {"deleted": deleted, "older_than_days": older_than_days}
    }
