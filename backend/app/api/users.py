"""
User management endpoints (admin only)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import TokenUser, require_admin, hash_password
from app.core.errors import NotFound, Conflict, BusinessRuleError
from app.core.pagination import PaginationParams, paginated
from app.domain.user import UserCreate, UserUpdate, RoleAssignment, RoleName
from app.repositories.user_repository import UserRepository
from app.services.audit_service import AuditTrail, get_audit_trail

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_or_404(repo: UserRepository, user_id: int):
    user = repo.find_by_id(user_id)
    if not user:
        raise NotFound("User")
    return user


@router.get("/")
async def list_users(
    pagination: PaginationParams = Depends(),
    role: Optional[RoleName] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None),
    admin: TokenUser = Depends(require_admin)
):
    """List all users (admin only)"""
    try:
        repo = UserRepository()
        users, total = repo.find_all(
            role=role,
            is_active=is_active,
            search=pagination.search,
            sort_by=pagination.sort_by or "created_at",
            order=pagination.order,
            limit=pagination.limit,
            offset=pagination.offset
        )
        return paginated([u.to_dict() for u in users], total, pagination)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching users: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching users: {str(e)}")


@router.get("/{user_id}")
async def get_user(user_id: int, admin: TokenUser = Depends(require_admin)):
    repo = UserRepository()
    user = _get_or_404(repo, user_id)

    return {"status": "success", "data": user.to_dict()}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    admin: TokenUser = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Create a new user (admin only)"""
    repo = UserRepository()

    if repo.email_exists(data.email):
        raise Conflict("User with this email already exists")

    user = repo.create(
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=data.role
    )
    logger.info(f"User {user.email} created by admin {admin.id}")
    audit.created(admin.id, "user", user.id, user.to_dict())

    return {
        "status": "success",
        "message": "User created successfully",
        "data": user.to_dict()
    }


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    admin: TokenUser = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = UserRepository()

    if data.email and repo.email_exists(data.email, exclude_id=user_id):
        raise Conflict("User with this email already exists")

    if user_id == admin.id and data.is_active is False:
        raise BusinessRuleError("You cannot deactivate your own account")

    before = _get_or_404(repo, user_id)
    user = repo.update(user_id, data.model_dump(exclude_unset=True))
    if not user:
        raise NotFound("User")

    audit.updated(admin.id, "user", user_id, before.to_dict(), user.to_dict(), fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "User updated successfully",
        "data": user.to_dict()
    }


@router.put("/{user_id}/role")
async def assign_role(
    user_id: int,
    data: RoleAssignment,
    admin: TokenUser = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Change a user's role; admins cannot demote themselves"""
    if user_id == admin.id and data.role != "admin":
        raise BusinessRuleError("You cannot change your own role")

    repo = UserRepository()
    before = _get_or_404(repo, user_id)
    user = repo.update(user_id, {"role": data.role})
    if not user:
        raise NotFound("User")

    logger.info(f"User {user_id} assigned role {data.role} by admin {admin.id}")
    audit.updated(admin.id, "user", user_id, before.to_dict(), user.to_dict(), fields=("role",))

    return {
        "status": "success",
        "message": f"Role updated to {data.role}",
        "data": user.to_dict()
    }


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    admin: TokenUser = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Delete a user (admin only)"""
    if user_id == admin.id:
        raise BusinessRuleError("You cannot delete your own account")

    repo = UserRepository()
    user = _get_or_404(repo, user_id)
    if not repo.delete(user_id):
        raise NotFound("User")

    logger.info(f"User {user_id} deleted by admin {admin.id}")
    audit.deleted(admin.id, "user", user_id, user.to_dict())
    return {"status": "success", "message": "User deleted successfully"}
