"""
Roles API Endpoints (read-only; roles are seeded by init_db)
"""
from fastapi import APIRouter, Depends

from app.core.auth import TokenUser, get_current_user
from app.core.errors import NotFound
from app.repositories.user_repository import UserRepository

router = APIRouter()


@router.get("/")
async def list_roles(user: TokenUser = Depends(get_current_user)):
    repo = UserRepository()
    roles = repo.find_roles()
    return {
        "status": "success",
        "count": len(roles),
        "data": [role.model_dump() for role in roles]
    }


@router.get("/{name}")
async def get_role(name: str, user: TokenUser = Depends(get_current_user)):
    repo = UserRepository()
    role = repo.find_role_by_name(name.lower())
    if not role:
        raise NotFound("Role")

    return {"status": "success", "data": role.model_dump()}
