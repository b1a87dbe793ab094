"""
Authentication API endpoints
- Registration and login (JWT access + refresh token pair)
- Refresh token rotation and logout
- Current user profile and password change
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from app.core.auth import TokenUser, get_current_user
from app.core.errors import NotFound
from app.domain.user import (
    LoginRequest,
    RegisterRequest,
    RefreshRequest,
    LogoutRequest,
    PasswordChange,
)
from app.repositories.user_repository import UserRepository
from app.services.audit_service import AuditTrail, get_audit_trail
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, audit: AuditTrail = Depends(get_audit_trail)):
    """Create an account with the default role and sign it in"""
    service = AuthService(audit=audit)
    return {
        "status": "success",
        "message": "User registered successfully",
        "data": service.register(data)
    }


@router.post("/login")
async def login(data: LoginRequest, audit: AuditTrail = Depends(get_audit_trail)):
    service = AuthService(audit=audit)
    return {
        "status": "success",
        "message": "Login successful",
        "data": service.login(data.email, data.password)
    }


@router.post("/refresh-token")
async def refresh_token(data: RefreshRequest):
    """Exchange a refresh token for a new pair; the old refresh token stops working"""
    service = AuthService()
    return {
        "status": "success",
        "message": "Token refreshed successfully",
        "data": service.refresh(data.refresh_token)
    }


@router.post("/logout")
async def logout(
    data: Optional[LogoutRequest] = None,
    user: TokenUser = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Revoke the given refresh token, or every session of the user when none is sent"""
    service = AuthService(audit=audit)
    service.logout(user.id, data.refresh_token if data else None)
    return {"status": "success", "message": "Logged out successfully"}


@router.get("/me")
async def get_current_user_info(user: TokenUser = Depends(get_current_user)):
    """Get current user's information"""
    repo = UserRepository()
    current = repo.find_by_id(user.id)
    if not current:
        raise NotFound("User")

    return {"status": "success", "data": current.to_dict()}


@router.post("/change-password")
async def change_password(
    data: PasswordChange,
    user: TokenUser = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Change current user's password; other sessions are signed out"""
    service = AuthService(audit=audit)
    service.change_password(user.id, data)
    return {"status": "success", "message": "Password changed successfully"}
