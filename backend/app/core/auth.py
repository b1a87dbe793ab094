"""
Authentication for the WareFlow backend

Issues and validates HS256 JWT access/refresh tokens and provides the
user context dependencies used by every protected router.
"""
import uuid
import hashlib
from typing import Optional
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext
from pydantic import BaseModel

from app.core.config import settings
from app.core.errors import AuthenticationError, PermissionDenied


# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

# Role hierarchy: admin > manager > staff > viewer
ROLE_HIERARCHY = {
    "admin": 4,
    "manager": 3,
    "staff": 2,
    "viewer": 1,
}


class TokenUser(BaseModel):
    """User data extracted from an access token"""
    id: int
    email: str
    name: Optional[str] = None
    role: str = "staff"


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def hash_token(token: str) -> str:
    """Refresh tokens are stored as SHA-256 digests, never in clear text"""
    return hashlib.sha256(token.encode()).hexdigest()


# =============================================================================
# Tokens
# =============================================================================

def _create_token(user: dict, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    name = " ".join(part for part in [user.get("first_name"), user.get("last_name")] if part) or None
    payload = {
        "sub": str(user["id"]),
        "email": user["email"],
        "name": name,
        "role": user.get("role") or settings.DEFAULT_USER_ROLE,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user: dict) -> str:
    return _create_token(user, ACCESS_TOKEN, timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(user: dict) -> str:
    return _create_token(user, REFRESH_TOKEN, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def refresh_token_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict:
    """
    Decode and validate a token issued by this service.

    Raises AuthenticationError when the token is expired, tampered with,
    or of the wrong type (a refresh token is never accepted as access).
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {str(e)}")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")

    if not payload.get("sub") or not payload.get("email"):
        raise AuthenticationError("Invalid token payload: missing user id or email")

    return payload


def _payload_to_user(payload: dict) -> TokenUser:
    return TokenUser(
        id=int(payload["sub"]),
        email=payload["email"],
        name=payload.get("name"),
        role=payload.get("role", settings.DEFAULT_USER_ROLE)
    )


# =============================================================================
# Dependencies
# =============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from the bearer token.

    Usage:
        @router.get("/protected")
        async def protected_route(user: TokenUser = Depends(get_current_user)):
            return {"message": f"Hello {user.email}"}
    """
    if not credentials:
        raise AuthenticationError("Authentication required")

    payload = decode_token(credentials.credentials, ACCESS_TOKEN)
    return _payload_to_user(payload)


def has_role(user_role: str, required_role: str) -> bool:
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.delete("/users/{user_id}")
        async def delete_user(user_id: int, user: TokenUser = Depends(require_role("admin"))):
            ...
    """
    async def role_checker(
        user: TokenUser = Depends(get_current_user)
    ) -> TokenUser:
        if not has_role(user.role, required_role):
            raise PermissionDenied(
                f"Access denied. Required role: {required_role}, your role: {user.role}"
            )
        return user

    return role_checker


require_admin = require_role("admin")
require_manager = require_role("manager")
require_staff = require_role("staff")
