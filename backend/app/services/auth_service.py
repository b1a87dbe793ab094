"""
Auth Service

Registration, login and refresh-token rotation on top of UserRepository.
Refresh tokens are persisted as SHA-256 digests and can be exchanged once.
"""
import logging
from typing import Dict, Optional

from app.core.auth import (
    hash_password,
    verify_password,
    hash_token,
    create_access_token,
    create_refresh_token,
    refresh_token_expiry,
    decode_token,
    REFRESH_TOKEN,
)
from app.core.config import settings
from app.core.errors import AuthenticationError, Conflict, NotFound, ValidationFailed
from app.domain.user import User, RegisterRequest, PasswordChange
from app.repositories.user_repository import UserRepository
from app.services.audit_service import AuditTrail

logger = logging.getLogger(__name__)


class AuthService:
    """Issues token pairs and manages their lifecycle"""

    def __init__(self, repo: Optional[UserRepository] = None, audit: Optional[AuditTrail] = None):
        self.repo = repo or UserRepository()
        # Sign-in events are only recorded when a trail is given
        self.audit = audit

    def _audit(self, method: str, *args, **kwargs):
        if self.audit is not None:
            getattr(self.audit, method)(*args, **kwargs)

    def _issue_tokens(self, user: User) -> Dict:
        claims = user.model_dump()
        access_token = create_access_token(claims)
        refresh_token = create_refresh_token(claims)
        self.repo.store_refresh_token(user.id, hash_token(refresh_token), refresh_token_expiry())

        return {
            "user": user.to_dict(),
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "tokenType": "bearer",
            "expiresIn": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    def register(self, data: RegisterRequest, role: Optional[str] = None) -> Dict:
        if self.repo.email_exists(data.email):
            raise Conflict("User with this email already exists")

        user = self.repo.create(
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=role or settings.DEFAULT_USER_ROLE
        )
        logger.info(f"User registered: {user.email}")
        self._audit("created", user.id, "user", user.id, user.to_dict())
        return self._issue_tokens(user)

    def login(self, email: str, password: str) -> Dict:
        row = self.repo.find_credentials_by_email(email)

        # Same message for unknown email and wrong password
        if not row or not verify_password(password, row.get('password_hash')):
            logger.warning(f"Failed login attempt for {email}")
            self._audit("login", row['id'] if row else None, False,
                        reason="wrong password" if row else "unknown email")
            raise AuthenticationError("Invalid email or password")

        if not row.get('is_active', True):
            self._audit("login", row['id'], False, reason="account deactivated")
            raise AuthenticationError("Account is deactivated")

        self.repo.touch_last_login(row['id'])
        row.pop('password_hash', None)
        user = UserRepository._map_row_to_user(row)
        logger.info(f"User logged in: {user.email}")
        self._audit("login", user.id, True)
        return self._issue_tokens(user)

    def refresh(self, refresh_token: str) -> Dict:
        """Exchange a refresh token for a new pair; the old one is revoked"""
        payload = decode_token(refresh_token, REFRESH_TOKEN)

        user_id = self.repo.consume_refresh_token(hash_token(refresh_token))
        if user_id is None or user_id != int(payload["sub"]):
            raise AuthenticationError("Invalid or expired refresh token")

        user = self.repo.find_by_id(user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        return self._issue_tokens(user)

    def logout(self, user_id: int, refresh_token: Optional[str] = None) -> int:
        """Revoke the given refresh token, or all of the user's tokens when none is given"""
        token_hash = hash_token(refresh_token) if refresh_token else None
        revoked = self.repo.revoke_refresh_tokens(user_id, token_hash)
        logger.info(f"User {user_id} logged out ({revoked} refresh token(s) revoked)")
        self._audit("logout", user_id, revoked)
        return revoked

    def change_password(self, user_id: int, data: PasswordChange):
        current_hash = self.repo.find_password_hash(user_id)
        if current_hash is None:
            raise NotFound("User")

        if not verify_password(data.current_password, current_hash):
            raise ValidationFailed(
                "Current password is incorrect",
                errors=[{"field": "current_password", "message": "Current password is incorrect"}]
            )

        if data.current_password == data.new_password:
            raise ValidationFailed(
                "New password must be different from the current password",
                errors=[{"field": "new_password", "message": "Must differ from the current password"}]
            )

        self.repo.update_password(user_id, hash_password(data.new_password))
        # Sessions on other devices must log in again
        self.repo.revoke_refresh_tokens(user_id)
        logger.info(f"Password changed for user {user_id}")
        self._audit("password_changed", user_id)
