"""
Audit Trail Service

Records who changed what through the API. Entries are written after the
change has been committed; the request's client address and user agent are
captured with each one.

Usage:
    @router.put("/{id}")
    async def update_thing(..., audit: AuditTrail = Depends(get_audit_trail)):
        audit.updated(user.id, "thing", id, before.to_dict(), after.to_dict())
"""
import logging
from typing import Dict, Any, Iterable, List, Optional

from fastapi import Request

from app.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


def changed_fields(before: Dict[str, Any], after: Dict[str, Any], fields: Optional[Iterable[str]] = None) -> List[str]:
    """Keys of `after` (or of `fields`, sorted) whose value differs from `before`"""
    keys = sorted(fields) if fields is not None else list(after)
    return [key for key in keys if before.get(key) != after.get(key)]


class AuditTrail:
    """Writes audit entries for one request"""

    def __init__(
        self,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        repo: Optional[AuditRepository] = None
    ):
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.repo = repo or AuditRepository()

    def _log(self, action: str, entity_type: str, entity_id=None, user_id: Optional[int] = None, **kwargs):
        logger.debug(f"Audit {action} {entity_type} #{entity_id} by user {user_id}")
        return self.repo.log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            **kwargs
        )

    def created(self, user_id: int, entity_type: str, entity_id, values: Dict[str, Any]):
        return self._log(
            "CREATE", entity_type, entity_id, user_id,
            new_values=values,
            description=f"Created {entity_type} #{entity_id}"
        )

    def updated(
        self,
        user_id: int,
        entity_type: str,
        entity_id,
        before: Dict[str, Any],
        after: Dict[str, Any],
        fields: Optional[Iterable[str]] = None
    ):
        """
        Record an update; only the fields that actually changed are stored.

        `fields` narrows the comparison to the fields the request sent.
        """
        changed = changed_fields(before, after, fields)
        return self._log(
            "UPDATE", entity_type, entity_id, user_id,
            old_values={key: before.get(key) for key in changed},
            new_values={key: after.get(key) for key in changed},
            description=f"Updated {entity_type} #{entity_id}",
            details={"changed_fields": changed}
        )

    def deleted(self, user_id: int, entity_type: str, entity_id, values: Optional[Dict[str, Any]] = None):
        return self._log(
            "DELETE", entity_type, entity_id, user_id,
            old_values=values,
            description=f"Deleted {entity_type} #{entity_id}"
        )

    def login(self, user_id: Optional[int], success: bool, reason: Optional[str] = None):
        return self._log(
            "LOGIN", "user", user_id, user_id,
            description="User logged in" if success else "Login failed",
            details={"success": success, "reason": reason}
        )

    def logout(self, user_id: int, revoked_tokens: int):
        return self._log(
            "LOGOUT", "user", user_id, user_id,
            description="User logged out",
            details={"revoked_tokens": revoked_tokens}
        )

    def password_changed(self, user_id: int):
        # Hashes never go into the trail
        return self._log(
            "UPDATE", "user", user_id, user_id,
            description="Password changed",
            details={"changed_fields": ["password"]}
        )

    def exported(self, user_id: int, entity_type: str, fmt: str, count: int, filters: Optional[Dict[str, Any]] = None):
        return self._log(
            "EXPORT", entity_type, None, user_id,
            description=f"Exported {count} {entity_type} records as {fmt}",
            details={"format": fmt, "count": count, "filters": filters or {}}
        )


def get_audit_trail(request: Request) -> AuditTrail:
    """FastAPI dependency binding an AuditTrail to the calling client"""
    return AuditTrail(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
