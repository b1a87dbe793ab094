"""
Audit trail entries
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, Literal
from datetime import datetime


AuditAction = Literal["CREATE", "UPDATE", "DELETE", "LOGIN", "LOGOUT", "EXPORT"]


class AuditEntry(BaseModel):
    """One recorded action, joined with the acting user's e-mail and name"""

    id: int = Field(..., description="Audit entry ID")
    user_id: Optional[int] = Field(None, description="Acting user (null once the user is deleted)")
    user_email: Optional[str] = None
    user_name: Optional[str] = None

    action: str = Field(..., description="CREATE, UPDATE, DELETE, LOGIN, LOGOUT or EXPORT")
    entity_type: str = Field(..., description="warehouse, order, customer, product, user, ...")
    entity_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def changed_fields(self) -> list:
        return (self.details or {}).get("changed_fields", [])

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["changed_fields"] = self.changed_fields
        return data
