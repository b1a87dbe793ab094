"""
Audit trail of data changes and sign-in events
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Who
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)

    # What
    action = Column(String(20), nullable=False, index=True)  # CREATE, UPDATE, DELETE, LOGIN, LOGOUT, EXPORT
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(100))
    old_values = Column(JSONB)
    new_values = Column(JSONB)
    description = Column(Text)
    details = Column(JSONB)

    # Context
    ip_address = Column(String(45))
    user_agent = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
