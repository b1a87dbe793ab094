"""
Warehouses and their amenities
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, DECIMAL, ForeignKey,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Warehouse(Base):
    __tablename__ = "warehouses"
    __table_args__ = (
        UniqueConstraint("user_id", "code", name="uq_warehouses_user_code"),
        CheckConstraint("capacity > 0", name="ck_warehouses_capacity_positive"),
        CheckConstraint("occupied >= 0 AND occupied <= capacity", name="ck_warehouses_occupied_range"),
        CheckConstraint("status IN ('active', 'inactive', 'maintenance')", name="ck_warehouses_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False)

    # Address
    street = Column(String(500))
    city = Column(String(100), index=True)
    state = Column(String(100))
    pincode = Column(String(6), index=True)
    country = Column(String(100), server_default="India")
    latitude = Column(DECIMAL(10, 8))
    longitude = Column(DECIMAL(11, 8))

    # Capacity
    capacity = Column(Integer, nullable=False)
    occupied = Column(Integer, nullable=False, server_default="0")

    # Operations
    status = Column(String(20), nullable=False, server_default="active", index=True)
    is_verified = Column(Boolean, nullable=False, server_default="false")
    operating_hours = Column(String(255))
    contact_person = Column(String(255))
    contact_phone = Column(String(20))
    contact_email = Column(String(255))
    cost_per_sqft = Column(DECIMAL(10, 2))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    amenities = relationship("WarehouseAmenity", back_populates="warehouse", cascade="all, delete-orphan")


class WarehouseAmenity(Base):
    __tablename__ = "warehouse_amenities"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "amenity", name="uq_warehouse_amenities"),
    )

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)
    amenity = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    warehouse = relationship("Warehouse", back_populates="amenities")
