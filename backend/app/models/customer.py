"""
Customers and their addresses
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, DECIMAL, ForeignKey,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_customers_user_email"),
        CheckConstraint("segment IN ('premium', 'regular', 'new')", name="ck_customers_segment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(15))
    business_name = Column(String(200))
    gst_number = Column(String(15))
    segment = Column(String(20), nullable=False, server_default="new", index=True)

    # Counters maintained by the order endpoints
    total_orders = Column(Integer, nullable=False, server_default="0")
    total_revenue = Column(DECIMAL(14, 2), nullable=False, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    addresses = relationship("CustomerAddress", back_populates="customer", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="customer")


class CustomerAddress(Base):
    __tablename__ = "customer_addresses"
    __table_args__ = (
        CheckConstraint("type IN ('billing', 'shipping')", name="ck_customer_addresses_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False, server_default="shipping")
    street = Column(String(500), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    pincode = Column(String(6), nullable=False)
    is_default = Column(Boolean, nullable=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer", back_populates="addresses")
