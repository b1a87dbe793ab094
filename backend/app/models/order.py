"""
Orders and order line items
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, DECIMAL, ForeignKey, Sequence,
    CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


# Feeds the numeric part of ORD-YYYYMMDD-NNNNN order numbers
order_number_seq = Sequence("order_number_seq", metadata=Base.metadata)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'processing', 'packed', 'shipped', 'delivered', 'cancelled', 'returned')",
            name="ck_orders_status"
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'partial', 'paid', 'refunded')",
            name="ck_orders_payment_status"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    # Amounts
    subtotal = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    tax_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    shipping_cost = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    discount_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    total_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")

    # States
    status = Column(String(20), nullable=False, server_default="pending", index=True)
    payment_status = Column(String(20), nullable=False, server_default="pending", index=True)

    # Shipping address
    shipping_street = Column(String(500))
    shipping_city = Column(String(100))
    shipping_state = Column(String(100))
    shipping_pincode = Column(String(6))

    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    delivered_at = Column(DateTime(timezone=True))

    customer = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), index=True)

    # Product data at time of sale
    product_name = Column(String(200), nullable=False)
    product_sku = Column(String(50))

    quantity = Column(Integer, nullable=False)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    total_price = Column(DECIMAL(12, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")
