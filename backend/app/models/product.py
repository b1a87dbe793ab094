"""
Products and stock movements
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, DECIMAL, ForeignKey,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("user_id", "sku", name="uq_products_user_sku"),
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("cost IS NULL OR cost <= price", name="ck_products_cost_le_price"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text)
    supplier = Column(String(200))
    image_url = Column(String(500))
    unit = Column(String(20), nullable=False, server_default="pieces")

    price = Column(DECIMAL(12, 2), nullable=False)
    cost = Column(DECIMAL(12, 2))

    stock = Column(Integer, nullable=False, server_default="0")
    reorder_level = Column(Integer, nullable=False, server_default="10")
    status = Column(String(20), nullable=False, server_default="active", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    movements = relationship("StockMovement", back_populates="product", cascade="all, delete-orphan")
    order_items = relationship("OrderItem", back_populates="product")


class StockMovement(Base):
    """
    Every stock change: manual adjustments, order placement, order deletion.

    quantity is signed (negative when stock leaves).
    """
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True)

    movement_type = Column(String(20), nullable=False)  # add, subtract, set, order, order_cancel
    quantity = Column(Integer, nullable=False)
    stock_before = Column(Integer, nullable=False)
    stock_after = Column(Integer, nullable=False)
    reason = Column(String(500))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    product = relationship("Product", back_populates="movements")
