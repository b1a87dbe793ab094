"""
Database models (schema source for init_db)
"""
from .user import User, Role, RefreshToken
from .warehouse import Warehouse, WarehouseAmenity
from .customer import Customer, CustomerAddress
from .product import Product, StockMovement
from .order import Order, OrderItem
from .audit import AuditLog

__all__ = [
    "User",
    "Role",
    "RefreshToken",
    "Warehouse",
    "WarehouseAmenity",
    "Customer",
    "CustomerAddress",
    "Product",
    "StockMovement",
    "Order",
    "OrderItem",
    "AuditLog",
]
