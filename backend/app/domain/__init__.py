"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.
"""
from app.domain.warehouse import Warehouse
from app.domain.product import Product
from app.domain.customer import Customer, Address
from app.domain.order import Order, OrderItem
from app.domain.user import User, Role
from app.domain.audit import AuditEntry

__all__ = ['Warehouse', 'Product', 'Customer', 'Address', 'Order', 'OrderItem', 'User', 'Role', 'AuditEntry']
