"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from app.repositories.warehouse_repository import WarehouseRepository
from app.repositories.product_repository import ProductRepository
from app.repositories.customer_repository import CustomerRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.user_repository import UserRepository
from app.repositories.dashboard_repository import DashboardRepository
from app.repositories.audit_repository import AuditRepository

__all__ = [
    'WarehouseRepository',
    'ProductRepository',
    'CustomerRepository',
    'OrderRepository',
    'UserRepository',
    'DashboardRepository',
    'AuditRepository'
]
