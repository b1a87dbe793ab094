"""
Python client for the WareFlow API
"""
from app.client.api_client import ApiClient, ApiError, TokenStore, unwrap
from app.client.services import (
    WarehousesService,
    OrdersService,
    CustomersService,
    ProductsService,
    UsersService,
    DashboardService,
    AuthService,
)

__all__ = [
    'ApiClient',
    'ApiError',
    'TokenStore',
    'unwrap',
    'WarehousesService',
    'OrdersService',
    'CustomersService',
    'ProductsService',
    'UsersService',
    'DashboardService',
    'AuthService'
]
