"""
Pytest fixtures and configuration for WareFlow Backend tests

No database is needed: repositories are tested against a mocked psycopg2
connection and API tests override authentication and patch repositories.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from app.main import app
from app.core.auth import TokenUser, get_current_user
from app.core.rate_limit import rate_limiter


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Every test starts with empty rate-limit counters"""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture(autouse=True)
def audit_repo():
    """
    Audit writes from API handlers go to a mock

    Usage:
        def test_...(self, admin_client, audit_repo):
            ...
            audit_repo.log.assert_called_once()
    """
    with patch('app.services.audit_service.AuditRepository') as repo_cls:
        yield repo_cls.return_value


@pytest.fixture
def mock_db():
    """
    Provides (connection, cursor) mocks wired together

    Usage:
        @patch('app.repositories.x.get_db_connection_dict')
        def test_...(self, mock_get_conn, mock_db):
            conn, cursor = mock_db
            mock_get_conn.return_value = conn
    """
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value = cursor
    return conn, cursor


def _client_as(role: str):
    user = TokenUser(id=1, email=f"{role}@wareflow.test", name=f"Test {role.title()}", role=role)
    app.dependency_overrides[get_current_user] = lambda: user
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def client():
    """Anonymous client (no dependency overrides)"""
    app.dependency_overrides.clear()
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def staff_client():
    yield _client_as("staff")
    app.dependency_overrides.clear()


@pytest.fixture
def manager_client():
    yield _client_as("manager")
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client():
    yield _client_as("admin")
    app.dependency_overrides.clear()


@pytest.fixture
def viewer_client():
    yield _client_as("viewer")
    app.dependency_overrides.clear()


@pytest.fixture
def warehouse_row():
    """A warehouses row as returned by RealDictCursor"""
    return {
        'id': 1,
        'user_id': 1,
        'name': 'Mumbai Central Hub',
        'code': 'MUM-01',
        'street': '12 Dock Road, Andheri East',
        'city': 'Mumbai',
        'state': 'Maharashtra',
        'pincode': '400069',
        'country': 'India',
        'latitude': Decimal('19.1136'),
        'longitude': Decimal('72.8697'),
        'capacity': 10000,
        'occupied': 2500,
        'status': 'active',
        'is_verified': True,
        'operating_hours': '9am-9pm',
        'contact_person': 'Ravi Kumar',
        'contact_phone': '9876543210',
        'contact_email': 'ravi@example.com',
        'cost_per_sqft': Decimal('45.50'),
        'amenities': ['CCTV', 'Loading Dock'],
        'created_at': datetime(2025, 1, 10, tzinfo=timezone.utc),
        'updated_at': None,
    }


@pytest.fixture
def product_row():
    return {
        'id': 7,
        'user_id': 1,
        'sku': 'TSHIRT-BLK-M',
        'name': 'Cotton T-Shirt Black M',
        'description': None,
        'category': 'Apparel',
        'unit': 'pieces',
        'supplier': 'Tiruppur Textiles',
        'image_url': None,
        'price': Decimal('499.00'),
        'cost': Decimal('250.00'),
        'stock': 40,
        'reorder_level': 10,
        'status': 'active',
        'created_at': datetime(2025, 2, 1, tzinfo=timezone.utc),
        'updated_at': None,
    }


@pytest.fixture
def customer_row():
    return {
        'id': 3,
        'user_id': 1,
        'name': 'Asha Traders',
        'email': 'asha@example.com',
        'phone': '9123456780',
        'business_name': 'Asha Traders Pvt Ltd',
        'gst_number': None,
        'segment': 'regular',
        'total_orders': 4,
        'total_revenue': Decimal('12000.00'),
        'created_at': datetime(2024, 12, 1, tzinfo=timezone.utc),
        'updated_at': None,
    }


@pytest.fixture
def order_row():
    return {
        'id': 11,
        'user_id': 1,
        'order_number': 'ORD-20250301-00011',
        'customer_id': 3,
        'customer_name': 'Asha Traders',
        'customer_email': 'asha@example.com',
        'status': 'pending',
        'payment_status': 'pending',
        'subtotal': Decimal('998.00'),
        'tax_amount': Decimal('179.64'),
        'shipping_cost': Decimal('50.00'),
        'discount_amount': Decimal('0.00'),
        'total_amount': Decimal('1227.64'),
        'shipping_street': None,
        'shipping_city': None,
        'shipping_state': None,
        'shipping_pincode': None,
        'notes': None,
        'item_count': 1,
        'created_at': datetime(2025, 3, 1, tzinfo=timezone.utc),
        'updated_at': None,
        'delivered_at': None,
    }
