"""
Unit tests for CustomerRepository

These tests validate repository logic without requiring a database connection.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

from app.core.errors import BusinessRuleError
from app.domain.customer import AddressCreate, Customer
from app.repositories.customer_repository import CustomerRepository


ADDRESS_ROW = {
    'id': 5, 'customer_id': 3, 'type': 'shipping', 'street': '22 MG Road',
    'city': 'Bangalore', 'state': 'Karnataka', 'pincode': '560001',
    'is_default': True, 'created_at': datetime(2025, 1, 1, tzinfo=timezone.utc)
}


class TestCustomerRepository:
    """Test CustomerRepository methods"""

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_find_by_id_returns_customer_with_addresses(self, mock_get_conn, mock_db, customer_row):
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = customer_row
        cursor.fetchall.return_value = [ADDRESS_ROW]

        # Act
        customer = CustomerRepository().find_by_id(3, 1)

        # Assert
        assert isinstance(customer, Customer)
        assert customer.addresses[0].city == 'Bangalore'
        assert customer.average_order_value == 3000.0
        assert customer.to_dict()['total_revenue'] == 12000.0

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_find_by_id_returns_none_when_not_found(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = None

        assert CustomerRepository().find_by_id(3, 1) is None
        # Addresses are not queried for a missing customer
        cursor.execute.assert_called_once()

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_email_exists_lowercases(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {'id': 3}

        assert CustomerRepository().email_exists('ASHA@Example.com', 1) is True
        params = cursor.execute.call_args[0][1]
        assert params == (1, 'asha@example.com', None, None)

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_delete_rejects_customer_with_orders(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {'order_count': 2}

        with pytest.raises(BusinessRuleError) as exc_info:
            CustomerRepository().delete(3, 1)

        assert "existing orders" in exc_info.value.message
        conn.rollback.assert_called_once()

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_delete_customer_without_orders(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.side_effect = [{'order_count': 0}, {'id': 3}]

        assert CustomerRepository().delete(3, 1) is True
        conn.commit.assert_called_once()

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_add_default_address_clears_previous_default(self, mock_get_conn, mock_db):
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.side_effect = [{'id': 3}, ADDRESS_ROW]
        data = AddressCreate(
            street='22 MG Road', city='Bangalore', state='Karnataka', pincode=560001, is_default=True
        )

        # Act
        address = CustomerRepository().add_address(3, 1, data)

        # Assert
        assert address.id == 5
        sqls = [c[0][0] for c in cursor.execute.call_args_list]
        assert any("SET is_default = FALSE" in sql for sql in sqls)
        conn.commit.assert_called_once()

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_add_address_for_foreign_customer_returns_none(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = None
        data = AddressCreate(street='22 MG Road', city='Bangalore', state='Karnataka', pincode='560001')

        assert CustomerRepository().add_address(3, 2, data) is None
        conn.commit.assert_not_called()

    @patch('app.repositories.customer_repository.get_db_connection_dict')
    def test_find_order_summaries_converts_revenue(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchall.return_value = [{
            'id': 3, 'name': 'Asha', 'email': 'a@example.com', 'segment': 'regular',
            'total_orders': 0, 'total_revenue': None, 'created_at': None, 'last_order_at': None
        }]

        rows = CustomerRepository().find_order_summaries(1)

        assert rows[0]['total_revenue'] == 0.0
