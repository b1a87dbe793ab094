"""
API tests for /api/v1/customers
"""
from unittest.mock import patch

from app.core.errors import BusinessRuleError
from app.domain.customer import Address
from app.repositories.customer_repository import CustomerRepository

BASE = '/api/v1/customers'


@patch('app.api.customers.CustomerRepository')
class TestCustomersApi:

    def test_get_includes_recent_orders(self, mock_repo, viewer_client, customer_row):
        # Arrange
        mock_repo.return_value.find_by_id.return_value = CustomerRepository._map_row_to_customer(customer_row)
        mock_repo.return_value.find_recent_orders.return_value = [{'id': 11, 'order_number': 'ORD-20250301-00011'}]

        # Act
        response = viewer_client.get(f'{BASE}/3')

        # Assert
        data = response.json()['data']
        assert response.status_code == 200
        assert data['average_order_value'] == 3000.0
        assert data['recent_orders'][0]['id'] == 11
        mock_repo.return_value.find_recent_orders.assert_called_once_with(3, 1, limit=10)

    def test_list_by_segment(self, mock_repo, viewer_client):
        mock_repo.return_value.find_all.return_value = ([], 0)

        response = viewer_client.get(f'{BASE}/?segment=premium')

        assert response.json()['pagination']['total'] == 0
        assert mock_repo.return_value.find_all.call_args.kwargs['segment'] == 'premium'

    def test_create_duplicate_email(self, mock_repo, staff_client):
        mock_repo.return_value.email_exists.return_value = True

        response = staff_client.post(f'{BASE}/', json={'name': 'Asha', 'email': 'Asha@Example.com'})

        assert response.status_code == 400
        mock_repo.return_value.email_exists.assert_called_once_with('asha@example.com', 1)

    def test_create_invalid_email(self, mock_repo, staff_client):
        response = staff_client.post(f'{BASE}/', json={'name': 'Asha', 'email': 'not-an-email'})

        assert response.status_code == 400
        assert response.json()['errors'][0]['field'] == 'email'

    def test_delete_with_orders_refused(self, mock_repo, manager_client):
        mock_repo.return_value.delete.side_effect = BusinessRuleError('Cannot delete customer with existing orders')

        response = manager_client.delete(f'{BASE}/3')

        assert response.status_code == 400
        assert response.json()['error'] == 'Cannot delete customer with existing orders'

    def test_add_address(self, mock_repo, staff_client):
        mock_repo.return_value.add_address.return_value = Address(
            id=8, customer_id=3, street='14 MG Road', city='Pune', state='Maharashtra', pincode='411001'
        )

        response = staff_client.post(f'{BASE}/3/addresses', json={
            'street': '14 MG Road', 'city': 'Pune', 'state': 'Maharashtra', 'pincode': 411001
        })

        assert response.status_code == 201
        assert response.json()['data']['id'] == 8
        assert mock_repo.return_value.add_address.call_args[0][2].pincode == '411001'

    def test_add_address_recorded(self, mock_repo, staff_client, audit_repo):
        mock_repo.return_value.add_address.return_value = Address(
            id=8, customer_id=3, street='14 MG Road', city='Pune', state='Maharashtra', pincode='411001'
        )

        staff_client.post(f'{BASE}/3/addresses', json={
            'street': '14 MG Road', 'city': 'Pune', 'state': 'Maharashtra', 'pincode': '411001'
        })

        kwargs = audit_repo.log.call_args.kwargs
        assert kwargs['action'] == 'CREATE'
        assert kwargs['entity_type'] == 'customer_address'
        assert kwargs['entity_id'] == 8
        assert kwargs['new_values']['city'] == 'Pune'

    def test_delete_with_orders_records_nothing(self, mock_repo, manager_client, audit_repo):
        mock_repo.return_value.delete.side_effect = BusinessRuleError('Cannot delete customer with existing orders')

        manager_client.delete(f'{BASE}/3')

        audit_repo.log.assert_not_called()

    def test_add_address_unknown_customer(self, mock_repo, staff_client):
        mock_repo.return_value.add_address.return_value = None

        response = staff_client.post(f'{BASE}/3/addresses', json={
            'street': '14 MG Road', 'city': 'Pune', 'state': 'Maharashtra', 'pincode': '411001'
        })

        assert response.json()['error'] == 'Customer not found'

    def test_delete_missing_address(self, mock_repo, staff_client):
        mock_repo.return_value.delete_address.return_value = False

        response = staff_client.delete(f'{BASE}/3/addresses/99')

        assert response.json()['error'] == 'Address not found'
