"""
API tests for /api/v1/orders
"""
from decimal import Decimal
from unittest.mock import patch

from app.core.errors import BusinessRuleError, InsufficientStock
from app.repositories.order_repository import OrderRepository

BASE = '/api/v1/orders'

NEW_ORDER = {
    'customer_id': 3,
    'items': [{'product_id': 7, 'quantity': 2}],
    'shipping_cost': 50,
}


def _order(row, **overrides):
    return OrderRepository._map_row_to_order(dict(row, **overrides))


@patch('app.api.orders.OrderRepository')
class TestOrdersApi:

    def test_list_with_filters(self, mock_repo, viewer_client, order_row):
        mock_repo.return_value.find_all.return_value = ([_order(order_row)], 1)

        response = viewer_client.get(f'{BASE}/?status=pending&start_date=2025-03-01&search=asha')

        body = response.json()
        assert response.status_code == 200
        assert body['data'][0]['order_number'] == 'ORD-20250301-00011'
        assert body['data'][0]['total_amount'] == 1227.64
        kwargs = mock_repo.return_value.find_all.call_args.kwargs
        assert kwargs['status'] == 'pending'
        assert str(kwargs['start_date']) == '2025-03-01'
        assert kwargs['search'] == 'asha'

    def test_list_rejects_bad_date(self, mock_repo, viewer_client):
        response = viewer_client.get(f'{BASE}/?start_date=yesterday')

        assert response.status_code == 400
        assert response.json()['errors'][0]['field'] == 'start_date'

    def test_get_not_found(self, mock_repo, viewer_client):
        mock_repo.return_value.find_by_id.return_value = None

        response = viewer_client.get(f'{BASE}/404')

        assert response.json()['error'] == 'Order not found'

    def test_create(self, mock_repo, staff_client, order_row):
        # Arrange
        mock_repo.return_value.create.return_value = _order(order_row)

        # Act
        response = staff_client.post(f'{BASE}/', json=NEW_ORDER)

        # Assert
        assert response.status_code == 201
        assert response.json()['data']['status'] == 'pending'
        args, kwargs = mock_repo.return_value.create.call_args
        assert args[0] == 1
        assert args[1].items[0].quantity == 2
        assert kwargs['tax_rate'] == 0.18

    def test_create_insufficient_stock(self, mock_repo, staff_client):
        mock_repo.return_value.create.side_effect = InsufficientStock('Cotton T-Shirt Black M', 1, 2)

        response = staff_client.post(f'{BASE}/', json=NEW_ORDER)

        body = response.json()
        assert response.status_code == 400
        assert body['code'] == 'INSUFFICIENT_STOCK'
        assert body['error'] == 'Insufficient stock for Cotton T-Shirt Black M. Available: 1, Requested: 2'

    def test_create_needs_items(self, mock_repo, staff_client):
        response = staff_client.post(f'{BASE}/', json=dict(NEW_ORDER, items=[]))

        assert response.status_code == 400
        mock_repo.return_value.create.assert_not_called()

    def test_create_rejects_negative_discount(self, mock_repo, staff_client):
        response = staff_client.post(f'{BASE}/', json=dict(NEW_ORDER, discount_amount=-5))

        assert response.status_code == 400
        assert response.json()['errors'][0]['field'] == 'discount_amount'

    def test_viewer_cannot_create(self, mock_repo, viewer_client):
        assert viewer_client.post(f'{BASE}/', json=NEW_ORDER).status_code == 403

    def test_update_shipped_order_refused(self, mock_repo, staff_client):
        mock_repo.return_value.update_details.side_effect = BusinessRuleError(
            'Only pending or confirmed orders can be edited'
        )

        response = staff_client.put(f'{BASE}/11', json={'notes': 'Leave at gate'})

        assert response.status_code == 400
        assert response.json()['code'] == 'BUSINESS_RULE_VIOLATION'

    def test_update_status(self, mock_repo, staff_client, order_row):
        mock_repo.return_value.update_status.return_value = _order(order_row, status='shipped')

        response = staff_client.put(f'{BASE}/11/status', json={'status': 'shipped'})

        assert response.json()['data']['status'] == 'shipped'
        mock_repo.return_value.update_status.assert_called_once_with(
            11, 1, status='shipped', payment_status=None, notes=None
        )

    def test_update_status_unknown_value(self, mock_repo, staff_client):
        response = staff_client.put(f'{BASE}/11/status', json={'status': 'lost'})

        assert response.status_code == 400

    def test_bulk_status(self, mock_repo, staff_client):
        mock_repo.return_value.bulk_update_status.return_value = {'updated': [1, 3], 'not_found': [2]}

        response = staff_client.post(f'{BASE}/bulk-status', json={'order_ids': [1, 2, 3], 'status': 'confirmed'})

        assert response.json()['data'] == {
            'requested': 3,
            'updated': 2,
            'failed': 1,
            'updated_ids': [1, 3],
            'not_found_ids': [2],
        }

    def test_update_status_recorded(self, mock_repo, staff_client, audit_repo, order_row):
        mock_repo.return_value.find_by_id.return_value = _order(order_row)
        mock_repo.return_value.update_status.return_value = _order(order_row, status='shipped')

        staff_client.put(f'{BASE}/11/status', json={'status': 'shipped'})

        kwargs = audit_repo.log.call_args.kwargs
        assert kwargs['entity_type'] == 'order'
        assert kwargs['old_values'] == {'status': 'pending'}
        assert kwargs['new_values'] == {'status': 'shipped'}

    def test_bulk_status_records_each_updated_order(self, mock_repo, staff_client, audit_repo):
        mock_repo.return_value.bulk_update_status.return_value = {'updated': [1, 3], 'not_found': [2]}

        staff_client.post(f'{BASE}/bulk-status', json={'order_ids': [1, 2, 3], 'status': 'confirmed'})

        assert [c.kwargs['entity_id'] for c in audit_repo.log.call_args_list] == [1, 3]

    def test_delete_requires_manager(self, mock_repo, staff_client):
        assert staff_client.delete(f'{BASE}/11').status_code == 403

    def test_manager_deletes(self, mock_repo, manager_client):
        mock_repo.return_value.delete.return_value = True

        response = manager_client.delete(f'{BASE}/11')

        assert response.json()['message'] == 'Order deleted successfully'
        mock_repo.return_value.delete.assert_called_once_with(11, 1)

    def test_export_excel(self, mock_repo, staff_client, order_row):
        mock_repo.return_value.find_all.return_value = ([_order(order_row)], 1)

        response = staff_client.get(f'{BASE}/export?format=excel')

        assert response.status_code == 200
        assert 'spreadsheetml' in response.headers['content-type']
        assert response.headers['content-disposition'].endswith('.xlsx')


@patch('app.repositories.order_repository.get_db_connection_dict')
def test_create_discount_above_order_amount_is_rejected(mock_get_conn, mock_db, staff_client):
    # Arrange
    conn, cursor = mock_db
    mock_get_conn.return_value = conn
    cursor.fetchone.side_effect = [
        {'id': 3},
        {'id': 7, 'name': 'Rice 5kg', 'sku': 'RICE-5KG', 'price': Decimal('100.00'), 'stock': 10, 'status': 'active'},
    ]
    body = {'customer_id': 3, 'items': [{'product_id': 7, 'quantity': 1}], 'discount_amount': 500}

    # Act
    response = staff_client.post(f'{BASE}/', json=body)

    # Assert
    assert response.status_code == 400
    assert response.json()['code'] == 'VALIDATION_ERROR'
    assert response.json()['errors'][0]['field'] == 'discount_amount'
    conn.commit.assert_not_called()
