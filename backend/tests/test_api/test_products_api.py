"""
API tests for /api/v1/products
"""
from unittest.mock import patch

from app.core.errors import BusinessRuleError
from app.repositories.product_repository import ProductRepository

BASE = '/api/v1/products'

NEW_PRODUCT = {
    'name': 'Cotton T-Shirt Black M',
    'sku': 'tshirt-blk-m',
    'category': 'Apparel',
    'price': 499,
    'cost': 250,
    'stock': 40,
}


def _product(row, **overrides):
    return ProductRepository._map_row_to_product(dict(row, **overrides))


@patch('app.api.products.ProductRepository')
class TestProductsApi:

    def test_list_filters(self, mock_repo, viewer_client, product_row):
        mock_repo.return_value.find_all.return_value = ([_product(product_row)], 1)

        response = viewer_client.get(f'{BASE}/?category=Apparel&low_stock=true&min_price=100')

        assert response.status_code == 200
        assert response.json()['data'][0]['sku'] == 'TSHIRT-BLK-M'
        kwargs = mock_repo.return_value.find_all.call_args.kwargs
        assert kwargs['category'] == 'Apparel'
        assert kwargs['low_stock'] is True
        assert kwargs['min_price'] == 100

    def test_categories(self, mock_repo, viewer_client):
        mock_repo.return_value.get_categories.return_value = ['Apparel', 'Grocery']

        response = viewer_client.get(f'{BASE}/categories')

        assert response.json()['data'] == ['Apparel', 'Grocery']

    def test_create(self, mock_repo, staff_client, product_row):
        mock_repo.return_value.sku_exists.return_value = False
        mock_repo.return_value.create.return_value = _product(product_row)

        response = staff_client.post(f'{BASE}/', json=NEW_PRODUCT)

        assert response.status_code == 201
        mock_repo.return_value.sku_exists.assert_called_once_with('TSHIRT-BLK-M', 1)

    def test_create_duplicate_sku(self, mock_repo, staff_client):
        mock_repo.return_value.sku_exists.return_value = True

        response = staff_client.post(f'{BASE}/', json=NEW_PRODUCT)

        assert response.status_code == 400
        assert response.json()['errors'] == [
            {'field': 'sku', 'message': 'Product with this SKU already exists'}
        ]

    def test_create_cost_above_price(self, mock_repo, staff_client):
        response = staff_client.post(f'{BASE}/', json=dict(NEW_PRODUCT, cost=600))

        assert response.status_code == 400
        mock_repo.return_value.create.assert_not_called()

    def test_get_not_found(self, mock_repo, viewer_client):
        mock_repo.return_value.find_by_id.return_value = None

        assert viewer_client.get(f'{BASE}/99').status_code == 404

    def test_adjust_stock(self, mock_repo, staff_client, product_row):
        # Arrange
        movement = {'id': 5, 'movement_type': 'subtract', 'quantity': 3, 'stock_before': 40, 'stock_after': 37}
        mock_repo.return_value.adjust_stock.return_value = {
            'product': _product(product_row, stock=37),
            'movement': movement,
        }

        # Act
        response = staff_client.patch(f'{BASE}/7/stock', json={'quantity': 3, 'type': 'subtract'})

        # Assert
        data = response.json()['data']
        assert response.status_code == 200
        assert data['product']['stock'] == 37
        assert data['movement'] == movement

    def test_adjust_stock_recorded(self, mock_repo, staff_client, audit_repo, product_row):
        mock_repo.return_value.adjust_stock.return_value = {
            'product': _product(product_row, stock=37),
            'movement': {'id': 5, 'movement_type': 'subtract', 'quantity': 3, 'stock_before': 40, 'stock_after': 37},
        }

        staff_client.patch(f'{BASE}/7/stock', json={'quantity': 3, 'type': 'subtract'})

        kwargs = audit_repo.log.call_args.kwargs
        assert kwargs['entity_type'] == 'product'
        assert kwargs['old_values'] == {'stock': 40}
        assert kwargs['new_values'] == {'stock': 37}

    def test_adjust_stock_below_zero(self, mock_repo, staff_client):
        mock_repo.return_value.adjust_stock.side_effect = BusinessRuleError(
            'Stock cannot be negative', errors=[{'field': 'quantity', 'message': 'Only 2 units available'}]
        )

        response = staff_client.patch(f'{BASE}/7/stock', json={'quantity': 3, 'type': 'subtract'})

        assert response.status_code == 400
        assert response.json()['error'] == 'Stock cannot be negative'

    def test_adjust_stock_unknown_type(self, mock_repo, staff_client):
        response = staff_client.patch(f'{BASE}/7/stock', json={'quantity': 3, 'type': 'multiply'})

        assert response.status_code == 400

    def test_movements_of_missing_product(self, mock_repo, viewer_client):
        mock_repo.return_value.find_by_id.return_value = None

        response = viewer_client.get(f'{BASE}/7/movements')

        assert response.status_code == 404
        mock_repo.return_value.find_movements.assert_not_called()

    def test_bulk_delete(self, mock_repo, manager_client):
        mock_repo.return_value.delete.side_effect = [True, True]

        response = manager_client.post(f'{BASE}/bulk-delete', json={'ids': [4, 5]})

        assert response.json()['data'] == {'requested': 2, 'deleted': 2, 'failed': 0, 'errors': []}

    def test_staff_cannot_bulk_delete(self, mock_repo, staff_client):
        assert staff_client.post(f'{BASE}/bulk-delete', json={'ids': [4]}).status_code == 403
