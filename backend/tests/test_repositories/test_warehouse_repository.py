"""
Unit tests for WarehouseRepository

These tests validate repository logic without requiring a database connection.
"""
import pytest
from unittest.mock import patch

from app.core.errors import ValidationFailed
from app.domain.warehouse import Warehouse, WarehouseCreate, WarehouseUpdate
from app.repositories.warehouse_repository import WarehouseRepository


class TestWarehouseRepository:
    """Test WarehouseRepository methods"""

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_find_by_id_returns_warehouse(self, mock_get_conn, mock_db, warehouse_row):
        """Test find_by_id maps the row to a Warehouse with derived fields"""
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = warehouse_row

        # Act
        warehouse = WarehouseRepository().find_by_id(1, 1)

        # Assert
        assert isinstance(warehouse, Warehouse)
        assert warehouse.code == 'MUM-01'
        assert warehouse.utilization_percentage == 25.0
        assert warehouse.available_space == 7500
        assert warehouse.amenities == ['CCTV', 'Loading Dock']

        # Scoped to the owner
        params = cursor.execute.call_args[0][1]
        assert params == (1, 1)
        cursor.close.assert_called_once()
        conn.close.assert_called_once()

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_find_by_id_returns_none_when_not_found(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = None

        assert WarehouseRepository().find_by_id(999, 1) is None

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_to_dict_converts_decimals(self, mock_get_conn, mock_db, warehouse_row):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = warehouse_row

        data = WarehouseRepository().find_by_id(1, 1).to_dict()

        assert isinstance(data['latitude'], float)
        assert isinstance(data['cost_per_sqft'], float)
        assert data['amenities_count'] == 2

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_find_all_returns_warehouses_and_count(self, mock_get_conn, mock_db, warehouse_row):
        """Test find_all applies filters and returns (items, total)"""
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {'total': 1}
        cursor.fetchall.return_value = [warehouse_row]

        # Act
        warehouses, total = WarehouseRepository().find_all(
            user_id=1, status='active', city='mumbai', search='hub', limit=5, offset=10
        )

        # Assert
        assert total == 1
        assert len(warehouses) == 1

        count_sql, count_params = cursor.execute.call_args_list[0][0]
        assert "w.status = %s" in count_sql
        assert "LOWER(w.city) = LOWER(%s)" in count_sql
        assert count_params == [1, 'active', 'mumbai'] + ['%hub%'] * 4

        list_params = cursor.execute.call_args_list[1][0][1]
        assert list_params[-2:] == [5, 10]

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_find_all_ignores_unknown_sort_field(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {'total': 0}
        cursor.fetchall.return_value = []

        WarehouseRepository().find_all(user_id=1, sort_by='id; DROP TABLE warehouses', order='asc')

        list_sql = cursor.execute.call_args_list[1][0][0]
        assert "ORDER BY w.created_at ASC" in list_sql
        assert "DROP TABLE" not in list_sql

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_code_exists_excludes_current_warehouse(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = None

        exists = WarehouseRepository().code_exists('MUM-01', 1, exclude_id=4)

        assert exists is False
        sql, params = cursor.execute.call_args[0]
        assert "id <> %s" in sql
        assert params == (1, 'MUM-01', 4)

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_create_inserts_amenities_and_commits(self, mock_get_conn, mock_db, warehouse_row):
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.side_effect = [{'id': 1}, warehouse_row]
        data = WarehouseCreate(
            name='Mumbai Central Hub', code='mum-01', street='12 Dock Road, Andheri East',
            city='Mumbai', state='Maharashtra', pincode='400069', capacity=10000,
            amenities=['CCTV', 'Loading Dock']
        )

        # Act
        warehouse = WarehouseRepository().create(1, data)

        # Assert
        assert warehouse.id == 1
        amenity_inserts = [
            c for c in cursor.execute.call_args_list
            if "INSERT INTO warehouse_amenities" in c[0][0]
        ]
        assert len(amenity_inserts) == 2
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_update_rejects_occupied_above_stored_capacity(self, mock_get_conn, mock_db):
        """Occupied is checked against the stored capacity when only occupied changes"""
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {
            'id': 1, 'capacity': 100, 'occupied': 10, 'latitude': None, 'longitude': None
        }

        # Act / Assert
        with pytest.raises(ValidationFailed) as exc_info:
            WarehouseRepository().update(1, 1, WarehouseUpdate(occupied=150))

        assert exc_info.value.errors[0]['field'] == 'occupied'
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_update_returns_none_when_missing(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = None

        assert WarehouseRepository().update(42, 1, WarehouseUpdate(name='New Name')) is None

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_update_only_touches_sent_fields(self, mock_get_conn, mock_db, warehouse_row):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.side_effect = [
            {'id': 1, 'capacity': 10000, 'occupied': 2500, 'latitude': None, 'longitude': None},
            warehouse_row,
        ]

        WarehouseRepository().update(1, 1, WarehouseUpdate(name='Renamed Hub'))

        update_sql, update_params = cursor.execute.call_args_list[1][0]
        assert "name = %s" in update_sql
        assert "capacity" not in update_sql
        assert update_params == ['Renamed Hub', 1, 1]
        conn.commit.assert_called_once()

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_delete_returns_false_when_nothing_deleted(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = None

        assert WarehouseRepository().delete(5, 1) is False

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_get_stats_computes_utilization(self, mock_get_conn, mock_db):
        # Arrange
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {
            'total_warehouses': 2,
            'active_warehouses': 2,
            'inactive_warehouses': 0,
            'maintenance_warehouses': 0,
            'verified_warehouses': 1,
            'total_capacity': 400,
            'total_occupied': 100,
        }

        # Act
        stats = WarehouseRepository().get_stats(1)

        # Assert
        assert stats['available_space'] == 300
        assert stats['utilization_rate'] == 25.0

    @patch('app.repositories.warehouse_repository.get_db_connection_dict')
    def test_get_stats_handles_zero_capacity(self, mock_get_conn, mock_db):
        conn, cursor = mock_db
        mock_get_conn.return_value = conn
        cursor.fetchone.return_value = {
            'total_warehouses': 0,
            'active_warehouses': 0,
            'inactive_warehouses': 0,
            'maintenance_warehouses': 0,
            'verified_warehouses': 0,
            'total_capacity': 0,
            'total_occupied': 0,
        }

        stats = WarehouseRepository().get_stats(1)

        assert stats['utilization_rate'] == 0.0
