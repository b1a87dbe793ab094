"""
Schema checks on the SQLAlchemy models used by init_db (no database needed)
"""
from app import models  # noqa: F401
from app.core.database import Base, DEFAULT_ROLES
from app.models.order import order_number_seq

EXPECTED_TABLES = {
    'roles', 'users', 'refresh_tokens',
    'warehouses', 'warehouse_amenities',
    'customers', 'customer_addresses',
    'products', 'stock_movements',
    'orders', 'order_items',
    'audit_logs',
}


def _constraint_names(table_name):
    return {c.name for c in Base.metadata.tables[table_name].constraints if c.name}


def test_all_tables_registered():
    assert EXPECTED_TABLES <= set(Base.metadata.tables)


def test_order_number_sequence_registered():
    assert order_number_seq.metadata is Base.metadata
    assert order_number_seq.name == 'order_number_seq'


def test_warehouse_code_unique_per_owner():
    assert 'uq_warehouses_user_code' in _constraint_names('warehouses')
    assert 'ck_warehouses_occupied_range' in _constraint_names('warehouses')


def test_order_status_constraint():
    assert 'ck_orders_status' in _constraint_names('orders')


def test_default_roles():
    assert [name for name, _, _ in DEFAULT_ROLES] == ['admin', 'manager', 'staff', 'viewer']


def test_audit_log_indexed_by_entity():
    table = Base.metadata.tables['audit_logs']
    assert 'ix_audit_logs_entity' in {index.name for index in table.indexes}
    assert table.c.user_id.foreign_keys
