"""
Tests for request schema validation rules
"""
import pytest
from decimal import Decimal
from pydantic import ValidationError

from app.domain.common import BulkIds
from app.domain.customer import AddressUpdate, CustomerCreate, CustomerUpdate
from app.domain.order import BulkStatusUpdate, OrderCreate, OrderStatusUpdate
from app.domain.product import ProductCreate, ProductUpdate
from app.domain.user import RefreshRequest, RegisterRequest, UserUpdate, validate_password_strength
from app.domain.warehouse import (
    AmenitiesUpdate,
    CapacityUpdate,
    Warehouse,
    WarehouseCreate,
    WarehouseUpdate,
    validate_pincode,
)


def _warehouse(**overrides):
    data = {
        'name': 'Delhi North', 'code': 'del-01', 'street': '5 Ring Road',
        'city': 'Delhi', 'state': 'Delhi', 'pincode': '110001', 'capacity': 500,
    }
    data.update(overrides)
    return WarehouseCreate(**data)


class TestWarehouseValidation:

    def test_code_is_uppercased(self):
        assert _warehouse().code == 'DEL-01'

    def test_code_rejects_symbols(self):
        with pytest.raises(ValidationError):
            _warehouse(code='DEL 01!')

    def test_occupied_cannot_exceed_capacity(self):
        with pytest.raises(ValidationError, match='Occupied space cannot exceed capacity'):
            _warehouse(capacity=100, occupied=101)

    def test_coordinates_come_together(self):
        with pytest.raises(ValidationError, match='Latitude and longitude'):
            _warehouse(latitude=Decimal('28.6'))

    def test_amenities_are_trimmed_and_deduplicated(self):
        assert _warehouse(amenities=[' CCTV ', 'CCTV', 'Loading Dock']).amenities == ['CCTV', 'Loading Dock']

    def test_amenity_characters(self):
        with pytest.raises(ValidationError):
            AmenitiesUpdate(amenities=['CCTV; DROP'])

    def test_phone_accepts_country_prefix(self):
        assert _warehouse(contact_phone='+919876543210').contact_phone == '+919876543210'

    def test_phone_rejects_short_number(self):
        with pytest.raises(ValidationError):
            _warehouse(contact_phone='12345')

    def test_capacity_update_needs_a_value(self):
        with pytest.raises(ValidationError):
            CapacityUpdate()

    def test_utilization_of_empty_warehouse(self):
        warehouse = Warehouse(id=1, name='X', code='X-1', capacity=0)

        assert warehouse.utilization_percentage == 0.0


class TestPincode:

    @pytest.mark.parametrize('pincode', ['110001', '560001', '855118'])
    def test_valid(self, pincode):
        assert validate_pincode(pincode) == pincode

    @pytest.mark.parametrize('pincode', ['11000', '1100011', 'ABCDEF', '100000', '900000'])
    def test_invalid(self, pincode):
        with pytest.raises(ValueError):
            validate_pincode(pincode)

    def test_integer_input(self):
        assert validate_pincode(400069) == '400069'


class TestProductValidation:

    def test_sku_uppercased(self):
        product = ProductCreate(name='Rice Bag', sku='rice-25kg', category='Grocery', price=Decimal('1200'))

        assert product.sku == 'RICE-25KG'

    def test_cost_above_price(self):
        with pytest.raises(ValidationError, match='Cost cannot be greater than price'):
            ProductCreate(name='Rice Bag', sku='RICE-1', category='Grocery',
                          price=Decimal('10'), cost=Decimal('20'))

    def test_update_checks_cost_only_when_both_sent(self):
        assert ProductUpdate(cost=Decimal('999')).cost == Decimal('999')


class TestOrderValidation:

    def test_duplicate_products_rejected(self):
        with pytest.raises(ValidationError, match='only once'):
            OrderCreate(customer_id=1, items=[
                {'product_id': 1, 'quantity': 1},
                {'product_id': 1, 'quantity': 2},
            ])

    def test_partial_shipping_address_rejected(self):
        with pytest.raises(ValidationError, match='Shipping address'):
            OrderCreate(customer_id=1, items=[{'product_id': 1, 'quantity': 1}], shipping_city='Pune')

    def test_status_update_needs_a_field(self):
        with pytest.raises(ValidationError):
            OrderStatusUpdate()

    def test_bulk_status_dedupes_ids(self):
        assert BulkStatusUpdate(order_ids=[3, 1, 3], status='shipped').order_ids == [3, 1]


class TestCommonValidation:

    def test_bulk_ids_dedupe_in_order(self):
        assert BulkIds(ids=[5, 2, 5, 9]).ids == [5, 2, 9]

    def test_bulk_ids_positive(self):
        with pytest.raises(ValidationError):
            BulkIds(ids=[1, 0])

    def test_bulk_ids_limit(self):
        with pytest.raises(ValidationError):
            BulkIds(ids=list(range(1, 102)))

    def test_bulk_ids_not_empty(self):
        with pytest.raises(ValidationError):
            BulkIds(ids=[])


class TestUserValidation:

    @pytest.mark.parametrize('password', ['short1A', 'alllowercase1', 'ALLUPPERCASE1', 'NoDigitsHere'])
    def test_weak_passwords(self, password):
        with pytest.raises(ValueError):
            validate_password_strength(password)

    def test_register_lowercases_email(self):
        data = RegisterRequest(email='New.User@Example.COM', password='Secret123', first_name='New')

        assert data.email == 'new.user@example.com'

    def test_refresh_request_accepts_camel_case(self):
        assert RefreshRequest(refreshToken='x' * 20).refresh_token == 'x' * 20


class TestCustomerValidation:

    def test_gst_uppercased(self):
        customer = CustomerCreate(name='Asha', email='ASHA@example.com', gst_number='27aapfu0939f1zv')

        assert customer.gst_number == '27AAPFU0939F1ZV'
        assert customer.email == 'asha@example.com'

    def test_phone_must_be_indian_mobile(self):
        with pytest.raises(ValidationError):
            CustomerCreate(name='Asha', email='asha@example.com', phone='1234567890')


class TestPartialUpdates:
    """Omitted fields are left alone; required columns cannot be nulled"""

    def test_omitted_fields_stay_unset(self):
        data = WarehouseUpdate(city='Pune')

        assert data.model_dump(exclude_unset=True) == {'city': 'Pune'}

    @pytest.mark.parametrize('model,field', [
        (WarehouseUpdate, 'name'),
        (WarehouseUpdate, 'capacity'),
        (WarehouseUpdate, 'status'),
        (ProductUpdate, 'price'),
        (ProductUpdate, 'sku'),
        (CustomerUpdate, 'email'),
        (AddressUpdate, 'street'),
        (UserUpdate, 'is_active'),
    ])
    def test_required_column_cannot_be_null(self, model, field):
        with pytest.raises(ValidationError, match='Field cannot be null'):
            model(**{field: None})

    def test_nullable_columns_accept_null(self):
        data = WarehouseUpdate(contact_phone=None, cost_per_sqft=None)

        assert data.model_dump(exclude_unset=True) == {'contact_phone': None, 'cost_per_sqft': None}

    def test_warehouse_update_trims_text(self):
        data = WarehouseUpdate(name='  Pune East ', street='  12 MG Road  ')

        assert data.name == 'Pune East'
        assert data.street == '12 MG Road'

    def test_product_update_trims_text(self):
        assert ProductUpdate(category='  Grocery ').category == 'Grocery'
