"""
Order Domain Models

Orders, their line items and the request schemas used to create and
update them. Totals are always computed server-side.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from app.domain.warehouse import validate_pincode


OrderStatus = Literal[
    "pending", "confirmed", "processing", "packed",
    "shipped", "delivered", "cancelled", "returned"
]
PaymentStatus = Literal["pending", "partial", "paid", "refunded"]

ORDER_STATUSES = (
    "pending", "confirmed", "processing", "packed",
    "shipped", "delivered", "cancelled", "returned",
)
PAYMENT_STATUSES = ("pending", "partial", "paid", "refunded")

# Shipping and notes may only change before the order is picked
EDITABLE_STATUSES = ("pending", "confirmed")
# Deleting restores stock, so only orders that never shipped qualify
DELETABLE_STATUSES = ("pending", "cancelled")

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_totals(
    line_totals: List[Decimal],
    tax_rate: float,
    shipping_cost: Decimal = Decimal("0"),
    discount_amount: Decimal = Decimal("0")
) -> dict:
    """
    subtotal = sum of lines, tax = subtotal * rate,
    total = subtotal + tax + shipping - discount (negative when the
    discount is larger than the rest; callers reject that)
    """
    subtotal = money(sum(line_totals, Decimal("0")))
    tax_amount = money(subtotal * Decimal(str(tax_rate)))
    total = subtotal + tax_amount + money(shipping_cost) - money(discount_amount)
    return {
        "subtotal": subtotal,
        "tax_amount": tax_amount,
        "shipping_cost": money(shipping_cost),
        "discount_amount": money(discount_amount),
        "total_amount": total,
    }


class OrderItem(BaseModel):
    """Line item with product name/SKU captured at order time"""

    id: int = Field(..., description="Order item ID")
    order_id: int = Field(..., description="Parent order ID")
    product_id: Optional[int] = Field(None, description="Product catalog ID")
    product_name: str = Field(..., description="Product name at order time")
    product_sku: Optional[str] = Field(None, description="Product SKU at order time")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    unit_price: Decimal = Field(..., description="Price per unit", ge=0)
    total_price: Decimal = Field(..., description="quantity * unit_price", ge=0)

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        for field in ['unit_price', 'total_price']:
            data[field] = float(data[field])
        return data


class Order(BaseModel):
    """
    Order domain model - a customer order with its line items

    Status transitions are not restricted: any status may follow any other.
    """

    id: int = Field(..., description="Order ID")
    user_id: Optional[int] = Field(None, description="Owning user")
    order_number: str = Field(..., description="Human readable order number")
    customer_id: int = Field(..., description="Customer ID")
    customer_name: Optional[str] = Field(None, description="Customer name (joined)")
    customer_email: Optional[str] = Field(None, description="Customer email (joined)")

    status: str = Field("pending", description="Fulfilment status")
    payment_status: str = Field("pending", description="Payment status")

    subtotal: Decimal = Field(Decimal("0"), ge=0)
    tax_amount: Decimal = Field(Decimal("0"), ge=0)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(Decimal("0"), ge=0)

    shipping_street: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_pincode: Optional[str] = None
    notes: Optional[str] = None

    item_count: Optional[int] = Field(None, description="Number of line items")
    items: List[OrderItem] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            Decimal: float,
            datetime: lambda v: v.isoformat()
        }
    )

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump(exclude={'items'})
        for field in ['subtotal', 'tax_amount', 'shipping_cost', 'discount_amount', 'total_amount']:
            data[field] = float(data[field])
        data['items'] = [item.to_dict() for item in self.items]
        if data['item_count'] is None:
            data['item_count'] = len(self.items)
        return data


class OrderItemCreate(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1, le=10_000)
    unit_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)


class ShippingAddress(BaseModel):
    """Mixin validating that the four shipping fields come together"""
    shipping_street: Optional[str] = Field(None, min_length=5, max_length=500)
    shipping_city: Optional[str] = Field(None, min_length=2, max_length=100)
    shipping_state: Optional[str] = Field(None, min_length=2, max_length=100)
    shipping_pincode: Optional[str] = None

    @field_validator("shipping_pincode", mode="before")
    @classmethod
    def check_pincode(cls, v):
        return validate_pincode(v)

    @model_validator(mode="after")
    def check_address_complete(self):
        fields = [self.shipping_street, self.shipping_city, self.shipping_state, self.shipping_pincode]
        provided = [f is not None for f in fields]
        if any(provided) and not all(provided):
            raise ValueError("Shipping address requires street, city, state and pincode together")
        return self


class OrderCreate(ShippingAddress):
    customer_id: int = Field(..., ge=1)
    items: List[OrderItemCreate] = Field(..., min_length=1, max_length=100)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("items")
    @classmethod
    def check_unique_products(cls, v):
        ids = [item.product_id for item in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Each product may appear only once per order")
        return v


class OrderUpdate(ShippingAddress):
    """Detail edits allowed while the order is pending or confirmed"""
    notes: Optional[str] = Field(None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_any(self):
        if self.status is None and self.payment_status is None:
            raise ValueError("Provide status, payment_status or both")
        return self


class BulkStatusUpdate(BaseModel):
    order_ids: List[int] = Field(..., min_length=1, max_length=100)
    status: OrderStatus

    @field_validator("order_ids")
    @classmethod
    def check_ids(cls, v):
        if any(i < 1 for i in v):
            raise ValueError("Order IDs must be positive integers")
        return list(dict.fromkeys(v))
