"""
Customer Domain Models

Customers, their addresses, and the request schemas used to manage them.
"""
from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal

from app.domain.common import reject_null


CustomerSegment = Literal["premium", "regular", "new"]
AddressType = Literal["billing", "shipping"]

PHONE_PATTERN = r"^[6-9]\d{9}$"
GST_PATTERN = r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$"
ADDRESS_PINCODE_PATTERN = r"^[1-9][0-9]{5}$"


class Address(BaseModel):
    """Billing or shipping address of a customer"""

    id: int = Field(..., description="Address ID")
    customer_id: int = Field(..., description="Customer ID")
    type: str = Field("shipping", description="billing or shipping")
    street: str = Field(..., description="Street")
    city: str = Field(..., description="City")
    state: str = Field(..., description="State")
    pincode: str = Field(..., description="Pincode")
    is_default: bool = Field(False, description="Default address for its type")
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Customer(BaseModel):
    """
    Customer domain model

    total_orders / total_revenue are running counters maintained by the
    order endpoints.
    """

    id: int = Field(..., description="Customer ID")
    user_id: Optional[int] = Field(None, description="Owning user")
    name: str = Field(..., description="Customer name")
    email: str = Field(..., description="Customer email (lowercase)")
    phone: Optional[str] = Field(None, description="10-digit mobile number")
    business_name: Optional[str] = Field(None, description="Registered business name")
    gst_number: Optional[str] = Field(None, description="GSTIN")
    segment: str = Field("new", description="premium, regular or new")
    total_orders: int = Field(0, description="Number of orders placed", ge=0)
    total_revenue: Decimal = Field(Decimal("0"), description="Sum of order totals", ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    addresses: List[Address] = Field(default_factory=list)

    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            Decimal: float,
            datetime: lambda v: v.isoformat()
        }
    )

    @property
    def average_order_value(self) -> float:
        if not self.total_orders:
            return 0.0
        return round(float(self.total_revenue) / self.total_orders, 2)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['total_revenue'] = float(data['total_revenue'])
        data['average_order_value'] = self.average_order_value
        return data


def _lower_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _upper(v):
    return v.strip().upper() if isinstance(v, str) else v


class AddressCreate(BaseModel):
    type: AddressType = "shipping"
    street: str = Field(..., min_length=5, max_length=500)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    pincode: str = Field(..., pattern=ADDRESS_PINCODE_PATTERN)
    is_default: bool = False

    @field_validator("pincode", mode="before")
    @classmethod
    def pincode_as_string(cls, v):
        return str(v).strip() if v is not None else v


class AddressUpdate(BaseModel):
    type: Optional[AddressType] = None
    street: Optional[str] = Field(None, min_length=5, max_length=500)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=100)
    pincode: Optional[str] = Field(None, pattern=ADDRESS_PINCODE_PATTERN)
    is_default: Optional[bool] = None

    @field_validator("pincode", mode="before")
    @classmethod
    def pincode_as_string(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("type", "street", "city", "state", "pincode", "is_default")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)


class CustomerCreate(BaseModel):
    """Schema for creating a customer, optionally with addresses"""
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    business_name: Optional[str] = Field(None, max_length=200)
    gst_number: Optional[str] = Field(None, pattern=GST_PATTERN)
    segment: CustomerSegment = "new"
    addresses: List[AddressCreate] = Field(default_factory=list, max_length=10)

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return _lower_email(v)

    @field_validator("gst_number", mode="before")
    @classmethod
    def uppercase_gst(cls, v):
        return _upper(v)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    business_name: Optional[str] = Field(None, max_length=200)
    gst_number: Optional[str] = Field(None, pattern=GST_PATTERN)
    segment: Optional[CustomerSegment] = None

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return _lower_email(v)

    @field_validator("name", "email", "segment")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)

    @field_validator("gst_number", mode="before")
    @classmethod
    def uppercase_gst(cls, v):
        return _upper(v)
