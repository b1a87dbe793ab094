"""
Warehouse Domain Model

Represents a storage facility owned by a user, plus the request schemas
used to create and modify one.
"""
import re
from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal

from app.domain.common import reject_null


WarehouseStatus = Literal["active", "inactive", "maintenance"]

PINCODE_MIN = 110001
PINCODE_MAX = 855118

PHONE_PATTERN = re.compile(r"^[0-9]{10}$|^\+91[0-9]{10}$")
AMENITY_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_]+$")


def normalize_code(value):
    if isinstance(value, str):
        return value.strip().upper()
    return value


def validate_pincode(value: Optional[str]) -> Optional[str]:
    """6 digits inside the Indian postal range"""
    if value is None:
        return value
    value = str(value).strip()
    if not re.fullmatch(r"[0-9]{6}", value):
        raise ValueError("Pincode must be exactly 6 digits")
    if not PINCODE_MIN <= int(value) <= PINCODE_MAX:
        raise ValueError(f"Pincode must be between {PINCODE_MIN} and {PINCODE_MAX}")
    return value


def validate_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError("Contact phone must be 10 digits, optionally prefixed with +91")
    return value


def validate_amenities(values: Optional[List[str]]) -> Optional[List[str]]:
    """Trim, validate and de-duplicate amenity names, keeping order"""
    if values is None:
        return values
    cleaned = []
    for amenity in values:
        amenity = amenity.strip()
        if not 2 <= len(amenity) <= 100:
            raise ValueError("Each amenity must be between 2 and 100 characters")
        if not AMENITY_PATTERN.match(amenity):
            raise ValueError("Amenities may only contain letters, numbers, spaces, hyphens and underscores")
        if amenity not in cleaned:
            cleaned.append(amenity)
    return cleaned


class Warehouse(BaseModel):
    """
    Warehouse domain model - a storage facility with capacity tracking

    Derived values (utilization_percentage, available_space) are computed
    properties and are never stored.
    """

    id: int = Field(..., description="Warehouse ID")
    user_id: Optional[int] = Field(None, description="Owning user")
    name: str = Field(..., description="Warehouse name")
    code: str = Field(..., description="Unique warehouse code (uppercase)")

    # Address
    street: Optional[str] = Field(None, description="Street address")
    city: Optional[str] = Field(None, description="City")
    state: Optional[str] = Field(None, description="State")
    pincode: Optional[str] = Field(None, description="6-digit pincode")
    country: str = Field("India", description="Country")
    latitude: Optional[Decimal] = Field(None, description="Latitude")
    longitude: Optional[Decimal] = Field(None, description="Longitude")

    # Capacity
    capacity: int = Field(..., description="Total capacity (units)", ge=0)
    occupied: int = Field(0, description="Occupied capacity (units)", ge=0)

    # Operations
    status: str = Field("active", description="active, inactive or maintenance")
    is_verified: bool = Field(False, description="Verified by an administrator")
    operating_hours: Optional[str] = Field(None, description="Free text opening hours")
    contact_person: Optional[str] = Field(None, description="On-site contact")
    contact_phone: Optional[str] = Field(None, description="Contact phone")
    contact_email: Optional[str] = Field(None, description="Contact e-mail")
    cost_per_sqft: Optional[Decimal] = Field(None, description="Monthly cost per sq. ft.", ge=0)
    amenities: List[str] = Field(default_factory=list, description="Amenity names")

    # Metadata
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            Decimal: float,
            datetime: lambda v: v.isoformat()
        }
    )

    @property
    def utilization_percentage(self) -> float:
        if not self.capacity:
            return 0.0
        return round(self.occupied / self.capacity * 100, 2)

    @property
    def available_space(self) -> int:
        return self.capacity - self.occupied

    @property
    def coordinates(self) -> Optional[tuple]:
        if self.latitude is None or self.longitude is None:
            return None
        return float(self.latitude), float(self.longitude)

    def to_dict(self) -> dict:
        """Convert to dictionary with computed fields, Decimal as float"""
        data = self.model_dump()
        data['utilization_percentage'] = self.utilization_percentage
        data['available_space'] = self.available_space
        data['amenities_count'] = len(self.amenities)

        for field in ['latitude', 'longitude', 'cost_per_sqft']:
            if data.get(field) is not None:
                data[field] = float(data[field])

        return data


class WarehouseCreate(BaseModel):
    """Schema for creating a new warehouse"""
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Z0-9_-]+$")
    street: str = Field(..., min_length=5, max_length=500)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    pincode: str
    country: str = Field("India", max_length=100)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    capacity: int = Field(..., ge=1, le=1_000_000)
    occupied: int = Field(0, ge=0)
    status: WarehouseStatus = "active"
    is_verified: bool = False
    operating_hours: Optional[str] = Field(None, max_length=255)
    contact_person: Optional[str] = Field(None, min_length=2, max_length=255)
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    cost_per_sqft: Optional[Decimal] = Field(None, ge=0)
    amenities: List[str] = Field(default_factory=list)

    @field_validator("code", mode="before")
    @classmethod
    def uppercase_code(cls, v):
        return normalize_code(v)

    @field_validator("name", "street", "city", "state", "contact_person", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("pincode", mode="before")
    @classmethod
    def check_pincode(cls, v):
        return validate_pincode(v)

    @field_validator("contact_phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("amenities")
    @classmethod
    def check_amenities(cls, v):
        return validate_amenities(v)

    @model_validator(mode="after")
    def check_consistency(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be provided together")
        if self.occupied > self.capacity:
            raise ValueError("Occupied space cannot exceed capacity")
        return self


class WarehouseUpdate(BaseModel):
    """
    Schema for partially updating a warehouse.

    Capacity vs. occupied is only checked here when both are sent; the
    repository re-checks against the stored row.
    """
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    code: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Z0-9_-]+$")
    street: Optional[str] = Field(None, min_length=5, max_length=500)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=100)
    pincode: Optional[str] = None
    country: Optional[str] = Field(None, max_length=100)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    capacity: Optional[int] = Field(None, ge=1, le=1_000_000)
    occupied: Optional[int] = Field(None, ge=0)
    status: Optional[WarehouseStatus] = None
    is_verified: Optional[bool] = None
    operating_hours: Optional[str] = Field(None, max_length=255)
    contact_person: Optional[str] = Field(None, min_length=2, max_length=255)
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    cost_per_sqft: Optional[Decimal] = Field(None, ge=0)
    amenities: Optional[List[str]] = None

    @field_validator("code", mode="before")
    @classmethod
    def uppercase_code(cls, v):
        return normalize_code(v)

    @field_validator("name", "street", "city", "state", "contact_person", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("name", "code", "capacity", "occupied", "status", "is_verified")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)

    @field_validator("pincode", mode="before")
    @classmethod
    def check_pincode(cls, v):
        return validate_pincode(v)

    @field_validator("contact_phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("amenities")
    @classmethod
    def check_amenities(cls, v):
        return validate_amenities(v)

    @model_validator(mode="after")
    def check_consistency(self):
        if self.capacity is not None and self.occupied is not None and self.occupied > self.capacity:
            raise ValueError("Occupied space cannot exceed capacity")
        return self


class CapacityUpdate(BaseModel):
    """Schema for PATCH /warehouses/{id}/capacity"""
    capacity: Optional[int] = Field(None, ge=1, le=1_000_000)
    occupied: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_values(self):
        if self.capacity is None and self.occupied is None:
            raise ValueError("Provide capacity, occupied or both")
        if self.capacity is not None and self.occupied is not None and self.occupied > self.capacity:
            raise ValueError("Occupied space cannot exceed capacity")
        return self


class WarehouseStatusUpdate(BaseModel):
    status: WarehouseStatus
    notes: Optional[str] = Field(None, max_length=500)


class AmenitiesUpdate(BaseModel):
    """Replaces the full amenity set of a warehouse"""
    amenities: List[str] = Field(..., max_length=50)

    @field_validator("amenities")
    @classmethod
    def check_amenities(cls, v):
        return validate_amenities(v)
