"""
Product Domain Model

Represents a catalog product with its stock level.
This is the single source of truth for product data structure.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

from app.domain.common import reject_null


ProductUnit = Literal["pieces", "kg", "liters", "meters", "boxes"]
ProductStatus = Literal["active", "inactive", "discontinued"]
StockAdjustment = Literal["add", "subtract", "set"]


def normalize_sku(value):
    if isinstance(value, str):
        return value.strip().upper()
    return value


class Product(BaseModel):
    """
    Product domain model - represents a product in our catalog

    Fields:
        id: Internal product ID (primary key)
        sku: Stock Keeping Unit (unique per owner, uppercase)
        name: Product name
        category: Product category
        price: Selling price
        cost: Purchase price (never above price)
        stock: Units on hand
        reorder_level: Stock level at or below which the product needs reordering
        unit: Unit of measure (pieces, kg, liters, meters, boxes)
        status: active, inactive or discontinued
    """

    id: int = Field(..., description="Internal product ID")
    user_id: Optional[int] = Field(None, description="Owning user")
    sku: str = Field(..., description="Stock Keeping Unit")
    name: str = Field(..., description="Product name")

    # Details
    description: Optional[str] = Field(None, description="Product description")
    category: str = Field(..., description="Product category")
    unit: str = Field("pieces", description="Unit of measure")
    supplier: Optional[str] = Field(None, description="Supplier name")
    image_url: Optional[str] = Field(None, description="Image URL")

    # Pricing
    price: Decimal = Field(..., description="Sale price", ge=0)
    cost: Optional[Decimal] = Field(None, description="Cost/purchase price", ge=0)

    # Inventory
    stock: int = Field(0, description="Current stock level", ge=0)
    reorder_level: int = Field(10, description="Reorder threshold", ge=0)

    # Metadata
    status: str = Field("active", description="Catalog status")
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
    def needs_reorder(self) -> bool:
        """Stock at or below the reorder level"""
        return self.stock <= self.reorder_level

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0

    @property
    def margin_percentage(self) -> Optional[float]:
        """Markup over cost, in percent"""
        if not self.cost:
            return None
        return round(float((self.price - self.cost) / self.cost * 100), 2)

    @property
    def inventory_value(self) -> float:
        return float(self.price) * self.stock

    def to_dict(self) -> dict:
        """
        Convert to dictionary with computed fields

        Returns dict with all fields plus computed properties
        """
        data = self.model_dump()

        data['needs_reorder'] = self.needs_reorder
        data['is_out_of_stock'] = self.is_out_of_stock
        data['margin_percentage'] = self.margin_percentage
        data['inventory_value'] = self.inventory_value

        data['price'] = float(data['price'])
        if data.get('cost') is not None:
            data['cost'] = float(data['cost'])

        return data


class ProductCreate(BaseModel):
    """Schema for creating a new product"""
    name: str = Field(..., min_length=3, max_length=200)
    sku: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Z0-9-]+$")
    category: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    stock: int = Field(0, ge=0)
    reorder_level: int = Field(10, ge=0)
    unit: ProductUnit = "pieces"
    supplier: Optional[str] = Field(None, max_length=200)
    image_url: Optional[str] = Field(None, max_length=500, pattern=r"^https?://")
    status: ProductStatus = "active"

    @field_validator("sku", mode="before")
    @classmethod
    def uppercase_sku(cls, v):
        return normalize_sku(v)

    @field_validator("name", "category", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_cost(self):
        if self.cost is not None and self.cost > self.price:
            raise ValueError("Cost cannot be greater than price")
        return self


class ProductUpdate(BaseModel):
    """Schema for updating an existing product (cost vs. price re-checked on merge)"""
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    sku: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Z0-9-]+$")
    category: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    reorder_level: Optional[int] = Field(None, ge=0)
    unit: Optional[ProductUnit] = None
    supplier: Optional[str] = Field(None, max_length=200)
    image_url: Optional[str] = Field(None, max_length=500, pattern=r"^https?://")
    status: Optional[ProductStatus] = None

    @field_validator("sku", mode="before")
    @classmethod
    def uppercase_sku(cls, v):
        return normalize_sku(v)

    @field_validator("name", "category", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("name", "sku", "category", "price", "reorder_level", "unit", "status")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)

    @model_validator(mode="after")
    def check_cost(self):
        if self.cost is not None and self.price is not None and self.cost > self.price:
            raise ValueError("Cost cannot be greater than price")
        return self


class StockUpdate(BaseModel):
    """Schema for PATCH /products/{id}/stock"""
    quantity: int = Field(..., ge=0, le=1_000_000)
    type: StockAdjustment = "set"
    reason: Optional[str] = Field(None, max_length=500)

    def apply(self, current_stock: int) -> int:
        """Resulting stock level; may be negative, callers reject that"""
        if self.type == "add":
            return current_stock + self.quantity
        if self.type == "subtract":
            return current_stock - self.quantity
        return self.quantity
