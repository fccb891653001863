from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


class StockStatus(str, Enum):
    """
    Stock level classification derived from an item's thresholds.
    """

    OUT_OF_STOCK = "out_of_stock"
    CRITICAL = "critical"
    LOW = "low"
    NORMAL = "normal"


class InventoryItem(BaseModel):
    """
    Base schema for inventory items.
    """
    product_id: str = Field(..., alias="productId", min_length=1)
    location_id: str = Field(..., alias="locationId", min_length=1)  # partition key
    current_stock: int = Field(0, alias="currentStock", ge=0)
    reserved_stock: int = Field(0, alias="reservedStock", ge=0)
    minimum_stock: int = Field(0, alias="minimumStock", ge=0)
    maximum_stock: Optional[int] = Field(None, alias="maximumStock", ge=0)
    reorder_point: Optional[int] = Field(None, alias="reorderPoint", ge=0)
    reorder_quantity: Optional[int] = Field(None, alias="reorderQuantity", ge=0)
    unit_cost: Decimal = Field(Decimal("0"), alias="unitCost", ge=0)

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid"
    )

    @model_validator(mode="after")
    def check_reserved_within_current(self):
        if self.reserved_stock > self.current_stock:
            raise ValueError("reservedStock cannot exceed currentStock")
        return self


class InventoryItemCreate(InventoryItem):
    """
    Input model for creating a new inventory item.
    """
    pass


class InventoryItemUpdate(BaseModel):
    """
    Input model for updating item attributes.

    currentStock is deliberately absent: stock only changes through the ledger.
    """
    reserved_stock: Optional[int] = Field(None, alias="reservedStock", ge=0)
    minimum_stock: Optional[int] = Field(None, alias="minimumStock", ge=0)
    maximum_stock: Optional[int] = Field(None, alias="maximumStock", ge=0)
    reorder_point: Optional[int] = Field(None, alias="reorderPoint", ge=0)
    reorder_quantity: Optional[int] = Field(None, alias="reorderQuantity", ge=0)
    unit_cost: Optional[Decimal] = Field(None, alias="unitCost", ge=0)
    is_active: Optional[bool] = Field(None, alias="isActive")

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid"
    )

    @field_validator("reserved_stock", "minimum_stock", "unit_cost", "is_active", mode="before")
    @classmethod
    def reject_null(cls, value):
        # Only the optional thresholds may be cleared with null.
        if value is None:
            raise ValueError("value may not be null")
        return value


class InventoryItemRead(InventoryItem):
    """
    Output model for reading inventory item details from Cosmos DB.
    Includes Cosmos DB system properties and derived stock figures.
    """
    id: str
    is_active: bool = Field(True, alias="isActive")
    owner_id: Optional[str] = Field(None, alias="ownerId")
    last_restocked_at: Optional[datetime] = Field(None, alias="lastRestockedAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    etag: Optional[str] = Field(default=None, alias="_etag")
    ts: Optional[int] = Field(default=None, alias="_ts")

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore"
    )

    @computed_field(alias="availableStock")
    @property
    def available_stock(self) -> int:
        return max(self.current_stock - self.reserved_stock, 0)

    @computed_field(alias="totalValue")
    @property
    def total_value(self) -> Decimal:
        return self.unit_cost * self.current_stock

    @computed_field(alias="stockStatus")
    @property
    def stock_status(self) -> StockStatus:
        if self.current_stock == 0:
            return StockStatus.OUT_OF_STOCK
        if self.current_stock <= self.minimum_stock:
            return StockStatus.CRITICAL
        if self.reorder_point is not None and self.current_stock <= self.reorder_point:
            return StockStatus.LOW
        return StockStatus.NORMAL


class InventoryFilters(BaseModel):
    """
    Optional filters for listing inventory items.
    """
    location_id: Optional[str] = Field(None, alias="locationId")
    product_id: Optional[str] = Field(None, alias="productId")
    owner_id: Optional[str] = Field(None, alias="ownerId")
    is_active: Optional[bool] = Field(None, alias="isActive")
    low_stock: bool = Field(False, alias="lowStock")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class StockValueResult(BaseModel):
    total_value: Decimal = Field(Decimal("0"), alias="totalValue")
    item_count: int = Field(0, alias="itemCount")
    total_units: int = Field(0, alias="totalUnits")

    model_config = ConfigDict(populate_by_name=True)
