from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MovementType(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"
    TRANSFER_OUT = "transfer-out"
    TRANSFER_IN = "transfer-in"


class StockMovementCreate(BaseModel):
    """
    Audit record for a single committed stock change.
    """
    inventory_item_id: str = Field(..., alias="inventoryItemId", min_length=1)
    movement_type: MovementType = Field(..., alias="movementType")
    quantity: int = Field(..., ge=0)
    stock_before: int = Field(..., alias="stockBefore", ge=0)
    stock_after: int = Field(..., alias="stockAfter", ge=0)
    reason: str = "Stock adjustment"
    performed_by: str = Field(..., alias="performedBy", min_length=1)
    from_location_id: Optional[str] = Field(None, alias="fromLocationId")
    to_location_id: Optional[str] = Field(None, alias="toLocationId")
    reference_id: Optional[str] = Field(None, alias="referenceId")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class StockMovementRead(StockMovementCreate):
    """
    Stored movement including its identity and creation time.
    Movements are append-only; there is no update model.
    """
    id: str
    created_at: datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class MovementFilters(BaseModel):
    inventory_item_id: Optional[str] = Field(None, alias="inventoryItemId")
    movement_type: Optional[MovementType] = Field(None, alias="movementType")
    performed_by: Optional[str] = Field(None, alias="performedBy")
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=1)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class MovementSummary(BaseModel):
    total_in: int = Field(0, alias="totalIn")
    total_out: int = Field(0, alias="totalOut")
    net_change: int = Field(0, alias="netChange")
    movement_count: int = Field(0, alias="movementCount")

    model_config = ConfigDict(populate_by_name=True)
