from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stock_ledger_api.models.inventory_item import InventoryItemRead


class StockOperation(str, Enum):
    """
    Ledger operations on an item's currentStock.
    ADD/SUBTRACT: relative change by quantity
    SET: absolute count, e.g. after a physical stocktake
    """

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class StockUpdate(BaseModel):
    """
    A single requested ledger operation.
    """
    inventory_item_id: str = Field(..., alias="inventoryItemId", min_length=1)
    operation: StockOperation
    quantity: int = Field(..., ge=0)
    reason: str = "Stock adjustment"

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @model_validator(mode="after")
    def check_relative_quantity(self):
        if self.operation != StockOperation.SET and self.quantity == 0:
            raise ValueError(f"quantity must be positive for '{self.operation.value}'")
        return self


class StockMutationResult(BaseModel):
    """
    Outcome of the store's atomic stock primitive.
    """
    stock_before: int
    stock_after: int
    item: InventoryItemRead


class BatchResult(BaseModel):
    """
    Outcome of one update inside a batch, keyed to its input position.
    """
    index: int
    inventory_item_id: Optional[str] = Field(None, alias="inventoryItemId")
    operation: Optional[str] = None
    success: bool
    data: Optional[InventoryItemRead] = None
    error: Optional[str] = None
    error_type: Optional[str] = Field(None, alias="errorType")

    model_config = ConfigDict(populate_by_name=True)


class BatchSummary(BaseModel):
    success: bool
    results: List[BatchResult]
    succeeded: int
    failed: int


class TransferRequest(BaseModel):
    """
    Move stock of one product from a source item to the item holding the
    same product at another location.
    """
    inventory_item_id: str = Field(..., alias="inventoryItemId", min_length=1)
    from_location_id: str = Field(..., alias="fromLocationId", min_length=1)
    to_location_id: str = Field(..., alias="toLocationId", min_length=1)
    quantity: int = Field(..., gt=0)
    reason: str = "Stock transfer"

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @model_validator(mode="after")
    def check_distinct_locations(self):
        if self.from_location_id == self.to_location_id:
            raise ValueError("fromLocationId and toLocationId must differ")
        return self


class TransferResult(BaseModel):
    transfer_id: Optional[str] = Field(None, alias="transferId")
    success: bool
    source_stock: Optional[int] = Field(None, alias="sourceStock")
    destination_stock: Optional[int] = Field(None, alias="destinationStock")
    error: Optional[str] = None
    error_type: Optional[str] = Field(None, alias="errorType")
    failed_step: Optional[str] = Field(None, alias="failedStep")
    rolled_back: bool = Field(False, alias="rolledBack")
    rollback_succeeded: Optional[bool] = Field(None, alias="rollbackSucceeded")

    model_config = ConfigDict(populate_by_name=True)
