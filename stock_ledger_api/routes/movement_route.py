from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query

from stock_ledger_api.models.stock_movement import MovementSummary, MovementType, StockMovementRead
from stock_ledger_api.routes.dependencies import get_inventory_service
from stock_ledger_api.services.inventory_service import InventoryService

router = APIRouter(prefix="/movements", tags=["movements"])


@router.get("/", response_model=List[StockMovementRead])
async def get_movement_history(
    inventory_item_id: Optional[str] = Query(None, alias="inventoryItemId"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_movement_history(inventory_item_id, start, end, limit)


@router.get("/summary/{item_id}", response_model=MovementSummary)
async def get_movement_summary(
    item_id: str = Path(..., title="The inventory item to summarize"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_movement_summary(item_id)


@router.get("/by-type/{movement_type}", response_model=List[StockMovementRead])
async def get_movements_by_type(
    movement_type: MovementType = Path(..., title="add, subtract, set, transfer-out or transfer-in"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_movements_by_type(movement_type)


@router.get("/by-user/{performed_by}", response_model=List[StockMovementRead])
async def get_movements_by_user(
    performed_by: str = Path(..., title="User who performed the movements"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_movements_by_user(performed_by)
