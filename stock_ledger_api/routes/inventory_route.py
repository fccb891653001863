from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Header, Path, Query, status

from stock_ledger_api.models.inventory_item import InventoryItemRead, StockValueResult
from stock_ledger_api.routes.dependencies import get_inventory_service
from stock_ledger_api.services.inventory_service import InventoryService
from stock_ledger_api.logging_config import get_child_logger, tracer

logger = get_child_logger("routes.inventory")

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/", response_model=List[InventoryItemRead])
async def get_inventory_items(
    location_id: Optional[str] = Query(None, alias="locationId", title="Warehouse to filter by"),
    product_id: Optional[str] = Query(None, alias="productId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    low_stock: bool = Query(False, alias="lowStock"),
    acting_user: Optional[str] = Header(None, alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    with tracer.start_as_current_span("api_get_inventory_items") as span:
        filters = {"locationId": location_id, "productId": product_id, "isActive": is_active, "lowStock": low_stock}
        filters = {key: value for key, value in filters.items() if value is not None}
        span.set_attribute("filters.count", len(filters))

        result = await service.get_inventory_items(filters, acting_user=acting_user)

        span.set_attribute("inventory_items.count", len(result))
        logger.info(f"Successfully retrieved {len(result)} inventory items", extra={"count": len(result)})
        return result


@router.get("/low-stock", response_model=List[InventoryItemRead])
async def get_low_stock_items(
    location_id: Optional[str] = Query(None, alias="locationId"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.check_low_stock(location_id)


@router.get("/value", response_model=StockValueResult)
async def get_stock_value(
    location_id: Optional[str] = Query(None, alias="locationId"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_stock_value(location_id)


@router.post("/", response_model=InventoryItemRead, status_code=status.HTTP_201_CREATED)
async def add_inventory_item(
    item: Dict[str, Any] = Body(..., description="Inventory item to create"),
    owner_id: Optional[str] = Header(None, alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.create_inventory_item(item, owner_id=owner_id)


@router.get("/{item_id}", response_model=InventoryItemRead)
async def get_inventory_item(
    item_id: str = Path(..., title="The ID of the inventory item to retrieve"),
    acting_user: Optional[str] = Header(None, alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_inventory_item(item_id, acting_user)


@router.patch("/{item_id}", response_model=InventoryItemRead)
async def update_inventory_item(
    changes: Dict[str, Any] = Body(..., description="Attribute changes; stock is changed via /stock"),
    item_id: str = Path(..., title="The ID of the inventory item to update"),
    acting_user: Optional[str] = Header(None, alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.update_inventory_item(item_id, changes, acting_user)


@router.delete("/{item_id}", response_model=InventoryItemRead)
async def deactivate_inventory_item(
    item_id: str = Path(..., title="The ID of the inventory item to deactivate"),
    acting_user: Optional[str] = Header(None, alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    logger.info("Deactivating inventory item", extra={"item_id": item_id})
    return await service.deactivate_inventory_item(item_id, acting_user)
