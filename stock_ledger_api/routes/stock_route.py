from typing import Any, Dict, List
from fastapi import APIRouter, Body, Depends, Header, Response, status

from stock_ledger_api.models.inventory_item import InventoryItemRead
from stock_ledger_api.models.stock_update import BatchSummary, TransferResult
from stock_ledger_api.routes.dependencies import get_inventory_service
from stock_ledger_api.services.inventory_service import InventoryService
from stock_ledger_api.logging_config import get_child_logger, tracer

logger = get_child_logger("routes.stock")

router = APIRouter(prefix="/stock", tags=["stock"])


@router.post("/update", response_model=InventoryItemRead)
async def update_stock(
    update: Dict[str, Any] = Body(..., description="inventoryItemId, operation, quantity, reason"),
    performed_by: str = Header(..., alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    with tracer.start_as_current_span("api_update_stock") as span:
        span.set_attribute("stock.operation", str(update.get("operation")))
        return await service.update_stock(update, performed_by)


@router.post("/batch", response_model=BatchSummary)
async def update_stock_batch(
    items: List[Dict[str, Any]] = Body(..., embed=True),
    performed_by: str = Header(..., alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    with tracer.start_as_current_span("api_update_stock_batch") as span:
        batch_size = len(items)
        span.set_attribute("batch.size", batch_size)

        logger.info(
            f"Handling batch stock update for {batch_size} items",
            extra={"batch_size": batch_size},
        )
        summary = await service.batch_update_stock(items, performed_by)

        span.set_attribute("batch.success_count", summary.succeeded)
        span.set_attribute("batch.success_rate", summary.succeeded / batch_size if batch_size > 0 else 1.0)
        return summary


@router.post("/transfer", response_model=TransferResult)
async def transfer_stock(
    response: Response,
    request: Dict[str, Any] = Body(..., description="inventoryItemId, fromLocationId, toLocationId, quantity"),
    performed_by: str = Header(..., alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    result = await service.transfer_stock(request, performed_by)
    if not result.success:
        if result.rolled_back and not result.rollback_succeeded:
            response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        elif result.error_type == "ItemNotFoundError":
            response.status_code = status.HTTP_404_NOT_FOUND
        else:
            response.status_code = status.HTTP_409_CONFLICT
    return result
