from typing import List, Optional
from fastapi import APIRouter, Depends, Header, Path

from stock_ledger_api.models.alert import StockAlert
from stock_ledger_api.routes.dependencies import get_inventory_service
from stock_ledger_api.services.inventory_service import InventoryService

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/", response_model=List[StockAlert])
async def get_alerts(
    acting_user: Optional[str] = Header(None, alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.get_alerts(acting_user)


@router.post("/{alert_id}/acknowledge", response_model=StockAlert)
async def acknowledge_alert(
    alert_id: str = Path(..., title="Alert id, e.g. alert-<itemId>-low-stock"),
    acknowledged_by: str = Header(..., alias="X-Performed-By"),
    service: InventoryService = Depends(get_inventory_service),
):
    return await service.acknowledge_alert(alert_id, acknowledged_by)
