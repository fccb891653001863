from typing import Optional

from stock_ledger_api.services.inventory_service import InventoryService
from stock_ledger_api.store import CosmosInventoryStore

_service: Optional[InventoryService] = None


async def get_inventory_service() -> InventoryService:
    global _service
    if _service is None:
        store = await CosmosInventoryStore.from_environment()
        _service = InventoryService(store)
    return _service
