"""
Persistence contract required by the ledger, and its Cosmos DB implementation.

Everything above this module talks to ``InventoryStore`` only; the load-bearing
member is ``apply_stock_operation``, which must be atomic on the server.
"""
from typing import Any, Dict, List, Optional, Protocol

from azure.cosmos.aio import ContainerProxy

from stock_ledger_api import config
from stock_ledger_api.crud import alert_crud, inventory_crud, movement_crud
from stock_ledger_api.db import ContainerType, get_container
from stock_ledger_api.models.alert import AlertAcknowledgement
from stock_ledger_api.models.inventory_item import (
    InventoryFilters,
    InventoryItemCreate,
    InventoryItemRead,
)
from stock_ledger_api.models.stock_movement import (
    MovementFilters,
    StockMovementCreate,
    StockMovementRead,
)
from stock_ledger_api.models.stock_update import StockMutationResult, StockOperation


class InventoryStore(Protocol):
    async def get_item(self, item_id: str) -> InventoryItemRead: ...

    async def find_item(self, product_id: str, location_id: str) -> Optional[InventoryItemRead]: ...

    async def list_items(self, filters: Optional[InventoryFilters] = None) -> List[InventoryItemRead]: ...

    async def create_item(self, item: InventoryItemCreate, owner_id: Optional[str] = None) -> InventoryItemRead: ...

    async def update_item_fields(self, item: InventoryItemRead, updates: Dict[str, Any]) -> InventoryItemRead: ...

    async def apply_stock_operation(
        self, item: InventoryItemRead, operation: StockOperation, quantity: int
    ) -> StockMutationResult: ...

    async def insert_movement(self, movement: StockMovementCreate) -> StockMovementRead: ...

    async def list_movements(self, filters: Optional[MovementFilters] = None) -> List[StockMovementRead]: ...

    async def get_acknowledgements(self, alert_ids: List[str]) -> Dict[str, AlertAcknowledgement]: ...

    async def upsert_acknowledgement(self, acknowledgement: AlertAcknowledgement) -> AlertAcknowledgement: ...


class CosmosInventoryStore:
    def __init__(
        self,
        items: ContainerProxy,
        movements: ContainerProxy,
        acknowledgements: ContainerProxy,
        set_max_retries: Optional[int] = None,
    ):
        self.items = items
        self.movements = movements
        self.acknowledgements = acknowledgements
        self.set_max_retries = set_max_retries or config.stock_set_max_retries()

    @classmethod
    async def from_environment(cls) -> "CosmosInventoryStore":
        return cls(
            items=await get_container(ContainerType.INVENTORY_ITEMS),
            movements=await get_container(ContainerType.STOCK_MOVEMENTS),
            acknowledgements=await get_container(ContainerType.ALERT_ACKNOWLEDGEMENTS),
        )

    async def get_item(self, item_id):
        return await inventory_crud.get_inventory_item_by_id(self.items, item_id)

    async def find_item(self, product_id, location_id):
        return await inventory_crud.find_inventory_item(self.items, product_id, location_id)

    async def list_items(self, filters=None):
        return await inventory_crud.list_inventory_items(self.items, filters)

    async def create_item(self, item, owner_id=None):
        return await inventory_crud.create_inventory_item(self.items, item, owner_id)

    async def update_item_fields(self, item, updates):
        return await inventory_crud.update_inventory_item_fields(self.items, item, updates)

    async def apply_stock_operation(self, item, operation, quantity):
        return await inventory_crud.apply_stock_operation(
            self.items, item, operation, quantity, max_retries=self.set_max_retries
        )

    async def insert_movement(self, movement):
        return await movement_crud.insert_movement(self.movements, movement)

    async def list_movements(self, filters=None):
        return await movement_crud.list_movements(self.movements, filters)

    async def get_acknowledgements(self, alert_ids):
        return await alert_crud.get_acknowledgements(self.acknowledgements, alert_ids)

    async def upsert_acknowledgement(self, acknowledgement):
        return await alert_crud.upsert_acknowledgement(self.acknowledgements, acknowledgement)
