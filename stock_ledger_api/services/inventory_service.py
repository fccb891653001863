from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from stock_ledger_api import config
from stock_ledger_api.exceptions import ItemNotFoundError, UnauthorizedError, ValidationFailedError
from stock_ledger_api.logging_config import get_child_logger, tracer
from stock_ledger_api.models.alert import AlertAcknowledgement, StockAlert, parse_alert_id
from stock_ledger_api.models.inventory_item import (
    InventoryFilters,
    InventoryItemCreate,
    InventoryItemRead,
    InventoryItemUpdate,
    StockValueResult,
)
from stock_ledger_api.models.stock_movement import MovementSummary, MovementType, StockMovementRead
from stock_ledger_api.models.stock_update import BatchSummary, StockUpdate, TransferResult
from stock_ledger_api.monitoring import ErrorNotifier, LoggingErrorNotifier, Monitor, TelemetryMonitor
from stock_ledger_api.services.alert_generator import AlertGenerator
from stock_ledger_api.services.batch_processor import BatchProcessor
from stock_ledger_api.services.movement_recorder import MovementRecorder
from stock_ledger_api.services.stock_ledger import StockLedger
from stock_ledger_api.services.transfer_coordinator import TransferCoordinator
from stock_ledger_api.services.validation import ValidationGateway
from stock_ledger_api.store import InventoryStore

logger = get_child_logger("services.inventory")


class InventoryService:
    """
    Operations exposed to the API layer.

    Every call validates its input through the gateway before touching the
    store and returns validated domain objects or raises an ApplicationError.
    """

    def __init__(
        self,
        store: InventoryStore,
        monitor: Optional[Monitor] = None,
        notifier: Optional[ErrorNotifier] = None,
        alert_generator: Optional[AlertGenerator] = None,
        batch_max_concurrency: Optional[int] = None,
        batch_timeout_seconds: Optional[float] = None,
    ):
        self.store = store
        self.monitor = monitor or TelemetryMonitor()
        self.notifier = notifier or LoggingErrorNotifier()
        self.gateway = ValidationGateway(self.monitor)
        self.recorder = MovementRecorder(store, self.monitor)
        self.ledger = StockLedger(store, self.recorder, self.monitor, self.notifier)
        self.alert_generator = alert_generator or AlertGenerator(config.alert_overstock_ratio())
        self.batch_processor = BatchProcessor(
            self.update_stock,
            self.monitor,
            max_concurrency=batch_max_concurrency or config.batch_max_concurrency(),
            timeout_seconds=batch_timeout_seconds or config.batch_timeout_seconds(),
        )
        self.transfer_coordinator = TransferCoordinator(
            store, self.ledger, self.gateway, self.monitor, self.notifier
        )

    def _authorize(self, item: InventoryItemRead, acting_user: Optional[str]) -> None:
        if acting_user and item.owner_id and item.owner_id != acting_user:
            failure = UnauthorizedError(f"User '{acting_user}' may not access item '{item.id}'")
            self.monitor.record_validation_error("inventory-authorization", failure)
            raise failure

    async def get_inventory_item(self, item_id: str, acting_user: Optional[str] = None) -> InventoryItemRead:
        with tracer.start_as_current_span("get_inventory_item") as span:
            span.set_attribute("inventory_item.id", item_id)
            try:
                item = await self.store.get_item(item_id)
            except Exception as e:
                self.monitor.record_validation_error("inventory-fetch", e)
                raise
            self._authorize(item, acting_user)
            self.monitor.record_pattern_success("inventory-fetch")
            return item

    async def get_inventory_items(
        self, filters: Any = None, acting_user: Optional[str] = None
    ) -> List[InventoryItemRead]:
        filters = self.gateway.validate(InventoryFilters, filters or {}, "inventory-list")
        if acting_user:
            filters = filters.model_copy(update={"owner_id": acting_user})
        items = await self.store.list_items(filters)
        self.monitor.record_pattern_success("inventory-list")
        return items

    async def create_inventory_item(self, data: Any, owner_id: Optional[str] = None) -> InventoryItemRead:
        validated = self.gateway.validate(InventoryItemCreate, data, "inventory-create")
        with tracer.start_as_current_span("service_create_inventory_item"):
            item = await self.store.create_item(validated, owner_id=owner_id)
            logger.info(
                "Inventory item created",
                extra={"item_id": item.id, "product_id": item.product_id, "location_id": item.location_id},
            )
            self.monitor.record_pattern_success("inventory-create")
            return item

    async def update_inventory_item(
        self, item_id: str, patch: Any, acting_user: Optional[str] = None
    ) -> InventoryItemRead:
        validated = self.gateway.validate(InventoryItemUpdate, patch, "inventory-update")
        updates = validated.model_dump(mode="json", by_alias=True, exclude_unset=True)
        if not updates:
            failure = ValidationFailedError(
                "No fields provided for update.", expected="at least one updatable field"
            )
            self.monitor.record_validation_error("inventory-update", failure)
            raise failure

        item = await self.get_inventory_item(item_id, acting_user)
        updated = await self.store.update_item_fields(item, updates)
        self.monitor.record_pattern_success("inventory-update")
        return updated

    async def deactivate_inventory_item(self, item_id: str, acting_user: Optional[str] = None) -> InventoryItemRead:
        """Soft delete: movements keep referencing the item."""
        return await self.update_inventory_item(item_id, {"isActive": False}, acting_user)

    async def update_stock(self, update: Any, performed_by: str) -> InventoryItemRead:
        validated = self.gateway.validate(StockUpdate, update, "stock-update")
        item = await self.get_inventory_item(validated.inventory_item_id)
        return await self.ledger.update_stock(
            item, validated.operation, validated.quantity, validated.reason, performed_by
        )

    async def batch_update_stock(self, updates: Sequence[Any], performed_by: str) -> BatchSummary:
        return await self.batch_processor.process_batch(updates, performed_by)

    async def transfer_stock(self, request: Any, performed_by: str) -> TransferResult:
        return await self.transfer_coordinator.transfer_stock(request, performed_by)

    async def check_low_stock(self, location_id: Optional[str] = None) -> List[InventoryItemRead]:
        """
        Active items at or below minimum stock, or whose available stock
        has reached the reorder point.
        """
        items = await self.store.list_items(InventoryFilters(location_id=location_id, is_active=True))
        low = [
            item
            for item in items
            if item.current_stock <= item.minimum_stock
            or (item.reorder_point is not None and item.available_stock <= item.reorder_point)
        ]
        self.monitor.record_pattern_success("low-stock-check")
        return low

    async def get_stock_value(self, location_id: Optional[str] = None) -> StockValueResult:
        items = await self.store.list_items(InventoryFilters(location_id=location_id, is_active=True))
        result = StockValueResult(
            total_value=sum((item.total_value for item in items), Decimal("0")),
            item_count=len(items),
            total_units=sum(item.current_stock for item in items),
        )
        self.monitor.record_pattern_success("stock-value")
        return result

    async def get_alerts(self, acting_user: Optional[str] = None) -> List[StockAlert]:
        items = await self.store.list_items(InventoryFilters(owner_id=acting_user, is_active=True))
        # Two passes: ids are only known once alerts are evaluated.
        candidate_ids = [alert.id for alert in self.alert_generator.generate_alerts(items)]
        acknowledgements = await self.store.get_acknowledgements(candidate_ids)
        alerts = self.alert_generator.generate_alerts(items, acknowledgements)
        self.monitor.record_pattern_success("stock-alerts")
        return alerts

    async def acknowledge_alert(self, alert_id: str, acknowledged_by: str) -> StockAlert:
        parsed = parse_alert_id(alert_id)
        if parsed is None:
            raise ItemNotFoundError(f"Alert '{alert_id}' not found")
        item_id, alert_type = parsed

        item = await self.get_inventory_item(item_id, acknowledged_by)
        alert = self.alert_generator.evaluate(item)
        if alert is None or alert.id != alert_id:
            raise ItemNotFoundError(f"Alert '{alert_id}' is not currently active")

        ack = await self.store.upsert_acknowledgement(
            AlertAcknowledgement(
                id=alert_id,
                inventory_item_id=item_id,
                alert_type=alert_type,
                acknowledged_by=acknowledged_by,
                acknowledged_at=datetime.now(timezone.utc),
            )
        )
        self.monitor.record_pattern_success("acknowledge-alert")
        return alert.model_copy(
            update={"acknowledged": True, "acknowledged_by": ack.acknowledged_by, "acknowledged_at": ack.acknowledged_at}
        )

    async def get_movement_history(
        self,
        inventory_item_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[StockMovementRead]:
        return await self.recorder.get_movement_history(inventory_item_id, start, end, limit)

    async def get_movement_summary(self, inventory_item_id: str) -> MovementSummary:
        return await self.recorder.get_movement_summary(inventory_item_id)

    async def get_movements_by_type(self, movement_type: MovementType) -> List[StockMovementRead]:
        return await self.recorder.get_movements_by_type(MovementType(movement_type))

    async def get_movements_by_user(self, performed_by: str) -> List[StockMovementRead]:
        return await self.recorder.get_movements_by_user(performed_by)
