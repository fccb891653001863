from typing import Optional

from stock_ledger_api.exceptions import (
    AuditWriteFailedError,
    DatabaseError,
    InsufficientStockError,
    ItemNotFoundError,
    UnauthorizedError,
)
from stock_ledger_api.logging_config import get_child_logger, tracer
from stock_ledger_api.models.inventory_item import InventoryItemRead
from stock_ledger_api.models.stock_movement import MovementType, StockMovementCreate
from stock_ledger_api.models.stock_update import StockOperation
from stock_ledger_api.monitoring import ErrorNotifier, Monitor, WorkflowError
from stock_ledger_api.services.movement_recorder import MovementRecorder
from stock_ledger_api.store import InventoryStore

logger = get_child_logger("services.stock_ledger")

RELATED_WORKFLOWS = ["marketing", "executive"]


class StockLedger:
    """
    The only writer of ``currentStock``.

    Each call issues one atomic server-side mutation, records exactly one
    movement for it, and re-reads the item to confirm the stored count.
    """

    def __init__(
        self,
        store: InventoryStore,
        recorder: MovementRecorder,
        monitor: Monitor,
        notifier: Optional[ErrorNotifier] = None,
    ):
        self.store = store
        self.recorder = recorder
        self.monitor = monitor
        self.notifier = notifier

    async def update_stock(
        self,
        item: InventoryItemRead,
        operation: StockOperation,
        quantity: int,
        reason: str,
        performed_by: str,
        *,
        movement_type: Optional[MovementType] = None,
        reference_id: Optional[str] = None,
        from_location_id: Optional[str] = None,
        to_location_id: Optional[str] = None,
    ) -> InventoryItemRead:
        """
        Apply one ledger operation to ``item``.

        Args:
            item: Current item state (identity and partition key are used)
            operation: add, subtract or set
            quantity: Units to add/subtract, or the absolute count for set
            reason: Free-text reason stored on the movement
            performed_by: Acting user; must own the item when it has an owner
            movement_type: Overrides the recorded type (transfer legs)

        Returns:
            The item as re-read after the mutation

        Raises:
            ItemNotFoundError, UnauthorizedError, InsufficientStockError,
            AuditWriteFailedError, DatabaseError
        """
        operation = StockOperation(operation)
        with tracer.start_as_current_span("ledger_update_stock") as span:
            span.set_attribute("inventory_item.id", item.id)
            span.set_attribute("stock.operation", operation.value)
            span.set_attribute("stock.quantity", quantity)

            if not item.is_active:
                self.monitor.record_validation_error("stock-update", "inactive item")
                raise ItemNotFoundError(f"Inventory item with ID '{item.id}' is inactive")
            if item.owner_id and item.owner_id != performed_by:
                failure = UnauthorizedError(
                    f"User '{performed_by}' may not change stock of item '{item.id}'"
                )
                self.monitor.record_validation_error("stock-update", failure)
                raise failure

            try:
                mutation = await self.store.apply_stock_operation(item, operation, quantity)
            except InsufficientStockError as e:
                span.set_attribute("error", True)
                self.monitor.record_validation_error("stock-update-atomic", e)
                await self._notify(
                    operation="updateStock",
                    error_type="business",
                    severity="high",
                    message=str(e),
                    code="OUT_OF_STOCK",
                    context={
                        "itemId": item.id,
                        "productId": item.product_id,
                        "operation": operation.value,
                        "quantity": quantity,
                    },
                )
                raise
            except Exception as e:
                span.set_attribute("error", True)
                self.monitor.record_validation_error("stock-update-atomic", e)
                raise

            span.set_attribute("stock.before", mutation.stock_before)
            span.set_attribute("stock.after", mutation.stock_after)

            movement = StockMovementCreate(
                inventory_item_id=item.id,
                movement_type=movement_type or MovementType(operation.value),
                quantity=quantity,
                stock_before=mutation.stock_before,
                stock_after=mutation.stock_after,
                reason=reason,
                performed_by=performed_by,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                reference_id=reference_id,
            )
            try:
                await self.recorder.record(movement, item=mutation.item)
            except AuditWriteFailedError as e:
                await self._notify(
                    operation="updateStock",
                    error_type="consistency",
                    severity="critical",
                    message=str(e),
                    code="AUDIT_WRITE_FAILED",
                    context={
                        "itemId": item.id,
                        "stockBefore": mutation.stock_before,
                        "stockAfter": mutation.stock_after,
                    },
                )
                raise

            # The change and its movement are committed; from here on the call succeeds.
            try:
                refreshed = await self.store.get_item(item.id)
            except DatabaseError as e:
                logger.warning(
                    "Could not re-read item after stock update",
                    extra={"item_id": item.id, "error_type": type(e).__name__},
                )
                self.monitor.record_calculation_mismatch(
                    "updateStock",
                    expected=mutation.stock_after,
                    actual=None,
                    context={"item_id": item.id, "stock_operation": operation.value, "reread_failed": True},
                )
                refreshed = mutation.item

            if refreshed.current_stock != mutation.stock_after:
                # Another writer may have committed in between; still worth surfacing.
                self.monitor.record_calculation_mismatch(
                    "updateStock",
                    expected=mutation.stock_after,
                    actual=refreshed.current_stock,
                    context={"item_id": item.id, "stock_operation": operation.value},
                )

            logger.info(
                "Stock updated",
                extra={
                    "item_id": item.id,
                    "stock_operation": operation.value,
                    "quantity": quantity,
                    "stock_before": mutation.stock_before,
                    "stock_after": mutation.stock_after,
                    "performed_by": performed_by,
                },
            )

            if mutation.stock_after == 0 and mutation.stock_before > 0:
                await self._notify(
                    operation="updateStock",
                    error_type="business",
                    severity="medium",
                    message=f"Item '{item.id}' is now out of stock",
                    code="STOCK_DEPLETED",
                    context={"itemId": item.id, "productId": item.product_id, "locationId": item.location_id},
                )

            self.monitor.record_pattern_success("stock-update-atomic")
            return refreshed

    async def _notify(self, **fields) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.handle_error(
                WorkflowError(workflow="inventory", related_workflows=RELATED_WORKFLOWS, **fields)
            )
        except Exception as e:
            logger.warning(f"Cross-workflow notification failed: {e}")
