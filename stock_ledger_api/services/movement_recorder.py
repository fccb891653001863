from datetime import datetime
from typing import List, Optional

from stock_ledger_api.exceptions import ApplicationError, AuditWriteFailedError
from stock_ledger_api.logging_config import get_child_logger, tracer
from stock_ledger_api.models.stock_movement import (
    MovementFilters,
    MovementSummary,
    MovementType,
    StockMovementCreate,
    StockMovementRead,
)
from stock_ledger_api.monitoring import Monitor
from stock_ledger_api.store import InventoryStore

logger = get_child_logger("services.movement_recorder")

INBOUND_TYPES = {MovementType.ADD, MovementType.TRANSFER_IN}
OUTBOUND_TYPES = {MovementType.SUBTRACT, MovementType.TRANSFER_OUT}


class MovementRecorder:
    """
    Append-only audit trail of stock changes, plus reporting queries over it.
    """

    def __init__(self, store: InventoryStore, monitor: Monitor):
        self.store = store
        self.monitor = monitor

    async def record(self, movement: StockMovementCreate, item=None) -> StockMovementRead:
        """
        Append one movement. ``item`` is the already-committed item state and
        is attached to the error if the write fails.

        Raises:
            AuditWriteFailedError: The stock changed but the movement was not stored
        """
        with tracer.start_as_current_span("record_movement") as span:
            span.set_attribute("inventory_item.id", movement.inventory_item_id)
            span.set_attribute("movement.type", movement.movement_type.value)
            try:
                recorded = await self.store.insert_movement(movement)
            except ApplicationError as e:
                span.set_attribute("error", True)
                logger.critical(
                    "Stock changed but movement record failed",
                    extra={
                        "item_id": movement.inventory_item_id,
                        "movement_type": movement.movement_type.value,
                        "stock_before": movement.stock_before,
                        "stock_after": movement.stock_after,
                    },
                    exc_info=True,
                )
                failure = AuditWriteFailedError(
                    f"Stock of item '{movement.inventory_item_id}' changed from "
                    f"{movement.stock_before} to {movement.stock_after} but the movement "
                    f"record could not be written; reconciliation required",
                    item=item,
                    stock_before=movement.stock_before,
                    stock_after=movement.stock_after,
                    original_exception=e,
                )
                self.monitor.record_validation_error("movement-record", failure)
                raise failure from e

            self.monitor.record_pattern_success("movement-record")
            return recorded

    async def get_movement_history(
        self,
        inventory_item_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[StockMovementRead]:
        movements = await self.store.list_movements(
            MovementFilters(inventory_item_id=inventory_item_id, start=start, end=end, limit=limit)
        )
        self.monitor.record_pattern_success("movement-history")
        return movements

    async def get_movements_by_type(self, movement_type: MovementType) -> List[StockMovementRead]:
        movements = await self.store.list_movements(MovementFilters(movement_type=movement_type))
        self.monitor.record_pattern_success("movements-by-type")
        return movements

    async def get_movements_by_user(self, performed_by: str) -> List[StockMovementRead]:
        movements = await self.store.list_movements(MovementFilters(performed_by=performed_by))
        self.monitor.record_pattern_success("movements-by-user")
        return movements

    async def get_movement_summary(self, inventory_item_id: str) -> MovementSummary:
        movements = await self.store.list_movements(MovementFilters(inventory_item_id=inventory_item_id))
        summary = summarize_movements(movements)
        self.monitor.record_pattern_success("movement-summary")
        return summary


def summarize_movements(movements: List[StockMovementRead]) -> MovementSummary:
    total_in = 0
    total_out = 0
    for movement in movements:
        if movement.movement_type in INBOUND_TYPES:
            total_in += movement.quantity
        elif movement.movement_type in OUTBOUND_TYPES:
            total_out += movement.quantity
        else:
            # set: count the signed difference it made
            delta = movement.stock_after - movement.stock_before
            if delta > 0:
                total_in += delta
            else:
                total_out += -delta
    return MovementSummary(
        total_in=total_in,
        total_out=total_out,
        net_change=total_in - total_out,
        movement_count=len(movements),
    )
