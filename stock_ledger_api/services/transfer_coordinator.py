import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from stock_ledger_api.exceptions import (
    AuditWriteFailedError,
    ItemNotFoundError,
    TransferPartialFailureError,
)
from stock_ledger_api.logging_config import get_child_logger, tracer
from stock_ledger_api.models.inventory_item import InventoryItemRead
from stock_ledger_api.models.stock_movement import MovementType
from stock_ledger_api.models.stock_update import StockOperation, TransferRequest, TransferResult
from stock_ledger_api.monitoring import ErrorNotifier, Monitor, WorkflowError
from stock_ledger_api.services.stock_ledger import StockLedger
from stock_ledger_api.services.validation import ValidationGateway
from stock_ledger_api.store import InventoryStore

logger = get_child_logger("services.transfer_coordinator")


@dataclass
class TransferStep:
    """
    One committed-or-not unit of a transfer and the action that undoes it.
    """
    name: str
    action: Callable[[], Awaitable[InventoryItemRead]]
    compensation: Optional[Callable[[], Awaitable[Any]]] = None
    result: Optional[InventoryItemRead] = None


@dataclass
class StepFailure:
    step: str
    error: Exception
    committed: List[TransferStep]


class TransferCoordinator:
    """
    Moves stock between locations as debit-then-credit through the ledger.

    There is no spanning transaction: when a later step fails, the steps
    that already committed are compensated in reverse order and the result
    says whether that rollback worked.
    """

    def __init__(
        self,
        store: InventoryStore,
        ledger: StockLedger,
        gateway: ValidationGateway,
        monitor: Monitor,
        notifier: Optional[ErrorNotifier] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.gateway = gateway
        self.monitor = monitor
        self.notifier = notifier

    async def transfer_stock(self, request: Any, performed_by: str) -> TransferResult:
        request = self.gateway.validate(TransferRequest, request, "stock-transfer")
        transfer_id = str(uuid.uuid4())

        with tracer.start_as_current_span("transfer_stock") as span:
            span.set_attribute("transfer.id", transfer_id)
            span.set_attribute("inventory_item.id", request.inventory_item_id)
            span.set_attribute("transfer.quantity", request.quantity)

            try:
                source = await self._resolve_source(request)
            except Exception as e:
                return self._failed(transfer_id, "resolve_source", e)

            try:
                destination = await self._resolve_destination(request, source)
            except Exception as e:
                return self._failed(transfer_id, "resolve_destination", e)

            steps = self._build_steps(request, source, destination, performed_by, transfer_id)
            failure = await self._run_steps(steps)

            if failure is None:
                debit, credit = steps
                logger.info(
                    "Stock transferred",
                    extra={
                        "transfer_id": transfer_id,
                        "source_item_id": source.id,
                        "destination_item_id": destination.id,
                        "quantity": request.quantity,
                    },
                )
                self.monitor.record_pattern_success("stock-transfer")
                return TransferResult(
                    transfer_id=transfer_id,
                    success=True,
                    source_stock=debit.result.current_stock,
                    destination_stock=credit.result.current_stock,
                )

            span.set_attribute("error", True)
            span.set_attribute("transfer.failed_step", failure.step)
            if not failure.committed:
                return self._failed(transfer_id, failure.step, failure.error)
            return await self._roll_back(transfer_id, request, failure)

    async def _resolve_source(self, request: TransferRequest) -> InventoryItemRead:
        source = await self.store.get_item(request.inventory_item_id)
        if source.location_id != request.from_location_id or not source.is_active:
            raise ItemNotFoundError(
                f"Source item '{request.inventory_item_id}' not found at location '{request.from_location_id}'"
            )
        return source

    async def _resolve_destination(self, request: TransferRequest, source: InventoryItemRead) -> InventoryItemRead:
        destination = await self.store.find_item(source.product_id, request.to_location_id)
        if destination is None:
            # Destination items are provisioned explicitly, never created here.
            raise ItemNotFoundError(
                f"No inventory item for product '{source.product_id}' at location "
                f"'{request.to_location_id}'; create one before transferring"
            )
        return destination

    def _build_steps(self, request, source, destination, performed_by, transfer_id) -> List[TransferStep]:
        leg = dict(
            reference_id=transfer_id,
            from_location_id=request.from_location_id,
            to_location_id=request.to_location_id,
        )

        async def debit():
            return await self.ledger.update_stock(
                source, StockOperation.SUBTRACT, request.quantity, request.reason, performed_by,
                movement_type=MovementType.TRANSFER_OUT, **leg,
            )

        async def undo_debit():
            return await self.ledger.update_stock(
                source, StockOperation.ADD, request.quantity,
                f"Transfer rollback {transfer_id}", performed_by, **leg,
            )

        async def credit():
            return await self.ledger.update_stock(
                destination, StockOperation.ADD, request.quantity, request.reason, performed_by,
                movement_type=MovementType.TRANSFER_IN, **leg,
            )

        async def undo_credit():
            return await self.ledger.update_stock(
                destination, StockOperation.SUBTRACT, request.quantity,
                f"Transfer rollback {transfer_id}", performed_by, **leg,
            )

        return [
            TransferStep("debit_source", debit, undo_debit),
            TransferStep("credit_destination", credit, undo_credit),
        ]

    async def _run_steps(self, steps: List[TransferStep]) -> Optional[StepFailure]:
        committed: List[TransferStep] = []
        for step in steps:
            try:
                step.result = await step.action()
            except AuditWriteFailedError as e:
                # Stock moved even though its movement was not recorded.
                step.result = e.item
                committed.append(step)
                return StepFailure(step.name, e, committed)
            except Exception as e:
                return StepFailure(step.name, e, committed)
            committed.append(step)
        return None

    async def _roll_back(self, transfer_id: str, request: TransferRequest, failure: StepFailure) -> TransferResult:
        rollback_succeeded = True
        for step in reversed(failure.committed):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
                logger.info(
                    "Compensated transfer step",
                    extra={"transfer_id": transfer_id, "step": step.name},
                )
            except Exception as e:
                rollback_succeeded = False
                logger.critical(
                    "Transfer compensation failed",
                    extra={"transfer_id": transfer_id, "step": step.name, "error_type": type(e).__name__},
                    exc_info=True,
                )

        partial = TransferPartialFailureError(
            f"Transfer {transfer_id} failed at {failure.step}: {failure.error}; "
            + ("rolled back" if rollback_succeeded else "ROLLBACK FAILED, manual reconciliation required"),
            failed_step=failure.step,
            rollback_succeeded=rollback_succeeded,
        )
        self.monitor.record_validation_error("stock-transfer", partial)
        await self._notify(
            severity="high" if rollback_succeeded else "critical",
            message=str(partial),
            code="TRANSFER_PARTIAL_FAILURE",
            context={
                "transferId": transfer_id,
                "itemId": request.inventory_item_id,
                "quantity": request.quantity,
                "failedStep": failure.step,
                "rollbackSucceeded": rollback_succeeded,
            },
        )

        return TransferResult(
            transfer_id=transfer_id,
            success=False,
            error=str(partial),
            error_type=type(partial).__name__,
            failed_step=failure.step,
            rolled_back=True,
            rollback_succeeded=rollback_succeeded,
        )

    def _failed(self, transfer_id: str, step: str, error: Exception) -> TransferResult:
        logger.warning(
            "Transfer failed before any stock moved",
            extra={"transfer_id": transfer_id, "step": step, "error_type": type(error).__name__},
        )
        self.monitor.record_validation_error("stock-transfer", error)
        return TransferResult(
            transfer_id=transfer_id,
            success=False,
            error=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            failed_step=step,
        )

    async def _notify(self, **fields) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.handle_error(
                WorkflowError(workflow="inventory", operation="transferStock", error_type="consistency", **fields)
            )
        except Exception as e:
            logger.warning(f"Cross-workflow notification failed: {e}")
