import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from stock_ledger_api.logging_config import get_child_logger, tracer
from stock_ledger_api.models.inventory_item import InventoryItemRead
from stock_ledger_api.models.stock_update import BatchResult, BatchSummary
from stock_ledger_api.monitoring import Monitor

logger = get_child_logger("services.batch_processor")

ApplyUpdate = Callable[[Any, str], Awaitable[InventoryItemRead]]


def _field(update: Any, alias: str, name: str) -> Optional[str]:
    if isinstance(update, dict):
        value = update.get(alias, update.get(name))
    else:
        value = getattr(update, name, None)
    if value is None:
        return None
    return getattr(value, "value", value)


class BatchProcessor:
    """
    Runs a list of stock updates with per-item isolation: a failing update
    becomes a failed result and the rest of the batch still runs.

    ``apply_update`` performs validation and the ledger call for one raw
    update, so malformed entries fail individually too.
    """

    def __init__(
        self,
        apply_update: ApplyUpdate,
        monitor: Monitor,
        max_concurrency: int = 1,
        timeout_seconds: Optional[float] = None,
    ):
        self.apply_update = apply_update
        self.monitor = monitor
        self.max_concurrency = max(1, max_concurrency)
        self.timeout_seconds = timeout_seconds

    async def process_batch(self, updates: Sequence[Any], performed_by: str) -> BatchSummary:
        with tracer.start_as_current_span("process_batch") as span:
            batch_size = len(updates)
            span.set_attribute("batch.size", batch_size)
            span.set_attribute("batch.max_concurrency", self.max_concurrency)

            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.timeout_seconds if self.timeout_seconds else None
            results: List[Optional[BatchResult]] = [None] * batch_size

            if self.max_concurrency == 1:
                for index, update in enumerate(updates):
                    results[index] = await self._run_one(index, update, performed_by, deadline)
            else:
                await self._run_grouped(updates, performed_by, deadline, results)

            succeeded = sum(1 for r in results if r.success)
            failed = batch_size - succeeded
            span.set_attribute("batch.success_count", succeeded)

            logger.info(
                f"Processed stock batch: {succeeded}/{batch_size} succeeded",
                extra={"batch_size": batch_size, "success_count": succeeded, "failure_count": failed},
            )
            self.monitor.record_pattern_success("batch-update")
            return BatchSummary(success=succeeded > 0, results=results, succeeded=succeeded, failed=failed)

    async def _run_grouped(self, updates, performed_by, deadline, results) -> None:
        # Updates to the same item stay in input order; distinct items run concurrently.
        groups: Dict[str, List[int]] = defaultdict(list)
        for index, update in enumerate(updates):
            key = _field(update, "inventoryItemId", "inventory_item_id") or f"__invalid_{index}"
            groups[key].append(index)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process_group(indices: List[int]) -> None:
            async with semaphore:
                for index in indices:
                    results[index] = await self._run_one(index, updates[index], performed_by, deadline)

        tasks = [asyncio.create_task(process_group(indices)) for indices in groups.values()]
        await asyncio.gather(*tasks)

    async def _run_one(self, index: int, update: Any, performed_by: str, deadline: Optional[float]) -> BatchResult:
        item_id = _field(update, "inventoryItemId", "inventory_item_id")
        operation = _field(update, "operation", "operation")

        if deadline is not None and asyncio.get_running_loop().time() >= deadline:
            error = TimeoutError("Batch timed out before this update was started")
            self.monitor.record_validation_error("batch-update", error)
            return BatchResult(
                index=index, inventory_item_id=item_id, operation=operation,
                success=False, error=str(error), error_type="BatchTimeout",
            )

        try:
            item = await self.apply_update(update, performed_by)
        except Exception as e:
            logger.warning(
                "Batch stock update failed",
                extra={"index": index, "item_id": item_id, "stock_operation": operation, "error_type": type(e).__name__},
            )
            self.monitor.record_validation_error("batch-update", e)
            return BatchResult(
                index=index, inventory_item_id=item_id, operation=operation,
                success=False, error=str(e) or type(e).__name__, error_type=type(e).__name__,
            )
        return BatchResult(index=index, inventory_item_id=item_id, operation=operation, success=True, data=item)
