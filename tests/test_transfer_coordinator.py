"""Tests for stock transfers between locations."""

import pytest

from stock_ledger_api.exceptions import DatabaseError, TransientStoreError, ValidationFailedError
from stock_ledger_api.models.stock_movement import MovementType
from stock_ledger_api.models.stock_update import StockOperation


def transfer(quantity=15, **overrides):
    request = {
        "inventoryItemId": "item-tomatoes-north",
        "fromLocationId": "north-barn",
        "toLocationId": "roadside-stand",
        "quantity": quantity,
    }
    request.update(overrides)
    return request


@pytest.mark.asyncio
async def test_transfer_moves_stock_and_records_both_legs(service, store, tomatoes, tomatoes_at_stand) -> None:
    result = await service.transfer_stock(transfer(), "maria")

    assert result.success is True
    assert result.source_stock == 85
    assert result.destination_stock == 35
    assert store.items[tomatoes.id].current_stock == 85
    assert store.items[tomatoes_at_stand.id].current_stock == 35

    types = [m.movement_type for m in store.movements]
    assert types == [MovementType.TRANSFER_OUT, MovementType.TRANSFER_IN]
    assert {m.reference_id for m in store.movements} == {result.transfer_id}
    assert all(m.reason == "Stock transfer" for m in store.movements)


@pytest.mark.asyncio
async def test_missing_destination_is_not_created(service, store, tomatoes) -> None:
    result = await service.transfer_stock(transfer(), "maria")

    assert result.success is False
    assert result.error_type == "ItemNotFoundError"
    assert result.failed_step == "resolve_destination"
    assert result.rolled_back is False
    assert len(store.items) == 1
    assert store.items[tomatoes.id].current_stock == 100
    assert store.movements == []


@pytest.mark.asyncio
async def test_source_at_other_location_rejected(service, store, tomatoes, tomatoes_at_stand) -> None:
    result = await service.transfer_stock(transfer(fromLocationId="greenhouse"), "maria")

    assert result.success is False
    assert result.failed_step == "resolve_source"
    assert store.movements == []


@pytest.mark.asyncio
async def test_insufficient_source_moves_nothing(service, store, tomatoes, tomatoes_at_stand) -> None:
    result = await service.transfer_stock(transfer(quantity=150), "maria")

    assert result.success is False
    assert result.error_type == "InsufficientStockError"
    assert result.failed_step == "debit_source"
    assert result.rolled_back is False
    assert store.items[tomatoes_at_stand.id].current_stock == 20


@pytest.mark.asyncio
async def test_invalid_request_raises(service, tomatoes, tomatoes_at_stand) -> None:
    with pytest.raises(ValidationFailedError):
        await service.transfer_stock(transfer(toLocationId="north-barn"), "maria")

    with pytest.raises(ValidationFailedError):
        await service.transfer_stock(transfer(quantity=0), "maria")


@pytest.mark.asyncio
async def test_failed_credit_rolls_back_debit(service, store, notifier, tomatoes, tomatoes_at_stand) -> None:
    store.fail_apply(tomatoes_at_stand.id, StockOperation.ADD, TransientStoreError("throttled"))

    result = await service.transfer_stock(transfer(), "maria")

    assert result.success is False
    assert result.failed_step == "credit_destination"
    assert result.rolled_back is True
    assert result.rollback_succeeded is True
    assert result.error_type == "TransferPartialFailureError"
    assert store.items[tomatoes.id].current_stock == 100
    assert store.items[tomatoes_at_stand.id].current_stock == 20

    trail = [(m.movement_type, m.stock_before, m.stock_after) for m in store.movements]
    assert trail == [
        (MovementType.TRANSFER_OUT, 100, 85),
        (MovementType.ADD, 85, 100),
    ]
    assert store.movements[1].reason == f"Transfer rollback {result.transfer_id}"
    assert notifier.errors[-1].code == "TRANSFER_PARTIAL_FAILURE"
    assert notifier.errors[-1].severity == "high"


@pytest.mark.asyncio
async def test_failed_rollback_is_reported(service, store, notifier, tomatoes, tomatoes_at_stand) -> None:
    store.fail_apply(tomatoes_at_stand.id, StockOperation.ADD, TransientStoreError("throttled"))
    store.fail_apply(tomatoes.id, StockOperation.ADD, DatabaseError("partition offline"))

    result = await service.transfer_stock(transfer(), "maria")

    assert result.success is False
    assert result.rolled_back is True
    assert result.rollback_succeeded is False
    assert "ROLLBACK FAILED" in result.error
    assert store.items[tomatoes.id].current_stock == 85
    assert notifier.errors[-1].severity == "critical"


@pytest.mark.asyncio
async def test_unrecorded_debit_is_still_compensated(service, store, tomatoes, tomatoes_at_stand) -> None:
    store.movement_failure = DatabaseError("movements container unavailable")

    result = await service.transfer_stock(transfer(), "maria")

    assert result.failed_step == "debit_source"
    assert result.rolled_back is True
    assert store.items[tomatoes.id].current_stock == 100


@pytest.mark.asyncio
async def test_failed_rereads_do_not_undo_committed_legs(service, store, tomatoes, tomatoes_at_stand) -> None:
    """Both legs commit even when the store cannot be re-read afterwards."""
    original_get_item = store.get_item
    calls = []

    async def flaky_get_item(item_id):
        calls.append(item_id)
        # Call 1 resolves the source; calls 2 and 3 are the post-update re-reads.
        if len(calls) in (2, 3):
            raise TransientStoreError("throttled")
        return await original_get_item(item_id)

    store.get_item = flaky_get_item

    result = await service.transfer_stock(transfer(), "maria")

    assert result.success is True
    assert result.source_stock == 85
    assert result.destination_stock == 35
    assert store.items[tomatoes.id].current_stock + store.items[tomatoes_at_stand.id].current_stock == 120
    assert [m.movement_type for m in store.movements] == [MovementType.TRANSFER_OUT, MovementType.TRANSFER_IN]
