"""Pytest configuration and fixtures."""

from decimal import Decimal

import pytest

from fakes import InMemoryInventoryStore, RecordingMonitor, RecordingNotifier
from stock_ledger_api.models.inventory_item import InventoryItemRead
from stock_ledger_api.services.inventory_service import InventoryService
from stock_ledger_api.services.movement_recorder import MovementRecorder
from stock_ledger_api.services.stock_ledger import StockLedger


@pytest.fixture
def store() -> InMemoryInventoryStore:
    return InMemoryInventoryStore()


@pytest.fixture
def monitor() -> RecordingMonitor:
    return RecordingMonitor()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def recorder(store, monitor) -> MovementRecorder:
    return MovementRecorder(store, monitor)


@pytest.fixture
def ledger(store, recorder, monitor, notifier) -> StockLedger:
    return StockLedger(store, recorder, monitor, notifier)


@pytest.fixture
def service(store, monitor, notifier) -> InventoryService:
    """Service wired to the in-memory store with sequential batches."""
    return InventoryService(store, monitor=monitor, notifier=notifier, batch_max_concurrency=1)


@pytest.fixture
def tomatoes(store) -> InventoryItemRead:
    """Heirloom tomatoes in the north barn."""
    return store.add_item(
        id="item-tomatoes-north",
        product_id="heirloom-tomatoes",
        location_id="north-barn",
        current_stock=100,
        minimum_stock=10,
        maximum_stock=400,
        reorder_point=25,
        unit_cost=Decimal("1.25"),
    )


@pytest.fixture
def tomatoes_at_stand(store) -> InventoryItemRead:
    """The same product at the roadside stand."""
    return store.add_item(
        id="item-tomatoes-stand",
        product_id="heirloom-tomatoes",
        location_id="roadside-stand",
        current_stock=20,
        minimum_stock=5,
        unit_cost=Decimal("1.25"),
    )
