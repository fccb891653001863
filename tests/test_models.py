"""Tests for ledger data models."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from stock_ledger_api.models.alert import AlertType, build_alert_id, parse_alert_id
from stock_ledger_api.models.inventory_item import (
    InventoryItemCreate,
    InventoryItemRead,
    InventoryItemUpdate,
    StockStatus,
)
from stock_ledger_api.models.stock_update import StockOperation, StockUpdate, TransferRequest


def make_item(**fields) -> InventoryItemRead:
    fields.setdefault("id", "item-1")
    fields.setdefault("product_id", "sweet-corn")
    fields.setdefault("location_id", "north-barn")
    return InventoryItemRead(**fields)


def test_available_stock_subtracts_reserved() -> None:
    item = make_item(current_stock=40, reserved_stock=15)

    assert item.available_stock == 25


def test_total_value_uses_current_stock() -> None:
    item = make_item(current_stock=12, unit_cost=Decimal("2.50"))

    assert item.total_value == Decimal("30.00")


@pytest.mark.parametrize(
    "stock, expected",
    [
        (0, StockStatus.OUT_OF_STOCK),
        (5, StockStatus.CRITICAL),
        (10, StockStatus.CRITICAL),
        (20, StockStatus.LOW),
        (21, StockStatus.NORMAL),
    ],
)
def test_stock_status_thresholds(stock: int, expected: StockStatus) -> None:
    item = make_item(current_stock=stock, minimum_stock=10, reorder_point=20)

    assert item.stock_status == expected


def test_serialization_uses_camel_case_and_derived_fields() -> None:
    item = make_item(current_stock=8, reserved_stock=3, minimum_stock=10, unit_cost=Decimal("1.5"))

    data = item.model_dump(mode="json", by_alias=True)

    assert data["currentStock"] == 8
    assert data["availableStock"] == 5
    assert data["stockStatus"] == "critical"
    assert data["totalValue"] == "12.0"


def test_reserved_above_current_rejected() -> None:
    with pytest.raises(ValidationError):
        InventoryItemCreate(product_id="kale", location_id="north-barn", current_stock=3, reserved_stock=4)


def test_negative_stock_rejected() -> None:
    with pytest.raises(ValidationError):
        InventoryItemCreate(product_id="kale", location_id="north-barn", current_stock=-1)


def test_update_model_has_no_current_stock() -> None:
    with pytest.raises(ValidationError):
        InventoryItemUpdate.model_validate({"currentStock": 50})


def test_stock_update_requires_positive_quantity_for_relative_operations() -> None:
    with pytest.raises(ValidationError):
        StockUpdate(inventory_item_id="item-1", operation=StockOperation.ADD, quantity=0)

    update = StockUpdate(inventory_item_id="item-1", operation=StockOperation.SET, quantity=0)
    assert update.quantity == 0
    assert update.reason == "Stock adjustment"


def test_transfer_request_requires_distinct_locations() -> None:
    with pytest.raises(ValidationError):
        TransferRequest(
            inventory_item_id="item-1", from_location_id="north-barn", to_location_id="north-barn", quantity=1
        )


def test_alert_id_round_trips_through_parser() -> None:
    alert_id = build_alert_id("item-with-dashes", AlertType.REORDER_NEEDED)

    assert alert_id == "alert-item-with-dashes-reorder"
    assert parse_alert_id(alert_id) == ("item-with-dashes", AlertType.REORDER_NEEDED)


@pytest.mark.parametrize("alert_id", ["item-1-low-stock", "alert--low-stock", "alert-item-1-unknown"])
def test_parse_alert_id_rejects_foreign_ids(alert_id: str) -> None:
    assert parse_alert_id(alert_id) is None
