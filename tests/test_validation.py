"""Tests for the validation gateway."""

import pytest

from stock_ledger_api.exceptions import ValidationFailedError
from stock_ledger_api.models.stock_update import StockOperation, StockUpdate
from stock_ledger_api.services.validation import ValidationGateway


def test_valid_input_returns_model(monitor) -> None:
    gateway = ValidationGateway(monitor)

    update = gateway.validate(
        StockUpdate, {"inventoryItemId": "item-1", "operation": "add", "quantity": 3}, "stock-update"
    )

    assert update.operation == StockOperation.ADD
    assert monitor.validation_errors == []


def test_failure_names_field_and_expectation(monitor) -> None:
    gateway = ValidationGateway(monitor)

    with pytest.raises(ValidationFailedError) as exc_info:
        gateway.validate(
            StockUpdate, {"inventoryItemId": "item-1", "operation": "add", "quantity": -4}, "stock-update"
        )

    assert exc_info.value.field == "quantity"
    assert exc_info.value.expected
    assert monitor.validation_errors[0][0] == "stock-update"


def test_unknown_operation_rejected(monitor) -> None:
    gateway = ValidationGateway(monitor)

    with pytest.raises(ValidationFailedError) as exc_info:
        gateway.validate(
            StockUpdate, {"inventoryItemId": "item-1", "operation": "multiply", "quantity": 2}, "stock-update"
        )

    assert exc_info.value.field == "operation"


def test_unexpected_field_rejected(monitor) -> None:
    gateway = ValidationGateway(monitor)

    with pytest.raises(ValidationFailedError) as exc_info:
        gateway.validate(
            StockUpdate,
            {"inventoryItemId": "item-1", "operation": "add", "quantity": 2, "price": 9},
            "stock-update",
        )

    assert exc_info.value.field == "price"


def test_model_input_is_revalidated(monitor) -> None:
    gateway = ValidationGateway(monitor)
    update = StockUpdate(inventory_item_id="item-1", operation=StockOperation.SUBTRACT, quantity=2)

    validated = gateway.validate(StockUpdate, update, "stock-update")

    assert validated == update
