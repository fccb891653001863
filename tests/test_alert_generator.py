"""Tests for alert derivation."""

from datetime import datetime, timezone

import pytest

from stock_ledger_api.models.alert import AlertAcknowledgement, AlertSeverity, AlertType
from stock_ledger_api.models.inventory_item import InventoryItemRead
from stock_ledger_api.services.alert_generator import AlertGenerator


def make_item(item_id, current_stock, **fields) -> InventoryItemRead:
    return InventoryItemRead(
        id=item_id,
        product_id="blueberries",
        location_id="north-barn",
        current_stock=current_stock,
        **fields,
    )


@pytest.mark.parametrize(
    "stock, alert_type, severity",
    [
        (0, AlertType.OUT_OF_STOCK, AlertSeverity.CRITICAL),
        (8, AlertType.LOW_STOCK, AlertSeverity.WARNING),
        (18, AlertType.REORDER_NEEDED, AlertSeverity.LOW),
        (95, AlertType.OVERSTOCK, AlertSeverity.LOW),
    ],
)
def test_first_matching_rule_wins(stock, alert_type, severity) -> None:
    item = make_item("item-berries", stock, minimum_stock=10, reorder_point=20, maximum_stock=100)

    alert = AlertGenerator().evaluate(item)

    assert alert.alert_type == alert_type
    assert alert.severity == severity
    assert alert.current_value == stock
    assert alert.acknowledged is False


def test_healthy_item_has_no_alert() -> None:
    item = make_item("item-berries", 50, minimum_stock=10, reorder_point=20, maximum_stock=100)

    assert AlertGenerator().evaluate(item) is None


def test_overstock_ratio_is_configurable() -> None:
    item = make_item("item-berries", 80, maximum_stock=100)

    assert AlertGenerator().evaluate(item) is None
    assert AlertGenerator(overstock_ratio=0.75).evaluate(item).alert_type == AlertType.OVERSTOCK


@pytest.mark.parametrize("ratio", [0, 1.5, -0.2])
def test_invalid_overstock_ratio_rejected(ratio) -> None:
    with pytest.raises(ValueError):
        AlertGenerator(overstock_ratio=ratio)


def test_alerts_sorted_by_severity_then_stock() -> None:
    items = [
        make_item("item-reorder", 18, minimum_stock=10, reorder_point=20),
        make_item("item-low-9", 9, minimum_stock=10),
        make_item("item-out", 0),
        make_item("item-low-3", 3, minimum_stock=10),
    ]

    alerts = AlertGenerator().generate_alerts(items)

    assert [a.inventory_item_id for a in alerts] == ["item-out", "item-low-3", "item-low-9", "item-reorder"]


def test_ids_are_deterministic() -> None:
    item = make_item("item-berries", 0)

    first = AlertGenerator().generate_alerts([item])
    second = AlertGenerator().generate_alerts([item])

    assert first[0].id == second[0].id == "alert-item-berries-out-of-stock"


def test_acknowledgement_applied_to_matching_alert() -> None:
    item = make_item("item-berries", 0)
    acknowledged_at = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)
    ack = AlertAcknowledgement(
        id="alert-item-berries-out-of-stock",
        inventory_item_id="item-berries",
        alert_type=AlertType.OUT_OF_STOCK,
        acknowledged_by="maria",
        acknowledged_at=acknowledged_at,
    )

    alerts = AlertGenerator().generate_alerts([item], {ack.id: ack})

    assert alerts[0].acknowledged is True
    assert alerts[0].acknowledged_by == "maria"
    assert alerts[0].acknowledged_at == acknowledged_at
