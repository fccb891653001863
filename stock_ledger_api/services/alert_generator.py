from typing import Dict, Iterable, List, Optional

from stock_ledger_api.config import DEFAULT_OVERSTOCK_RATIO
from stock_ledger_api.models.alert import (
    SEVERITY_RANK,
    AlertAcknowledgement,
    AlertSeverity,
    AlertType,
    StockAlert,
    build_alert_id,
)
from stock_ledger_api.models.inventory_item import InventoryItemRead


class AlertGenerator:
    """
    Derives alerts from item state. Holds no state besides its thresholds,
    so the same items always yield the same alerts.
    """

    def __init__(self, overstock_ratio: float = DEFAULT_OVERSTOCK_RATIO):
        if not 0 < overstock_ratio <= 1:
            raise ValueError("overstock_ratio must be in (0, 1]")
        self.overstock_ratio = overstock_ratio

    def evaluate(self, item: InventoryItemRead) -> Optional[StockAlert]:
        """The single alert for an item, first matching rule wins."""
        stock = item.current_stock
        short_id = item.id[:8]

        if stock == 0:
            return self._alert(
                item, AlertType.OUT_OF_STOCK, AlertSeverity.CRITICAL,
                f"Item {short_id} is out of stock", item.minimum_stock,
            )
        if stock <= item.minimum_stock:
            return self._alert(
                item, AlertType.LOW_STOCK, AlertSeverity.WARNING,
                f"Item {short_id} is running low ({stock} units remaining)", item.minimum_stock,
            )
        if item.reorder_point is not None and stock <= item.reorder_point:
            return self._alert(
                item, AlertType.REORDER_NEEDED, AlertSeverity.LOW,
                f"Item {short_id} has reached reorder point ({stock} units)", item.reorder_point,
            )
        if item.maximum_stock is not None and stock >= self.overstock_ratio * item.maximum_stock:
            return self._alert(
                item, AlertType.OVERSTOCK, AlertSeverity.LOW,
                f"Item {short_id} is near maximum capacity ({stock}/{item.maximum_stock})", item.maximum_stock,
            )
        return None

    def generate_alerts(
        self,
        items: Iterable[InventoryItemRead],
        acknowledgements: Optional[Dict[str, AlertAcknowledgement]] = None,
    ) -> List[StockAlert]:
        acknowledgements = acknowledgements or {}
        alerts = []
        for item in items:
            alert = self.evaluate(item)
            if alert is None:
                continue
            ack = acknowledgements.get(alert.id)
            if ack is not None:
                alert = alert.model_copy(
                    update={
                        "acknowledged": True,
                        "acknowledged_by": ack.acknowledged_by,
                        "acknowledged_at": ack.acknowledged_at,
                    }
                )
            alerts.append(alert)

        alerts.sort(key=lambda a: (SEVERITY_RANK[a.severity], a.current_value))
        return alerts

    @staticmethod
    def _alert(item, alert_type, severity, message, threshold) -> StockAlert:
        return StockAlert(
            id=build_alert_id(item.id, alert_type),
            inventory_item_id=item.id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            threshold_value=threshold,
            current_value=item.current_stock,
        )
