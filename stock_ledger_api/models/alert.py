from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertType(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    REORDER_NEEDED = "reorder_needed"
    OVERSTOCK = "overstock"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    LOW = "low"


# Sort rank: lower is more severe
SEVERITY_RANK = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.LOW: 2,
}

# Suffix used in the deterministic alert id for each alert type
ALERT_ID_SUFFIX = {
    AlertType.OUT_OF_STOCK: "out-of-stock",
    AlertType.LOW_STOCK: "low-stock",
    AlertType.REORDER_NEEDED: "reorder",
    AlertType.OVERSTOCK: "overstock",
}


class StockAlert(BaseModel):
    """
    Point-in-time alert derived from an item's current stock.
    Never stored; only its acknowledgement is.
    """
    id: str
    inventory_item_id: str = Field(..., alias="inventoryItemId")
    alert_type: AlertType = Field(..., alias="alertType")
    severity: AlertSeverity
    message: str
    threshold_value: Optional[int] = Field(None, alias="thresholdValue")
    current_value: int = Field(..., alias="currentValue")
    acknowledged: bool = False
    acknowledged_by: Optional[str] = Field(None, alias="acknowledgedBy")
    acknowledged_at: Optional[datetime] = Field(None, alias="acknowledgedAt")

    model_config = ConfigDict(populate_by_name=True)


class AlertAcknowledgement(BaseModel):
    """
    Persisted acknowledgement keyed by alert id.
    """
    id: str  # alert id, partition key
    inventory_item_id: str = Field(..., alias="inventoryItemId")
    alert_type: AlertType = Field(..., alias="alertType")
    acknowledged_by: str = Field(..., alias="acknowledgedBy")
    acknowledged_at: datetime = Field(..., alias="acknowledgedAt")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def build_alert_id(inventory_item_id: str, alert_type: AlertType) -> str:
    return f"alert-{inventory_item_id}-{ALERT_ID_SUFFIX[alert_type]}"


def parse_alert_id(alert_id: str) -> Optional[tuple]:
    """
    Split an alert id into (inventory_item_id, alert_type).
    Returns None if the id was not produced by build_alert_id.
    """
    if not alert_id.startswith("alert-"):
        return None
    body = alert_id[len("alert-"):]
    for alert_type, suffix in ALERT_ID_SUFFIX.items():
        tail = f"-{suffix}"
        if body.endswith(tail) and len(body) > len(tail):
            return body[: -len(tail)], alert_type
    return None
