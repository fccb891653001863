"""
Ledger tunables read from the environment.

Cosmos DB connection settings live in ``stock_ledger_api.db``.
"""
import os
from typing import Optional

# Items at or above this fraction of maximumStock raise an overstock alert
DEFAULT_OVERSTOCK_RATIO = 0.9


def stock_set_max_retries() -> int:
    """Number of etag-guarded attempts for a 'set' operation before giving up."""
    return int(os.environ.get("STOCK_SET_MAX_RETRIES", "3"))


def alert_overstock_ratio() -> float:
    return float(os.environ.get("ALERT_OVERSTOCK_RATIO", str(DEFAULT_OVERSTOCK_RATIO)))


def batch_max_concurrency() -> int:
    return max(1, int(os.environ.get("BATCH_MAX_CONCURRENCY", "1")))


def batch_timeout_seconds() -> Optional[float]:
    value = os.environ.get("BATCH_TIMEOUT_SECONDS")
    return float(value) if value else None
