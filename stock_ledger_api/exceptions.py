from typing import Any, Dict, List, Optional


class ApplicationError(Exception):
    """Base class for application-specific errors."""
    pass


class ValidationFailedError(ApplicationError):
    """Raised when input does not match its declared schema."""
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.expected = expected
        self.errors = errors or []


class ItemNotFoundError(ApplicationError):
    """Raised when an inventory item is not found or is inactive."""
    pass


class InsufficientStockError(ApplicationError):
    """Raised when a stock operation would take stock below what is available."""
    def __init__(self, item_id: str, requested: int, available: int, message: Optional[str] = None):
        super().__init__(
            message
            or f"Insufficient stock for item '{item_id}': requested {requested}, available {available}"
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class UnauthorizedError(ApplicationError):
    """Raised when the acting user does not own the item's scope."""
    pass


class DatabaseError(ApplicationError):
    """Raised for general database-related errors not specifically handled."""
    def __init__(self, message="A database error occurred.", original_exception=None):
        super().__init__(message)
        self.original_exception = original_exception


class TransientStoreError(DatabaseError):
    """Raised for throttling, timeouts and unavailability. Safe to retry."""
    pass


class PreconditionFailedError(DatabaseError):
    """Raised when an etag-guarded write keeps losing to concurrent writers."""
    pass


class AuditWriteFailedError(ApplicationError):
    """
    Raised when the stock mutation committed but its movement record could not
    be written. The item is left in its new state and needs reconciliation.
    """
    def __init__(self, message: str, item=None, stock_before=None, stock_after=None, original_exception=None):
        super().__init__(message)
        self.item = item
        self.stock_before = stock_before
        self.stock_after = stock_after
        self.original_exception = original_exception


class TransferPartialFailureError(ApplicationError):
    """Raised when a transfer failed after its debit committed."""
    def __init__(self, message: str, failed_step: str, rollback_succeeded: bool):
        super().__init__(message)
        self.failed_step = failed_step
        self.rollback_succeeded = rollback_succeeded
