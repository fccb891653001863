import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from opentelemetry import metrics
from pydantic import BaseModel, ConfigDict, Field

from stock_ledger_api.logging_config import get_child_logger

logger = get_child_logger("monitoring")

meter = metrics.get_meter("stock_ledger_api")


class WorkflowError(BaseModel):
    """
    Business-relevant failure shared with other workflows (marketing, executive).
    """
    workflow: str
    operation: str
    error_type: str = Field(..., alias="errorType")  # business | network | validation | consistency
    severity: str  # low | medium | high | critical
    message: str
    code: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    related_workflows: List[str] = Field(default_factory=list, alias="relatedWorkflows")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True)


class Monitor(Protocol):
    def record_pattern_success(self, name: str) -> None: ...

    def record_validation_error(self, context: str, error: Any) -> None: ...

    def record_calculation_mismatch(
        self, operation: str, expected: Any, actual: Any, context: Optional[Dict[str, Any]] = None
    ) -> None: ...


class ErrorNotifier(Protocol):
    async def handle_error(self, error: WorkflowError) -> None: ...


class TelemetryMonitor:
    """
    Monitor backed by OpenTelemetry counters and the package logger.
    Telemetry must never break the operation it observes, so every method
    logs and returns on internal failure.
    """

    def __init__(self):
        self._successes = meter.create_counter(
            "ledger.pattern.success", description="Operations that completed successfully"
        )
        self._errors = meter.create_counter(
            "ledger.validation.error", description="Validation and operation failures"
        )
        self._mismatches = meter.create_counter(
            "ledger.calculation.mismatch", description="Stock reported by a mutation differs from re-read state"
        )

    def record_pattern_success(self, name: str) -> None:
        try:
            self._successes.add(1, {"pattern": name})
            logger.debug("Pattern success", extra={"pattern": name})
        except Exception as e:
            logger.warning(f"Failed to record pattern success: {e}")

    def record_validation_error(self, context: str, error: Any) -> None:
        try:
            error_type = type(error).__name__
            self._errors.add(1, {"context": context, "error_type": error_type})
            logger.info(
                "Validation error recorded",
                extra={"context": context, "error_type": error_type, "error_message": str(error)},
            )
        except Exception as e:
            logger.warning(f"Failed to record validation error: {e}")

    def record_calculation_mismatch(
        self, operation: str, expected: Any, actual: Any, context: Optional[Dict[str, Any]] = None
    ) -> None:
        try:
            self._mismatches.add(1, {"operation": operation})
            logger.warning(
                "Calculation mismatch",
                extra={"operation": operation, "expected": expected, "actual": actual, **(context or {})},
            )
        except Exception as e:
            logger.warning(f"Failed to record calculation mismatch: {e}")


class LoggingErrorNotifier:
    """
    Default cross-workflow notifier: writes the error to the log so that
    downstream consumers can pick it up from Application Insights.
    """

    async def handle_error(self, error: WorkflowError) -> None:
        level = {
            "critical": logging.CRITICAL,
            "high": logging.ERROR,
            "medium": logging.WARNING,
        }.get(error.severity, logging.INFO)
        logger.log(
            level,
            f"[{error.workflow}.{error.operation}] {error.message}",
            extra={
                "workflow": error.workflow,
                "operation": error.operation,
                "error_type": error.error_type,
                "severity": error.severity,
                "code": error.code,
                "related_workflows": error.related_workflows,
            },
        )
