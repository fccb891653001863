from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from stock_ledger_api.exceptions import ValidationFailedError
from stock_ledger_api.logging_config import get_child_logger
from stock_ledger_api.monitoring import Monitor

logger = get_child_logger("services.validation")

ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationGateway:
    """
    Single entry point for schema validation at every boundary.

    Nothing downstream of ``validate`` sees unvalidated input, so a failure
    here guarantees no side effect has happened yet.
    """

    def __init__(self, monitor: Monitor):
        self.monitor = monitor

    def validate(self, schema: Type[ModelT], raw: Any, context: str) -> ModelT:
        if isinstance(raw, BaseModel):
            raw = raw.model_dump(by_alias=True, exclude_unset=True)
        try:
            return schema.model_validate(raw)
        except ValidationError as e:
            errors = e.errors(include_url=False)
            first = errors[0] if errors else {}
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            expected = first.get("msg")
            failure = ValidationFailedError(
                f"Invalid {schema.__name__}: {field or 'input'}: {expected}",
                field=field,
                expected=expected,
                errors=errors,
            )
            logger.debug(f"Pydantic validation errors: {errors}")
            self.monitor.record_validation_error(context, failure)
            raise failure from e
