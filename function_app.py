from typing import Optional

import azure.functions as func
from fastapi import FastAPI, HTTPException, Request, Security, status
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import APIKeyHeader, APIKeyQuery

from stock_ledger_api.exceptions import (
    AuditWriteFailedError,
    DatabaseError,
    InsufficientStockError,
    ItemNotFoundError,
    PreconditionFailedError,
    TransientStoreError,
    UnauthorizedError,
    ValidationFailedError,
)
from stock_ledger_api.logging_config import logger, tracer
from stock_ledger_api.routes.alert_route import router as alert_router
from stock_ledger_api.routes.inventory_route import router as inventory_router
from stock_ledger_api.routes.movement_route import router as movement_router
from stock_ledger_api.routes.stock_route import router as stock_router

FUNCTION_KEY_HEADER = "x-functions-key"
FUNCTION_KEY_QUERY = "code"

function_key_header = APIKeyHeader(
    name=FUNCTION_KEY_HEADER, auto_error=False, scheme_name="FunctionKeyHeader"
)
function_key_query = APIKeyQuery(
    name=FUNCTION_KEY_QUERY, auto_error=False, scheme_name="FunctionKeyQuery"
)


def _expected_function_key(request: Request) -> Optional[str]:
    """The host's function key, or None when running outside Azure Functions."""
    function_directory = getattr(getattr(request, "function_context", None), "function_directory", None)
    if function_directory is None:
        return None
    return function_directory.get_function_key()


def _check_function_key(request: Request, presented: Optional[str]) -> None:
    expected = _expected_function_key(request)
    if expected is None:
        # Local host: any key is accepted, but one must be sent.
        if not presented:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Function key required.")
    elif presented != expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid function key.")


async def require_function_key(
    request: Request,
    header_key: Optional[str] = Security(function_key_header),
    query_key: Optional[str] = Security(function_key_query),
) -> str:
    presented = header_key or query_key
    _check_function_key(request, presented)
    return presented


app = FastAPI(
    title="Farm Stand Stock Ledger API",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url=None,
    redoc_url=None,
    dependencies=[Security(require_function_key)],
)


@app.get("/docs", include_in_schema=False)
async def swagger_ui() -> HTMLResponse:
    # The schema is inlined so the page needs no second keyed request.
    return get_swagger_ui_html(
        openapi_url="",
        title=f"{app.title} - Swagger UI",
        swagger_ui_parameters={"spec": app.openapi()},
    )


@app.middleware("http")
async def protect_openapi_schema(request: Request, call_next):
    """The schema route sits outside the router dependencies, so guard it here."""
    if request.url.path == app.openapi_url:
        presented = request.headers.get(FUNCTION_KEY_HEADER) or request.query_params.get(FUNCTION_KEY_QUERY)
        try:
            _check_function_key(request, presented)
        except HTTPException as e:
            return JSONResponse(status_code=e.status_code, content={"detail": e.detail})
    return await call_next(request)


@app.exception_handler(ValidationFailedError)
async def handle_validation_failed(_: Request, exc: ValidationFailedError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "field": exc.field, "expected": exc.expected},
    )


@app.exception_handler(ItemNotFoundError)
async def handle_item_not_found(_: Request, exc: ItemNotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InsufficientStockError)
async def handle_insufficient_stock(_: Request, exc: InsufficientStockError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "inventoryItemId": exc.item_id,
            "requested": exc.requested,
            "available": exc.available,
        },
    )


@app.exception_handler(UnauthorizedError)
async def handle_unauthorized(_: Request, exc: UnauthorizedError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(AuditWriteFailedError)
async def handle_audit_write_failed(request: Request, exc: AuditWriteFailedError):
    with tracer.start_as_current_span("handle_audit_write_failed") as span:
        span.set_attribute("error", True)
        span.set_attribute("error.type", "audit_write_failed")
        logger.critical(
            "Stock changed without audit record",
            extra={"path": request.url.path, "stock_before": exc.stock_before, "stock_after": exc.stock_after},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Stock was updated but the audit record could not be written. "
                          "The change needs reconciliation.",
                "stockAfter": exc.stock_after,
            },
        )


@app.exception_handler(DatabaseError)
async def handle_database_error(request: Request, exc: DatabaseError):
    with tracer.start_as_current_span("handle_database_error") as span:
        span.set_attribute("error", True)
        span.set_attribute("error.type", type(exc).__name__)

        if isinstance(exc, TransientStoreError):
            logger.warning("Transient store error", extra={"path": request.url.path})
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"detail": "The service is temporarily unavailable. Try again."},
            )
        if isinstance(exc, PreconditionFailedError):
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={"detail": str(exc)},
            )

        logger.error(
            "Database error",
            extra={"path": request.url.path, "error": str(exc)},
            exc_info=exc.original_exception,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "A database error occurred."},
        )


@app.exception_handler(ValueError)
async def handle_value_error(_: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


app.include_router(inventory_router)
app.include_router(stock_router)
app.include_router(alert_router)
app.include_router(movement_router)

function_app = func.FunctionApp()


@function_app.route(route="{*route}", auth_level=func.AuthLevel.FUNCTION)
async def main(req: func.HttpRequest) -> func.HttpResponse:
    """Azure Functions entry-point routed through FastAPI."""
    with tracer.start_as_current_span("process_request") as span:
        span.set_attribute("http.method", req.method)
        span.set_attribute("http.url", str(req.url))
        span.set_attribute("http.route", req.route_params.get('route', ''))

        logger.info(
            f"Processing {req.method} request",
            extra={
                "method": req.method,
                "path": str(req.url),
                "query_params": dict(req.params),
                "route": req.route_params.get('route', '')
            }
        )

        try:
            response = await func.AsgiMiddleware(app).handle_async(req)
            span.set_attribute("http.status_code", response.status_code)
            return response
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))

            logger.error(
                f"Error processing request: {str(e)}",
                extra={"error_type": type(e).__name__}
            )
            return func.HttpResponse(
                body=str(e),
                status_code=500
            )
