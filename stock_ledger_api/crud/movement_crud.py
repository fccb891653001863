from azure.cosmos.aio import ContainerProxy
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from stock_ledger_api.crud.inventory_crud import translate_cosmos_error, utc_now
from stock_ledger_api.models.stock_movement import (
    MovementFilters,
    StockMovementCreate,
    StockMovementRead,
)
from stock_ledger_api.logging_config import get_child_logger, tracer

logger = get_child_logger("crud.movement")


async def insert_movement(container: ContainerProxy, movement: StockMovementCreate) -> StockMovementRead:
    """
    Append a movement record. There is no update or delete counterpart.
    """
    with tracer.start_as_current_span("insert_movement") as span:
        data = movement.model_dump(mode="json", by_alias=True)
        data["id"] = str(uuid.uuid4())
        data["createdAt"] = utc_now()

        span.set_attribute("movement.id", data["id"])
        span.set_attribute("movement.type", data["movementType"])
        span.set_attribute("inventory_item.id", data["inventoryItemId"])

        try:
            result = await container.create_item(body=data)
        except Exception as e:
            span.set_attribute("error", True)
            raise translate_cosmos_error(e, "movement insert") from e
        return StockMovementRead.model_validate(result)


async def list_movements(
    container: ContainerProxy, filters: Optional[MovementFilters] = None
) -> List[StockMovementRead]:
    """
    Movements matching the filters, newest first.
    """
    filters = filters or MovementFilters()
    clauses = []
    params: List[Dict[str, Any]] = []
    query_options: Dict[str, Any] = {}

    if filters.inventory_item_id:
        clauses.append("c.inventoryItemId = @itemId")
        params.append({"name": "@itemId", "value": filters.inventory_item_id})
        query_options["partition_key"] = filters.inventory_item_id
    if filters.movement_type:
        clauses.append("c.movementType = @movementType")
        params.append({"name": "@movementType", "value": filters.movement_type.value})
    if filters.performed_by:
        clauses.append("c.performedBy = @performedBy")
        params.append({"name": "@performedBy", "value": filters.performed_by})
    if filters.start:
        clauses.append("c.createdAt >= @start")
        params.append({"name": "@start", "value": filters.start.isoformat()})
    if filters.end:
        clauses.append("c.createdAt <= @end")
        params.append({"name": "@end", "value": filters.end.isoformat()})

    query = "SELECT * FROM c"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY c.createdAt DESC"
    if filters.limit:
        query += " OFFSET 0 LIMIT @limit"
        params.append({"name": "@limit", "value": filters.limit})

    try:
        documents = [
            doc async for doc in container.query_items(query=query, parameters=params, **query_options)
        ]
    except Exception as e:
        raise translate_cosmos_error(e, "movement listing") from e

    movements = []
    for doc in documents:
        try:
            movements.append(StockMovementRead.model_validate(doc))
        except ValidationError as e:
            logger.debug(f"Pydantic validation errors: {e.errors()}")
            continue
    return movements
