from azure.core import MatchConditions
from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.cosmos.aio import ContainerProxy
import uuid
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from pydantic import ValidationError

from stock_ledger_api.models.inventory_item import (
    InventoryFilters,
    InventoryItemCreate,
    InventoryItemRead,
)
from stock_ledger_api.models.stock_update import StockMutationResult, StockOperation

from stock_ledger_api.exceptions import (
    DatabaseError,
    InsufficientStockError,
    ItemNotFoundError,
    PreconditionFailedError,
    TransientStoreError,
    ValidationFailedError,
)

from stock_ledger_api.logging_config import get_child_logger, tracer

logger = get_child_logger("crud.inventory")

# Throttling, timeouts, write conflicts and unavailability
TRANSIENT_STATUS_CODES = {408, 429, 449, 503}

# Identity, partition key and stock are never written by an attribute patch
PATCH_PROTECTED_FIELDS = ("id", "locationId", "productId", "currentStock", "_etag")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def translate_cosmos_error(e: Exception, action: str) -> DatabaseError:
    """
    Map an unexpected store exception onto the application error hierarchy.
    """
    if isinstance(e, CosmosHttpResponseError):
        if e.status_code in TRANSIENT_STATUS_CODES:
            logger.warning(
                f"Transient Cosmos DB error during {action}",
                extra={"status_code": e.status_code, "action": action},
            )
            return TransientStoreError(
                f"Temporary store failure during {action}. Try again.",
                original_exception=e,
            )
        logger.error(
            f"Cosmos DB error during {action}",
            extra={"status_code": e.status_code, "cosmos_message": e.message, "action": action},
            exc_info=True,
        )
        return DatabaseError(
            f"Cosmos DB error during {action}: Status Code {e.status_code}, Message: {e.message}",
            original_exception=e,
        )
    logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
    return DatabaseError(
        "An unexpected error occurred during database operation.",
        original_exception=e,
    )


async def create_inventory_item(
    container: ContainerProxy, item: InventoryItemCreate, owner_id: Optional[str] = None
) -> InventoryItemRead:
    """
    Create a new inventory item.

    Args:
        container: Cosmos DB container client
        item: Validated item data
        owner_id: Owning scope; None means unrestricted

    Returns:
        Newly created item with system fields
    """
    with tracer.start_as_current_span("create_inventory_item") as span:
        now = utc_now()
        data = item.model_dump(mode="json", by_alias=True)
        data["id"] = str(uuid.uuid4())
        data["isActive"] = True
        data["ownerId"] = owner_id
        data["createdAt"] = now
        data["updatedAt"] = now
        data["lastRestockedAt"] = now if item.current_stock > 0 else None

        span.set_attribute("inventory_item.id", data["id"])
        span.set_attribute("inventory_item.location_id", data["locationId"])

        logger.info(
            "Creating inventory item",
            extra={"item_id": data["id"], "product_id": data["productId"], "location_id": data["locationId"]},
        )

        try:
            result = await container.create_item(body=data)
            return InventoryItemRead.model_validate(result)
        except Exception as e:
            span.set_attribute("error", True)
            raise translate_cosmos_error(e, "inventory item creation") from e


async def get_inventory_item_by_id(container: ContainerProxy, item_id: str) -> InventoryItemRead:
    """
    Retrieve an item by id alone (cross-partition lookup).

    Raises:
        ItemNotFoundError: If no item has this id
        DatabaseError: If a database operation fails
    """
    with tracer.start_as_current_span("get_inventory_item_by_id") as span:
        span.set_attribute("inventory_item.id", item_id)
        try:
            items = [
                doc
                async for doc in container.query_items(
                    query="SELECT * FROM c WHERE c.id = @id",
                    parameters=[{"name": "@id", "value": item_id}],
                )
            ]
        except Exception as e:
            span.set_attribute("error", True)
            raise translate_cosmos_error(e, "inventory item lookup") from e

        if not items:
            logger.warning("Inventory item not found", extra={"item_id": item_id})
            raise ItemNotFoundError(f"Inventory item with ID '{item_id}' not found")
        return InventoryItemRead.model_validate(items[0])


async def find_inventory_item(
    container: ContainerProxy, product_id: str, location_id: str
) -> Optional[InventoryItemRead]:
    """
    Find the active item holding a product at a location, if any.
    """
    query = (
        "SELECT * FROM c WHERE c.productId = @productId "
        "AND c.locationId = @locationId AND c.isActive = true"
    )
    params = [
        {"name": "@productId", "value": product_id},
        {"name": "@locationId", "value": location_id},
    ]
    try:
        items = [
            doc
            async for doc in container.query_items(
                query=query, parameters=params, partition_key=location_id
            )
        ]
    except Exception as e:
        raise translate_cosmos_error(e, "inventory item search") from e
    return InventoryItemRead.model_validate(items[0]) if items else None


async def list_inventory_items(
    container: ContainerProxy, filters: Optional[InventoryFilters] = None
) -> List[InventoryItemRead]:
    """
    List items matching the given filters. Documents that fail validation
    are skipped and logged.
    """
    filters = filters or InventoryFilters()
    with tracer.start_as_current_span("list_inventory_items") as span:
        clauses = []
        params: List[Dict[str, Any]] = []
        if filters.location_id:
            clauses.append("c.locationId = @locationId")
            params.append({"name": "@locationId", "value": filters.location_id})
        if filters.product_id:
            clauses.append("c.productId = @productId")
            params.append({"name": "@productId", "value": filters.product_id})
        if filters.owner_id:
            clauses.append("c.ownerId = @ownerId")
            params.append({"name": "@ownerId", "value": filters.owner_id})
        if filters.is_active is not None:
            clauses.append("c.isActive = @isActive")
            params.append({"name": "@isActive", "value": filters.is_active})
        if filters.low_stock:
            clauses.append("c.currentStock <= c.minimumStock")

        query = "SELECT * FROM c"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        span.set_attribute("filters.count", len(clauses))

        query_options: Dict[str, Any] = {}
        if filters.location_id:
            # Single-partition query when the location is known
            query_options["partition_key"] = filters.location_id

        try:
            documents = [
                doc
                async for doc in container.query_items(query=query, parameters=params, **query_options)
            ]
        except Exception as e:
            span.set_attribute("error", True)
            raise translate_cosmos_error(e, "inventory listing") from e

        items = []
        for doc in documents:
            try:
                items.append(InventoryItemRead.model_validate(doc))
            except ValidationError as e:
                logger.debug(f"Pydantic validation errors: {e.errors()}")
                continue

        span.set_attribute("inventory_items.count", len(items))
        logger.info(f"Retrieved {len(items)} inventory items", extra={"count": len(items)})
        return items


async def update_inventory_item_fields(
    container: ContainerProxy, item: InventoryItemRead, updates: Dict[str, Any]
) -> InventoryItemRead:
    """
    Patch attribute fields of an item. Keys are stored (camelCase) names.

    A new reservedStock is guarded server-side so it can never exceed the
    stock present at write time.
    """
    patch_operations = [
        {"op": "set", "path": f"/{key}", "value": value}
        for key, value in updates.items()
        if key not in PATCH_PROTECTED_FIELDS
    ]
    patch_operations.append({"op": "set", "path": "/updatedAt", "value": utc_now()})

    filter_predicate = None
    if "reservedStock" in updates:
        filter_predicate = f"FROM c WHERE c.currentStock >= {int(updates['reservedStock'])}"

    try:
        result = await container.patch_item(
            item=item.id,
            partition_key=item.location_id,
            patch_operations=patch_operations,
            filter_predicate=filter_predicate,
        )
        return InventoryItemRead.model_validate(result)
    except CosmosHttpResponseError as e:
        if e.status_code == 404:
            raise ItemNotFoundError(f"Inventory item with ID '{item.id}' not found") from e
        if e.status_code == 412:
            raise ValidationFailedError(
                "reservedStock cannot exceed currentStock",
                field="reservedStock",
                expected="integer <= currentStock",
            ) from e
        raise translate_cosmos_error(e, "inventory item update") from e
    except Exception as e:
        raise translate_cosmos_error(e, "inventory item update") from e


async def _read_document(container: ContainerProxy, item: InventoryItemRead) -> Dict[str, Any]:
    try:
        return await container.read_item(item=item.id, partition_key=item.location_id)
    except CosmosHttpResponseError as e:
        if e.status_code == 404:
            raise ItemNotFoundError(f"Inventory item with ID '{item.id}' not found") from e
        raise translate_cosmos_error(e, "inventory item read") from e


async def _raise_for_failed_predicate(
    container: ContainerProxy, item: InventoryItemRead, operation: StockOperation, quantity: int
) -> None:
    # The conditional patch was rejected; find out which guard failed.
    current = InventoryItemRead.model_validate(await _read_document(container, item))
    if not current.is_active:
        raise ItemNotFoundError(f"Inventory item with ID '{item.id}' is inactive")
    if operation == StockOperation.SUBTRACT and current.available_stock < quantity:
        raise InsufficientStockError(item.id, quantity, current.available_stock)
    # The item changed between the rejected patch and this read.
    raise PreconditionFailedError(
        f"Inventory item '{item.id}' changed concurrently during {operation.value}; nothing was applied"
    )


async def apply_stock_operation(
    container: ContainerProxy,
    item: InventoryItemRead,
    operation: StockOperation,
    quantity: int,
    max_retries: int = 3,
) -> StockMutationResult:
    """
    Atomically change an item's currentStock on the server.

    add/subtract use a single patch with an ``incr`` operation guarded by a
    filter predicate, so concurrent writers can never read the same stale
    count. set uses an etag-guarded patch and retries on conflict.

    Raises:
        ItemNotFoundError: If the item is missing or inactive
        InsufficientStockError: If the change would drop stock below reservedStock
        PreconditionFailedError: If a set kept conflicting after max_retries
        TransientStoreError / DatabaseError: For store failures
    """
    with tracer.start_as_current_span("apply_stock_operation") as span:
        span.set_attribute("inventory_item.id", item.id)
        span.set_attribute("stock.operation", operation.value)
        span.set_attribute("stock.quantity", quantity)

        if operation == StockOperation.SET:
            return await _set_stock(container, item, quantity, max_retries)

        now = utc_now()
        delta = quantity if operation == StockOperation.ADD else -quantity
        patch_operations = [
            {"op": "incr", "path": "/currentStock", "value": delta},
            {"op": "set", "path": "/updatedAt", "value": now},
        ]
        if operation == StockOperation.ADD:
            patch_operations.append({"op": "set", "path": "/lastRestockedAt", "value": now})
            filter_predicate = "FROM c WHERE c.isActive = true"
        else:
            # quantity is a validated int, safe to inline
            filter_predicate = (
                f"FROM c WHERE c.isActive = true AND c.currentStock - c.reservedStock >= {int(quantity)}"
            )

        try:
            result = await container.patch_item(
                item=item.id,
                partition_key=item.location_id,
                patch_operations=patch_operations,
                filter_predicate=filter_predicate,
            )
        except CosmosHttpResponseError as e:
            span.set_attribute("error", True)
            span.set_attribute("error.status_code", e.status_code)
            if e.status_code == 404:
                raise ItemNotFoundError(f"Inventory item with ID '{item.id}' not found") from e
            if e.status_code == 412:
                await _raise_for_failed_predicate(container, item, operation, quantity)
            raise translate_cosmos_error(e, "stock update") from e
        except Exception as e:
            span.set_attribute("error", True)
            raise translate_cosmos_error(e, "stock update") from e

        updated = InventoryItemRead.model_validate(result)
        return StockMutationResult(
            stock_before=updated.current_stock - delta,
            stock_after=updated.current_stock,
            item=updated,
        )


async def _set_stock(
    container: ContainerProxy, item: InventoryItemRead, quantity: int, max_retries: int
) -> StockMutationResult:
    for attempt in range(1, max_retries + 1):
        current = InventoryItemRead.model_validate(await _read_document(container, item))
        if not current.is_active:
            raise ItemNotFoundError(f"Inventory item with ID '{item.id}' is inactive")
        if quantity < current.reserved_stock:
            raise InsufficientStockError(
                item.id,
                quantity,
                current.reserved_stock,
                message=(
                    f"Cannot set stock of item '{item.id}' to {quantity}: "
                    f"{current.reserved_stock} units are reserved"
                ),
            )

        now = utc_now()
        patch_operations = [
            {"op": "set", "path": "/currentStock", "value": quantity},
            {"op": "set", "path": "/updatedAt", "value": now},
        ]
        if quantity > current.current_stock:
            patch_operations.append({"op": "set", "path": "/lastRestockedAt", "value": now})

        try:
            result = await container.patch_item(
                item=item.id,
                partition_key=item.location_id,
                patch_operations=patch_operations,
                etag=current.etag,
                match_condition=MatchConditions.IfNotModified,
            )
        except CosmosHttpResponseError as e:
            if e.status_code == 412:
                logger.info(
                    "Concurrent modification during stock set, retrying",
                    extra={"item_id": item.id, "attempt": attempt},
                )
                continue
            if e.status_code == 404:
                raise ItemNotFoundError(f"Inventory item with ID '{item.id}' not found") from e
            raise translate_cosmos_error(e, "stock set") from e
        except Exception as e:
            raise translate_cosmos_error(e, "stock set") from e

        updated = InventoryItemRead.model_validate(result)
        return StockMutationResult(
            stock_before=current.current_stock,
            stock_after=updated.current_stock,
            item=updated,
        )

    raise PreconditionFailedError(
        f"Inventory item with ID '{item.id}' kept changing during stock set "
        f"({max_retries} attempts). Try again."
    )
