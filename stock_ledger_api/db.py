from typing import Optional
from azure.cosmos.aio import CosmosClient, ContainerProxy
from azure.identity.aio import DefaultAzureCredential
import os

from enum import Enum


class ContainerType(str, Enum):
    INVENTORY_ITEMS = "inventory_items"  # partition key: /locationId
    STOCK_MOVEMENTS = "stock_movements"  # partition key: /inventoryItemId
    ALERT_ACKNOWLEDGEMENTS = "alert_acknowledgements"  # partition key: /id


_client: Optional[CosmosClient] = None
_credential: Optional[DefaultAzureCredential] = None

CONTAINER_ENV_VARS = {
    ContainerType.INVENTORY_ITEMS: "COSMOSDB_CONTAINER_INVENTORY",
    ContainerType.STOCK_MOVEMENTS: "COSMOSDB_CONTAINER_MOVEMENTS",
    ContainerType.ALERT_ACKNOWLEDGEMENTS: "COSMOSDB_CONTAINER_ALERTS",
}


async def _ensure_client() -> CosmosClient:
    global _client, _credential
    if _client is None:
        _credential = DefaultAzureCredential()
        _client = CosmosClient(os.environ["COSMOSDB_ENDPOINT"], _credential)
    return _client


async def get_container(container_type: ContainerType) -> ContainerProxy:
    env_var = CONTAINER_ENV_VARS.get(container_type)
    if not env_var:
        raise ValueError(
            f"Container '{container_type}' not configured. "
            f"Valid options: {[c.value for c in CONTAINER_ENV_VARS]}"
        )
    container_name = os.environ.get(env_var, container_type.value)

    client = await _ensure_client()
    database = client.get_database_client(os.environ["COSMOSDB_DATABASE"])
    return database.get_container_client(container_name)

