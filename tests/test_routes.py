"""Tests for the HTTP API."""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from function_app import app
from stock_ledger_api.exceptions import DatabaseError, TransientStoreError
from stock_ledger_api.routes.dependencies import get_inventory_service

HEADERS = {"x-functions-key": "local-key", "X-Performed-By": "maria"}


@pytest.fixture
def client(service) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_inventory_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_api_key_required(client) -> None:
    response = client.get("/inventory/")

    assert response.status_code == 401


def test_openapi_schema_requires_function_key(client) -> None:
    assert client.get("/api/openapi.json").status_code == 401

    response = client.get("/api/openapi.json", params={"code": "local-key"})
    assert response.status_code == 200
    assert "/stock/update" in response.json()["paths"]


def test_create_and_fetch_item(client) -> None:
    response = client.post(
        "/inventory/",
        json={"productId": "sweet-corn", "locationId": "north-barn", "currentStock": 24, "minimumStock": 6},
        headers=HEADERS,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["ownerId"] == "maria"
    assert body["availableStock"] == 24
    assert body["stockStatus"] == "normal"

    response = client.get(f"/inventory/{body['id']}", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["productId"] == "sweet-corn"


def test_invalid_item_is_422_with_field(client) -> None:
    response = client.post(
        "/inventory/", json={"productId": "sweet-corn", "locationId": "north-barn", "currentStock": -2}, headers=HEADERS
    )

    assert response.status_code == 422
    assert response.json()["field"] == "currentStock"


def test_unknown_item_is_404(client) -> None:
    response = client.get("/inventory/item-missing", headers=HEADERS)

    assert response.status_code == 404


def test_stock_update(client, tomatoes) -> None:
    response = client.post(
        "/stock/update",
        json={"inventoryItemId": tomatoes.id, "operation": "add", "quantity": 50, "reason": "Harvest"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["currentStock"] == 150

    response = client.get("/movements/", params={"inventoryItemId": tomatoes.id}, headers=HEADERS)
    movements = response.json()
    assert len(movements) == 1
    assert movements[0]["stockBefore"] == 100
    assert movements[0]["stockAfter"] == 150


def test_insufficient_stock_is_409(client, tomatoes) -> None:
    response = client.post(
        "/stock/update",
        json={"inventoryItemId": tomatoes.id, "operation": "subtract", "quantity": 500},
        headers=HEADERS,
    )

    assert response.status_code == 409
    assert response.json()["available"] == 100


def test_stock_update_requires_actor(client, tomatoes) -> None:
    response = client.post(
        "/stock/update",
        json={"inventoryItemId": tomatoes.id, "operation": "add", "quantity": 1},
        headers={"x-functions-key": "local-key"},
    )

    assert response.status_code == 422


def test_other_owner_is_403(client, store) -> None:
    store.add_item(id="item-honey", owner_id="south-field-team", current_stock=3)

    response = client.post(
        "/stock/update", json={"inventoryItemId": "item-honey", "operation": "add", "quantity": 1}, headers=HEADERS
    )

    assert response.status_code == 403


def test_batch_update(client, store) -> None:
    store.add_item(id="A", current_stock=100)
    store.add_item(id="B", current_stock=100)

    response = client.post(
        "/stock/batch",
        json={
            "items": [
                {"inventoryItemId": "A", "operation": "subtract", "quantity": 500},
                {"inventoryItemId": "B", "operation": "add", "quantity": 30},
            ]
        },
        headers=HEADERS,
    )

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["success"] for r in results] == [False, True]
    assert results[1]["data"]["currentStock"] == 130


def test_transfer_without_destination_is_404(client, tomatoes) -> None:
    response = client.post(
        "/stock/transfer",
        json={
            "inventoryItemId": tomatoes.id,
            "fromLocationId": "north-barn",
            "toLocationId": "roadside-stand",
            "quantity": 5,
        },
        headers=HEADERS,
    )

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_transfer(client, tomatoes, tomatoes_at_stand) -> None:
    response = client.post(
        "/stock/transfer",
        json={
            "inventoryItemId": tomatoes.id,
            "fromLocationId": "north-barn",
            "toLocationId": "roadside-stand",
            "quantity": 5,
        },
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["sourceStock"] == 95
    assert response.json()["destinationStock"] == 25


def test_low_stock_and_value(client, store) -> None:
    store.add_item(id="item-low", current_stock=5, minimum_stock=10, unit_cost="2.00")

    low = client.get("/inventory/low-stock", headers=HEADERS).json()
    value = client.get("/inventory/value", headers=HEADERS).json()

    assert [item["id"] for item in low] == ["item-low"]
    assert value["itemCount"] == 1
    assert value["totalUnits"] == 5


def test_patch_and_deactivate(client, tomatoes) -> None:
    response = client.patch(f"/inventory/{tomatoes.id}", json={"reorderPoint": 40}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["reorderPoint"] == 40

    response = client.patch(f"/inventory/{tomatoes.id}", json={}, headers=HEADERS)
    assert response.status_code == 422

    response = client.delete(f"/inventory/{tomatoes.id}", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["isActive"] is False


def test_patch_with_null_is_422_and_item_stays_listed(client, store, tomatoes) -> None:
    response = client.patch(f"/inventory/{tomatoes.id}", json={"minimumStock": None}, headers=HEADERS)

    assert response.status_code == 422
    assert response.json()["field"] == "minimumStock"
    assert store.documents == {}

    listed = client.get("/inventory/", headers={"x-functions-key": "local-key"}).json()
    assert [item["id"] for item in listed] == [tomatoes.id]


def test_alert_acknowledgement(client, store) -> None:
    store.add_item(id="item-out", current_stock=0)

    alerts = client.get("/alerts/", headers={"x-functions-key": "local-key"}).json()
    assert alerts[0]["id"] == "alert-item-out-out-of-stock"

    response = client.post("/alerts/alert-item-out-out-of-stock/acknowledge", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["acknowledgedBy"] == "maria"

    response = client.post("/alerts/alert-item-out-low-stock/acknowledge", headers=HEADERS)
    assert response.status_code == 404


def test_movement_summary(client, tomatoes) -> None:
    client.post(
        "/stock/update", json={"inventoryItemId": tomatoes.id, "operation": "subtract", "quantity": 10}, headers=HEADERS
    )

    summary = client.get(f"/movements/summary/{tomatoes.id}", headers=HEADERS).json()

    assert summary == {"totalIn": 0, "totalOut": 10, "netChange": -10, "movementCount": 1}


@pytest.mark.parametrize(
    "error, status_code",
    [
        (TransientStoreError("throttled"), 503),
        (DatabaseError("boom"), 500),
    ],
)
def test_store_errors_map_to_status(client, store, tomatoes, error, status_code) -> None:
    async def failing_list_items(filters=None):
        raise error

    store.list_items = failing_list_items

    response = client.get("/inventory/", headers=HEADERS)

    assert response.status_code == status_code


def test_audit_failure_is_500(client, store, tomatoes) -> None:
    store.movement_failure = DatabaseError("movements container unavailable")

    response = client.post(
        "/stock/update", json={"inventoryItemId": tomatoes.id, "operation": "add", "quantity": 1}, headers=HEADERS
    )

    assert response.status_code == 500
    assert response.json()["stockAfter"] == 101
