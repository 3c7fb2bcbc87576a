from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from auth import security
from catalog import router as catalog_router
from catalog.service import CatalogService
from main import app
from tests.support import OTHER_OWNER, OWNER, InMemoryCatalogStorage, fake_item, fake_variation


@pytest.fixture
def client(storage: InMemoryCatalogStorage):
    # No context manager: the lifespan (and its DB pool) never starts.
    app.dependency_overrides[catalog_router.get_catalog_service] = lambda: CatalogService(storage)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(owner: str = OWNER) -> dict[str, str]:
    return {"Authorization": f"Bearer {security.build_access_token(owner=owner)}"}


def _create(client: TestClient, body: dict, owner: str = OWNER) -> dict:
    response = client.post("/catalog", json=body, headers=_auth(owner))
    assert response.status_code == 200, response.text
    return response.json()


def test_requires_bearer_token(client: TestClient) -> None:
    assert client.get("/catalog").status_code == 401
    assert client.get("/catalog", headers={"Authorization": "Basic abc"}).status_code == 401
    assert client.get("/catalog", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_expired_token_is_rejected(client: TestClient) -> None:
    token = security.build_access_token(owner=OWNER, expires_in_s=-60)

    response = client.get("/catalog", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_create_returns_flat_document(client: TestClient) -> None:
    body = fake_item(name="Stool").model_dump(mode="json")

    document = _create(client, body)

    assert set(document) == {"id", "owner", "created_at", "updated_at", "type", "data"}
    assert document["type"] == "Item"
    assert document["owner"] == OWNER
    assert document["data"]["name"] == "Stool"


def test_read_and_update_round_trip(client: TestClient) -> None:
    created = _create(client, fake_item(name="Before").model_dump(mode="json"))

    read = client.get(f"/catalog/{created['id']}", headers=_auth())
    assert read.json() == created

    body = fake_item(name="After").model_dump(mode="json")
    updated = client.put(f"/catalog/{created['id']}", json=body, headers=_auth())
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "After"


def test_not_found_maps_to_error_body(client: TestClient) -> None:
    missing = uuid4()

    response = client.get(f"/catalog/{missing}", headers=_auth())

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": "E_NOT_FOUND",
        "error_message": f"Catalog entry {missing} not found.",
    }


def test_other_owner_cannot_read(client: TestClient) -> None:
    created = _create(client, fake_item().model_dump(mode="json"))

    assert client.get(f"/catalog/{created['id']}", headers=_auth(OTHER_OWNER)).status_code == 404


def test_missing_parent_is_bad_request(client: TestClient) -> None:
    body = fake_variation(uuid4()).model_dump(mode="json")

    response = client.post("/catalog", json=body, headers=_auth())

    assert response.status_code == 400
    assert response.json()["error"] == "E_BAD_REQUEST"


def test_unknown_type_is_a_validation_error(client: TestClient) -> None:
    response = client.post("/catalog", json={"type": "Gadget", "data": {}}, headers=_auth())

    assert response.status_code == 422


def test_list_with_query_string(client: TestClient) -> None:
    lamp = _create(client, fake_item(name="Lamp", tags=["home", "light"]).model_dump(mode="json"))
    _create(client, fake_item(name="Rug", tags=["home"]).model_dump(mode="json"))

    response = client.get("/catalog", params={"tags": "home,light"}, headers=_auth())
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["documents"][0]["id"] == lamp["id"]

    everything = client.get(
        "/catalog",
        params={"order_by_field": "CreatedAt", "order_by_direction": "Desc", "limit": 1},
        headers=_auth(),
    )
    assert [doc["data"]["name"] for doc in everything.json()["documents"]] == ["Rug"]


def test_bulk_create(client: TestClient) -> None:
    item = fake_item(name="Table").model_dump(mode="json")
    variation = fake_variation("table", ref_type=str).model_dump(mode="json")
    body = [{"id": "v", **variation}, {"id": "table", **item}]

    response = client.post("/catalog/_bulk", json=body, headers=_auth())

    assert response.status_code == 200, response.text
    documents = response.json()["documents"]
    assert response.json()["count"] == 2
    assert [doc["type"] for doc in documents] == ["Item", "Variation"]
    assert documents[1]["data"]["item_id"] == documents[0]["id"]


def test_bulk_unknown_alias(client: TestClient) -> None:
    variation = fake_variation("ghost", ref_type=str).model_dump(mode="json")

    response = client.post("/catalog/_bulk", json=[variation], headers=_auth())

    assert response.status_code == 400
    assert response.json()["error"] == "E_BULK_ACTION"


def test_command_adjusts_units(client: TestClient) -> None:
    item = _create(client, fake_item().model_dump(mode="json"))
    variation = _create(client, fake_variation(item["id"], available_units=3).model_dump(mode="json"))
    command = {"type": "IncreaseItemVariationUnits", "data": {"id": variation["id"], "units": 4}}

    response = client.post("/catalog/cmd", json=command, headers=_auth())

    assert response.status_code == 200
    assert response.json() == {"success": True}
    read = client.get(f"/catalog/{variation['id']}", headers=_auth())
    assert read.json()["data"]["available_units"] == 7


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
