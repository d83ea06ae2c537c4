"""
Integration tests for the HTTP API.

Runs the FastAPI app against the seeded SQLite store from conftest.py.
"""
from unittest.mock import patch

from datagrid.errors import ComparisonUnavailable, StorageError


def ids(response):
    return [record["id"] for record in response.json()["data"]]


def test_ping(client):
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# Items

def test_pagination(client):
    response = client.get("/api/items", params={"limit": 2})
    assert response.status_code == 200
    assert ids(response) == [6, 5]
    assert response.json()["pagination"] == {"page": 1, "limit": 2, "total": 6}

    response = client.get("/api/items", params={"page": 3, "limit": 2})
    assert ids(response) == [2, 1]

    response = client.get("/api/items", params={"page": 4, "limit": 2})
    assert ids(response) == []
    assert response.json()["pagination"]["total"] == 6


def test_pagination_rejects_bad_params(client):
    response = client.get("/api/items", params={"page": 0})
    assert response.status_code == 422
    assert response.json()["code"] == "RequestValidationError"


def test_get_item(client):
    response = client.get("/api/items/4")
    assert response.status_code == 200
    assert response.json()["Brand"] == "BMW"

    response = client.get("/api/items/999")
    assert response.status_code == 404
    assert response.json() == {"error": "Item not found", "code": "ItemNotFound"}


def test_create_item(client, new_vehicle):
    response = client.post("/api/items", json=new_vehicle)
    assert response.status_code == 201
    created = response.json()
    assert created["Brand"] == "Kia"
    assert created["PriceEuro"] == 38105
    assert isinstance(created["id"], int)

    assert client.get(f"/api/items/{created['id']}").json()["Model"] == "e-Niro 64 kWh"
    listing = client.get("/api/items").json()
    assert listing["pagination"]["total"] == 7
    assert listing["data"][0]["id"] == created["id"]


def test_create_item_with_explicit_id(client, new_vehicle):
    response = client.post("/api/items", json={**new_vehicle, "id": 42})
    assert response.status_code == 201
    assert response.json()["id"] == 42

    response = client.post("/api/items", json={**new_vehicle, "id": 0})
    assert response.status_code == 201
    assert response.json()["id"] == 0
    assert client.get("/api/items/0").json()["Brand"] == "Kia"


def test_create_item_with_existing_id(client, new_vehicle):
    response = client.post("/api/items", json={**new_vehicle, "id": 4})
    assert response.status_code == 409
    assert response.json() == {"error": "Item 4 already exists", "code": "DuplicateItem"}
    assert client.get("/api/items/4").json()["Brand"] == "BMW"


def test_create_item_validation(client, new_vehicle):
    missing = {k: v for k, v in new_vehicle.items() if k != "Brand"}
    response = client.post("/api/items", json=missing)
    assert response.status_code == 422
    assert response.json()["code"] == "InvalidRecord"
    assert "Brand" in response.json()["error"]

    response = client.post("/api/items", json={**new_vehicle, "Colour": "red"})
    assert response.status_code == 422

    response = client.post("/api/items", json={**new_vehicle, "PriceEuro": "cheap"})
    assert response.status_code == 422

    response = client.post("/api/items", json={**new_vehicle, "Seats": "5"})
    assert response.status_code == 422
    assert "Seats" in response.json()["error"]

    response = client.post("/api/items", json=[new_vehicle])
    assert response.status_code == 422
    assert response.json()["code"] == "InvalidRecord"


def test_update_item(client):
    response = client.put("/api/items/4", json={"PriceEuro": 65000})
    assert response.status_code == 200
    assert response.json()["PriceEuro"] == 65000
    assert response.json()["Brand"] == "BMW"

    response = client.put("/api/items/4", json={})
    assert response.status_code == 200
    assert response.json()["PriceEuro"] == 65000


def test_update_item_errors(client):
    response = client.put("/api/items/999", json={"PriceEuro": 1})
    assert response.status_code == 404
    assert response.json()["code"] == "ItemNotFound"

    response = client.put("/api/items/4", json={"Colour": "red"})
    assert response.status_code == 422
    assert response.json()["code"] == "InvalidRecord"


def test_delete_item(client):
    assert client.delete("/api/items/3").status_code == 204
    assert client.get("/api/items/3").status_code == 404
    # Deleting an id that does not exist is not an error
    assert client.delete("/api/items/3").status_code == 204


def test_bulk_delete(client):
    response = client.request("DELETE", "/api/items", json={"ids": [1, 2]})
    assert response.status_code == 204
    assert ids(client.get("/api/items")) == [6, 5, 4, 3]


def test_bulk_delete_requires_ids(client):
    for body in ({"ids": []}, {}):
        response = client.request("DELETE", "/api/items", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "`ids` must be a non-empty array"

    response = client.request("DELETE", "/api/items")
    assert response.status_code == 400


# Search

def test_search(client):
    assert ids(client.get("/api/search", params={"q": "tesla"})) == [1]
    assert ids(client.get("/api/search", params={"q": "HATCH"})) == [5, 2]
    assert ids(client.get("/api/search", params={"q": "%"})) == []


def test_search_requires_term(client):
    for params in ({"q": "   "}, {}):
        response = client.get("/api/search", params=params)
        assert response.status_code == 400
        assert response.json()["error"] == "Query param `q` is required"


# Filter

def test_filter_scenarios(client):
    response = client.post("/api/filter", json={"column": "Brand", "operator": "contains", "value": "bm"})
    assert response.status_code == 200
    assert ids(response) == [4]

    response = client.post("/api/filter", json={"column": "PriceEuro", "operator": "greater than", "value": 50000})
    assert ids(response) == [4, 3, 1]

    response = client.post("/api/filter", json={"column": "Date", "operator": "is empty"})
    assert ids(response) == [6, 5]


def test_filter_errors(client):
    cases = [
        ({"column": "Ghost", "operator": "eq", "value": "x"}, "InvalidColumn"),
        ({"column": "Brand", "operator": "between", "value": "x"}, "UnsupportedOperator"),
        ({"column": "PriceEuro", "operator": "ends with", "value": "00"}, "UnsupportedOperatorForColumn"),
        ({"column": "PriceEuro", "operator": "gt", "value": "cheap"}, "InvalidValue"),
        ({"column": "PriceEuro", "operator": "starts with", "value": "abc"}, "InvalidValue"),
    ]
    for body, code in cases:
        response = client.post("/api/filter", json=body)
        assert response.status_code == 400, body
        assert response.json()["code"] == code

    response = client.post("/api/filter", json={"column": "Brand"})
    assert response.status_code == 422


def test_filter_is_idempotent(client):
    body = {"column": "PlugType", "operator": "ends with", "value": "ccs"}
    first = client.post("/api/filter", json=body).json()
    second = client.post("/api/filter", json=body).json()
    assert first == second
    assert [record["id"] for record in first["data"]] == [5, 4, 3, 2, 1]


def test_filter_storage_failure(client, store):
    with patch.object(store, "select", side_effect=StorageError("Query execution failed: database is locked")):
        response = client.post("/api/filter", json={"column": "Brand", "operator": "eq", "value": "BMW"})
    assert response.status_code == 500
    assert response.json() == {
        "error": "Query execution failed: database is locked",
        "code": "StorageError",
    }


# Columns

def test_columns(client):
    body = client.get("/api/columns").json()
    assert len(body["columns"]) == 15
    assert body["columns"][0] == {"name": "Brand", "kind": "text", "label": "Brand"}
    kinds = {column["name"]: column["kind"] for column in body["columns"]}
    assert kinds["PriceEuro"] == "numeric"
    assert "starts with" in body["operators"]
    assert len(body["operators"]) == 18


# Compare

def test_compare(client, text_generator):
    response = client.post("/api/compare", json={"ids": [1, 4]})
    assert response.status_code == 200
    body = response.json()
    assert body["comparison"] == text_generator.answer
    assert [record["id"] for record in body["data"]] == [4, 1]
    assert "BMW iX3" in text_generator.prompts[0]


def test_compare_needs_two_vehicles(client):
    for body in ({"ids": [1]}, {"ids": [1, 1]}, {"ids": []}, {}):
        response = client.post("/api/compare", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "Select at least two vehicles to compare"


def test_compare_unknown_vehicle(client):
    response = client.post("/api/compare", json={"ids": [1, 999]})
    assert response.status_code == 404


def test_compare_unavailable(client, app):
    async def no_providers(prompt):
        raise ComparisonUnavailable("No LLM API key found")

    app.state.text_generator = no_providers
    response = client.post("/api/compare", json={"ids": [1, 4]})
    assert response.status_code == 503
    assert response.json() == {"error": "No LLM API key found", "code": "ComparisonUnavailable"}
