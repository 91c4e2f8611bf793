"""Integration tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from conftest import METADATA_DIR
from metadoc.auth import JWTService

SECRET = "test-secret"


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Test client over a fresh SQLite database and the repo's DocTypes."""
    # Integration tests always use a per-test SQLite DB regardless of the
    # DATABASE_URL that may be set in the environment for PG live testing.
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("METADOC_SUPER_ROLES", raising=False)
    monkeypatch.setenv("METADOC_DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.setenv("METADOC_METADATA_PATH", str(METADATA_DIR))
    monkeypatch.setenv("METADOC_SECRET_KEY", SECRET)

    # Import app after setting env vars
    from metadoc.api.app import app, hook_registry

    with TestClient(app) as client:
        yield client
    hook_registry.clear()


def auth(user_id="u1", tenant_id="tenant-a", roles=("Sales User",)):
    token = JWTService(SECRET).generate_access_token(user_id, tenant_id, list(roles))
    return {"Authorization": f"Bearer {token}"}


def create_customer(client, name="ACME", headers=None):
    response = client.post(
        "/api/v1/Customer",
        json={"data": {"name": name, "customer_name": name.title()}},
        headers=headers or auth(),
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/api/v1/meta")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        response = client.get("/api/v1/meta", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    def test_token_signed_with_other_secret(self, client):
        token = JWTService("other-secret").generate_access_token("u1", "tenant-a", ["admin"])
        response = client.get("/api/v1/Customer", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_without_tenant(self, client):
        response = client.get("/api/v1/Customer", headers=auth(tenant_id=None))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_TENANT"


class TestMeta:
    def test_list_synced_doc_types(self, client):
        response = client.get("/api/v1/meta", headers=auth())
        assert response.status_code == 200
        by_name = {d["name"]: d for d in response.json()["data"]}
        assert set(by_name) == {"Customer", "Invoice", "Order", "Order Line"}
        assert by_name["Order Line"]["isChild"] is True
        assert "customer_name" in [f["name"] for f in by_name["Customer"]["fields"]]

    def test_get_definition(self, client):
        response = client.get("/api/v1/meta/Invoice", headers=auth())
        assert response.status_code == 200
        data = response.json()["data"]
        assert [f["name"] for f in data["fields"]] == ["customer", "amount", "status", "due_date"]
        assert {p["role"] for p in data["permissions"]} == {"Accounts User", "Accounts Manager"}

    def test_get_child_definition(self, client):
        response = client.get("/api/v1/meta/Order%20Line", headers=auth())
        assert response.status_code == 200
        assert response.json()["data"]["isChild"] is True

    def test_get_unknown(self, client):
        response = client.get("/api/v1/meta/Nope", headers=auth())
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_post_requires_super_role(self, client):
        response = client.post(
            "/api/v1/meta",
            json={"data": {"name": "Project", "fields": [{"name": "title", "type": "Data"}]}},
            headers=auth(),
        )
        assert response.status_code == 403

    def test_post_syncs_doc_type(self, client):
        admin = auth(roles=["System Manager"])
        response = client.post(
            "/api/v1/meta",
            json={
                "data": {
                    "name": "Project",
                    "fields": [{"name": "title", "type": "Data", "required": True}],
                    "permissions": [{"role": "Sales User", "create": True}],
                }
            },
            headers=admin,
        )
        assert response.status_code == 201
        assert response.json()["data"]["fields"][0]["name"] == "title"

        created = client.post("/api/v1/Project", json={"data": {"title": "Launch"}}, headers=auth())
        assert created.status_code == 201
        assert created.json()["data"]["title"] == "Launch"

    def test_post_invalid_definition(self, client):
        admin = auth(roles=["admin"])
        response = client.post(
            "/api/v1/meta",
            json={"data": {"name": "Project", "fields": [{"name": "title", "type": "Money"}]}},
            headers=admin,
        )
        assert response.status_code == 422
        assert response.json()["error"]["errors"][0]["code"] == "INVALID_DEFINITION"

    def test_post_malformed_field_options(self, client):
        response = client.post(
            "/api/v1/meta",
            json={
                "data": {
                    "name": "Thing",
                    "fields": [{"name": "s", "type": "Select", "options": ["A", "B"]}],
                }
            },
            headers=auth(roles=["admin"]),
        )
        assert response.status_code == 422
        errors = response.json()["error"]["errors"]
        assert [(e["code"], e["field"]) for e in errors] == [("INVALID_DEFINITION", "fields[0]/options")]
        assert client.get("/api/v1/meta/Thing", headers=auth()).status_code == 404

    def test_post_non_object_field(self, client):
        response = client.post(
            "/api/v1/meta",
            json={"data": {"name": "Thing", "fields": ["title"]}},
            headers=auth(roles=["admin"]),
        )
        assert response.status_code == 422

    def test_post_fetched_definition_back(self, client):
        admin = auth(roles=["admin"])
        definition = client.get("/api/v1/meta/Invoice", headers=admin).json()["data"]
        response = client.post("/api/v1/meta", json={"data": definition}, headers=admin)
        assert response.status_code == 201

    def test_post_unsafe_name(self, client):
        response = client.post(
            "/api/v1/meta",
            json={"data": {"name": "Project; DROP TABLE x"}},
            headers=auth(roles=["admin"]),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_IDENTIFIER"


class TestDocuments:
    def test_crud(self, client):
        customer = create_customer(client)
        assert customer["name"] == "ACME"
        assert customer["docstatus"] == 0
        assert customer["owner"] == "u1"

        listed = client.get("/api/v1/Customer", headers=auth()).json()["data"]
        assert [c["name"] for c in listed] == ["ACME"]

        fetched = client.get("/api/v1/Customer/ACME", headers=auth())
        assert fetched.status_code == 200
        assert fetched.json()["data"]["customer_name"] == "Acme"

        updated = client.put(
            "/api/v1/Customer/ACME", json={"data": {"is_active": True}}, headers=auth()
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["is_active"] is True

    def test_delete_needs_grant(self, client):
        create_customer(client)
        response = client.delete("/api/v1/Customer/ACME", headers=auth())
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"

        response = client.delete("/api/v1/Customer/ACME", headers=auth(roles=["admin"]))
        assert response.status_code == 200
        assert response.json()["data"] == {"status": "deleted", "name": "ACME"}
        assert client.get("/api/v1/Customer/ACME", headers=auth()).status_code == 404

    def test_unknown_field(self, client):
        response = client.post(
            "/api/v1/Customer",
            json={"data": {"customer_name": "Acme", "hacked": "x"}},
            headers=auth(),
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_FAILED"
        assert error["errors"] == [
            {"message": "Unknown field: hacked", "code": "UNKNOWN_FIELD", "field": "hacked"}
        ]

    def test_link_mismatch(self, client):
        response = client.post(
            "/api/v1/Order",
            json={"data": {"customer": "Nobody"}},
            headers=auth(),
        )
        assert response.status_code == 422
        assert response.json()["error"]["errors"][0]["code"] == "LINK_MISMATCH"

    def test_order_workflow(self, client):
        create_customer(client)
        response = client.post(
            "/api/v1/Order",
            json={
                "data": {
                    "name": "SO-1",
                    "customer": "ACME",
                    "lines": [{"sku": "A", "qty": 1}, {"sku": "B", "qty": 2}],
                }
            },
            headers=auth(),
        )
        assert response.status_code == 201
        assert [line["idx"] for line in response.json()["data"]["lines"]] == [0, 1]

        submitted = client.put("/api/v1/Order/SO-1/submit", headers=auth())
        assert submitted.status_code == 200
        assert submitted.json()["data"]["docstatus"] == 1

        edit = client.put("/api/v1/Order/SO-1", json={"data": {"lines": []}}, headers=auth())
        assert edit.status_code == 400
        assert edit.json()["error"]["code"] == "DOCUMENT_SUBMITTED"

        # Sales User may submit but not cancel
        assert client.put("/api/v1/Order/SO-1/cancel", headers=auth()).status_code == 403

        cancelled = client.put(
            "/api/v1/Order/SO-1/cancel", headers=auth(roles=["Sales Manager"])
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["docstatus"] == 2
        assert len(cancelled.json()["data"]["lines"]) == 2

    def test_submit_twice(self, client):
        create_customer(client)
        client.post("/api/v1/Order", json={"data": {"name": "SO-1", "customer": "ACME"}}, headers=auth())
        client.put("/api/v1/Order/SO-1/submit", headers=auth())
        response = client.put("/api/v1/Order/SO-1/submit", headers=auth())
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ALREADY_SUBMITTED"

    def test_tenant_isolation(self, client):
        create_customer(client)
        other = auth(tenant_id="tenant-b")
        assert client.get("/api/v1/Customer/ACME", headers=other).status_code == 404
        assert client.get("/api/v1/Customer", headers=other).json()["data"] == []

    def test_unknown_doc_type(self, client):
        response = client.get("/api/v1/Nope", headers=auth(roles=["admin"]))
        assert response.status_code == 404

    def test_registered_hook_runs(self, client):
        from metadoc.api.app import hook_registry

        hook_registry.register(
            "Customer", {"beforeSave": lambda doc, user: {**doc, "is_active": True}}
        )
        assert create_customer(client)["is_active"] is True
