"""
Integration tests for the Control Tower HTTP API.

The engine dependency is overridden with an engine bound to a fresh in-memory
store per test, so every test starts from an empty fact and RCA store.

Endpoints tested:
- System: health
- Dashboard: snapshot + alerts
- Facts: batch ingestion
- RCA: create, list, get, status update
- Exports: cadence window
"""

import pytest
from fastapi.testclient import TestClient

from controltower.dependencies import get_engine
from controltower.engine.service import ControlTowerEngine
from controltower.errors import StorageError
from controltower.main import app
from controltower.storage.memory_storage import InMemoryStorage
from tests.conftest import FIXED_NOW, make_fact, make_rca_payload

TENANT_A = {"X-Tenant-ID": "clinic-a", "X-Plan-Tier": "essencial"}
TENANT_B = {"X-Tenant-ID": "clinic-b", "X-Plan-Tier": "pro"}
AT = {"at": FIXED_NOW.isoformat()}


class FailingStorage(InMemoryStorage):
    """Store whose fact reads always fail."""

    def read_facts(self, tenant_id):
        raise StorageError("fact store unreachable")


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def _rca_body(**overrides) -> dict:
    return make_rca_payload(due_date="2025-03-31", **overrides)


# ============================================================================
# System Endpoints
# ============================================================================


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_missing_tenant_header_is_unauthorized(self, client):
        response = client.get("/api/v1/rca")
        assert response.status_code == 401


# ============================================================================
# Facts + Dashboard Endpoints
# ============================================================================


class TestDashboard:
    def test_ingest_batch(self, client):
        facts = [make_fact().model_dump(mode="json") for _ in range(3)]
        response = client.post(
            "/api/v1/facts/batches",
            json={"source_name": "agenda-march.xlsx", "facts": facts},
            headers=TENANT_A,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["inserted_rows"] == 3
        assert data["source_name"] == "agenda-march.xlsx"

    def test_ingest_empty_batch_rejected(self, client):
        response = client.post(
            "/api/v1/facts/batches",
            json={"source_name": "empty.xlsx", "facts": []},
            headers=TENANT_A,
        )
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error_type"] == "ValidationError"

    def test_ingest_invalid_fact_reports_index(self, client):
        facts = [make_fact().model_dump(mode="json"), {"channel": "meta"}]
        response = client.post(
            "/api/v1/facts/batches",
            json={"source_name": "broken.csv", "facts": facts},
            headers=TENANT_A,
        )
        assert response.status_code == 422
        assert response.json()["details"]["index"] == 1

    def test_snapshot_with_alerts(self, client, engine, tenant_a, no_show_heavy_facts):
        engine.ingest_facts(tenant_a, no_show_heavy_facts, "seed")

        response = client.post(
            "/api/v1/dashboard/snapshot", json={"period": "30d"}, params=AT, headers=TENANT_A
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["fact_count"] == 100
        assert data["snapshot"]["no_show_rate"] == pytest.approx(20.0)
        assert data["snapshot"]["net_margin"] == pytest.approx(60.0)
        assert [a["severity"] for a in data["alerts"]] == ["P2"]
        assert data["alerts"][0]["context"]["plan_tier"] == "essential"
        assert data["alerts"][0]["context"]["tier_priorities"]["no_show_rate"] == "P1"

    def test_snapshot_other_tenant_sees_nothing(self, client, engine, tenant_a, no_show_heavy_facts):
        engine.ingest_facts(tenant_a, no_show_heavy_facts, "seed")

        response = client.post("/api/v1/dashboard/snapshot", json={}, params=AT, headers=TENANT_B)

        data = response.json()["data"]
        assert data["fact_count"] == 0
        assert data["alerts"] == []

    def test_snapshot_rejects_unknown_period(self, client):
        response = client.post("/api/v1/dashboard/snapshot", json={"period": "2w"}, headers=TENANT_A)
        assert response.status_code == 422

    def test_snapshot_storage_failure_is_503(self, tenant_a):
        failing = ControlTowerEngine(storage=FailingStorage())
        app.dependency_overrides[get_engine] = lambda: failing
        try:
            response = TestClient(app).post(
                "/api/v1/dashboard/snapshot", json={}, headers=TENANT_A
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
        assert response.json()["error_type"] == "StorageError"


# ============================================================================
# RCA Endpoints
# ============================================================================


class TestRca:
    def test_create_and_get(self, client):
        created = client.post("/api/v1/rca", json=_rca_body(), headers=TENANT_A)
        assert created.status_code == 201
        record = created.json()["data"]
        assert record["status"] == "open"

        fetched = client.get(f"/api/v1/rca/{record['rca_id']}", headers=TENANT_A)
        assert fetched.status_code == 200
        assert fetched.json()["data"]["title"] == record["title"]

    def test_create_rejects_short_action_plan(self, client):
        response = client.post("/api/v1/rca", json=_rca_body(action_plan="no"), headers=TENANT_A)
        assert response.status_code == 422

    def test_update_status(self, client):
        rca_id = client.post("/api/v1/rca", json=_rca_body(), headers=TENANT_A).json()["data"]["rca_id"]

        response = client.patch(
            f"/api/v1/rca/{rca_id}/status", json={"status": "in_progress"}, headers=TENANT_A
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"rca_id": rca_id, "updated": True}
        record = client.get(f"/api/v1/rca/{rca_id}", headers=TENANT_A).json()["data"]
        assert record["status"] == "in_progress"

    def test_update_status_rejects_unknown_status(self, client):
        rca_id = client.post("/api/v1/rca", json=_rca_body(), headers=TENANT_A).json()["data"]["rca_id"]
        response = client.patch(
            f"/api/v1/rca/{rca_id}/status", json={"status": "archived"}, headers=TENANT_A
        )
        assert response.status_code == 422

    def test_update_foreign_record_is_noop(self, client):
        rca_id = client.post("/api/v1/rca", json=_rca_body(), headers=TENANT_A).json()["data"]["rca_id"]

        response = client.patch(f"/api/v1/rca/{rca_id}/status", json={"status": "done"}, headers=TENANT_B)

        assert response.status_code == 200
        assert response.json()["data"]["updated"] is False
        record = client.get(f"/api/v1/rca/{rca_id}", headers=TENANT_A).json()["data"]
        assert record["status"] == "open"

    def test_get_foreign_record_is_404(self, client):
        rca_id = client.post("/api/v1/rca", json=_rca_body(), headers=TENANT_A).json()["data"]["rca_id"]
        response = client.get(f"/api/v1/rca/{rca_id}", headers=TENANT_B)
        assert response.status_code == 404
        assert response.json()["error_type"] == "RcaNotFoundError"

    def test_list_with_filters(self, client):
        first = client.post("/api/v1/rca", json=_rca_body(severity="P1"), headers=TENANT_A).json()["data"]
        second = client.post("/api/v1/rca", json=_rca_body(severity="P3"), headers=TENANT_A).json()["data"]
        client.patch(f"/api/v1/rca/{second['rca_id']}/status", json={"status": "done"}, headers=TENANT_A)

        everything = client.get("/api/v1/rca", headers=TENANT_A).json()
        done = client.get("/api/v1/rca", params={"status": "done"}, headers=TENANT_A).json()
        p1 = client.get("/api/v1/rca", params={"severity": "P1"}, headers=TENANT_A).json()

        assert everything["count"] == 2
        assert [r["rca_id"] for r in everything["data"]] == [second["rca_id"], first["rca_id"]]
        assert [r["rca_id"] for r in done["data"]] == [second["rca_id"]]
        assert [r["rca_id"] for r in p1["data"]] == [first["rca_id"]]

    def test_list_rejects_unknown_status_filter(self, client):
        response = client.get("/api/v1/rca", params={"status": "archived"}, headers=TENANT_A)
        assert response.status_code == 422


# ============================================================================
# Export Endpoints
# ============================================================================


class TestExports:
    def test_cadence_window(self, client):
        response = client.get("/api/v1/exports/cadence-window", params=AT, headers=TENANT_B)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["key"] == "m-2025-03"
        assert data["cadence"] == "monthly"
        assert data["max_exports"] == 1
