"""Tests for the /dashboards, /search, /alerting and /metrics endpoints.

Most tests route every request to one in-memory SQLite database through a
``get_db`` override; the connection tests run against a file in ``tmp_path``.
"""

from __future__ import annotations

import sqlite3
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi.testclient import TestClient

from dashstore.api.app import create_app
from dashstore.api.deps import get_db
from dashstore.db.acl import add_dashboard_acl
from dashstore.db.connection import get_connection
from dashstore.db.migrations import init_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn(tmp_path, monkeypatch):
    # keep the lifespan's schema bootstrap out of ~/.dashstore
    monkeypatch.setattr("dashstore.config.settings.workspace_dir", tmp_path)
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def client(conn):
    """Return a TestClient whose requests all use the in-memory *conn*."""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: conn
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _save(client: TestClient, dashboard: dict[str, Any], **extra: Any) -> dict:
    resp = client.post("/dashboards/db", json={"dashboard": dashboard, **extra})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _fetch(client: TestClient, slug: str) -> dict:
    resp = client.get(f"/dashboards/db/{slug}")
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Save / get
# ---------------------------------------------------------------------------

class TestSave:
    def test_create(self, client: TestClient) -> None:
        data = _save(client, {"title": "CPU Usage", "tags": ["prod"]})
        assert data["status"] == "success"
        assert data["version"] == 1
        assert data["slug"] == "cpu-usage"
        assert data["url"] == "/dashboard/db/cpu-usage"

    def test_fetch_returns_body_and_meta(self, client: TestClient) -> None:
        saved = _save(client, {"title": "CPU"}, is_folder=False, user_id=3)
        data = _fetch(client, "cpu")
        assert data["dashboard"]["id"] == saved["id"]
        assert data["dashboard"]["version"] == 1
        assert data["meta"]["type"] == "dash-db"
        assert data["meta"]["created_by"] == 3

    def test_update_then_stale_conflict(self, client: TestClient) -> None:
        _save(client, {"title": "X"})
        first = _fetch(client, "x")["dashboard"]

        second = _save(client, first)
        assert second["version"] == 2

        resp = client.post("/dashboards/db", json={"dashboard": first})
        assert resp.status_code == 412
        assert resp.json()["detail"]["status"] == "version-mismatch"

    def test_duplicate_title(self, client: TestClient) -> None:
        _save(client, {"title": "CPU"})
        resp = client.post("/dashboards/db", json={"dashboard": {"title": "CPU"}})
        assert resp.status_code == 412
        assert resp.json()["detail"]["status"] == "name-exists"

    def test_plugin_dashboard(self, client: TestClient) -> None:
        _save(client, {"title": "Provisioned"}, plugin_id="X")
        body = _fetch(client, "provisioned")["dashboard"]

        resp = client.post("/dashboards/db", json={"dashboard": body})
        assert resp.status_code == 412
        detail = resp.json()["detail"]
        assert detail["status"] == "plugin-dashboard"
        assert detail["plugin_id"] == "X"

        assert _save(client, body, overwrite=True)["version"] == 2

    def test_empty_title(self, client: TestClient) -> None:
        resp = client.post("/dashboards/db", json={"dashboard": {"title": ""}})
        assert resp.status_code == 400
        assert resp.json()["detail"]["status"] == "invalid"

    def test_non_integer_id(self, client: TestClient) -> None:
        resp = client.post("/dashboards/db", json={"dashboard": {"title": "T", "id": "abc"}})
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["status"] == "invalid"
        assert detail["message"] == "Dashboard id must be an integer"

    def test_missing_dashboard(self, client: TestClient) -> None:
        resp = client.get("/dashboards/db/nope")
        assert resp.status_code == 404
        assert resp.json()["detail"]["status"] == "not-found"

    def test_schema_validation(self, client: TestClient) -> None:
        resp = client.post("/dashboards/db", json={"org_id": 1})
        assert resp.status_code == 422


class TestReads:
    def test_tags(self, client: TestClient) -> None:
        _save(client, {"title": "A", "tags": ["prod", "db"]})
        _save(client, {"title": "B", "tags": ["prod"]})
        resp = client.get("/dashboards/tags")
        assert resp.status_code == 200
        assert resp.json() == [{"term": "db", "count": 1}, {"term": "prod", "count": 2}]

    def test_slug_by_id(self, client: TestClient) -> None:
        saved = _save(client, {"title": "CPU Usage"})
        resp = client.get(f"/dashboards/id/{saved['id']}/slug")
        assert resp.json() == {"id": saved["id"], "slug": "cpu-usage"}
        assert client.get("/dashboards/id/999/slug").status_code == 404

    def test_by_plugin(self, client: TestClient) -> None:
        _save(client, {"title": "A"}, plugin_id="X")
        _save(client, {"title": "B"})
        resp = client.get("/dashboards/plugin/X")
        assert [d["title"] for d in resp.json()] == ["A"]


class TestDelete:
    def test_delete(self, client: TestClient) -> None:
        saved = _save(client, {"title": "CPU"})
        resp = client.delete(f"/dashboards/{saved['id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "CPU"
        assert client.get("/dashboards/db/cpu").status_code == 404

    def test_delete_unknown(self, client: TestClient) -> None:
        assert client.delete("/dashboards/999").status_code == 404


class TestVersions:
    def test_history_and_restore(self, client: TestClient) -> None:
        _save(client, {"title": "CPU", "panels": []})
        body = _fetch(client, "cpu")["dashboard"]
        saved = _save(client, {**body, "panels": [1]}, message="add panel")
        dash_id = saved["id"]

        resp = client.get(f"/dashboards/{dash_id}/versions")
        items = resp.json()
        assert [v["version"] for v in items] == [2, 1]
        assert items[0]["message"] == "add panel"
        assert "data" not in items[0]

        one = client.get(f"/dashboards/{dash_id}/versions/1").json()
        assert one["data"]["panels"] == []

        restored = client.post(f"/dashboards/{dash_id}/restore", json={"version": 1})
        assert restored.status_code == 200
        assert restored.json()["version"] == 3
        assert _fetch(client, "cpu")["dashboard"]["panels"] == []

    def test_missing_version(self, client: TestClient) -> None:
        saved = _save(client, {"title": "CPU"})
        assert client.get(f"/dashboards/{saved['id']}/versions/9").status_code == 404

    def test_restore_rejects_zero(self, client: TestClient) -> None:
        saved = _save(client, {"title": "CPU"})
        resp = client.post(f"/dashboards/{saved['id']}/restore", json={"version": 0})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class TestSearch:
    def test_filters(self, client: TestClient) -> None:
        _save(client, {"title": "CPU prod", "tags": ["prod", "cpu"]})
        _save(client, {"title": "CPU dev", "tags": ["dev"]})
        _save(client, {"title": "Team"}, is_folder=True)

        hits = client.get("/search", params={"query": "cpu"}).json()
        assert [h["title"] for h in hits] == ["CPU dev", "CPU prod"]

        hits = client.get("/search", params=[("tag", "prod"), ("tag", "cpu")]).json()
        assert [h["title"] for h in hits] == ["CPU prod"]
        assert hits[0]["tags"] == ["prod", "cpu"]
        assert hits[0]["uri"] == "db/cpu-prod"

        hits = client.get("/search", params={"type": "dash-folder"}).json()
        assert [(h["title"], h["type"]) for h in hits] == [("Team", "dash-folder")]

    def test_acl(self, client: TestClient, conn) -> None:
        saved = _save(client, {"title": "Secret"})
        _save(client, {"title": "Open"})
        add_dashboard_acl(conn, 1, saved["id"], user_id=5)

        viewer = client.get("/search", params={"user_id": 6, "org_role": "Viewer"}).json()
        assert [h["title"] for h in viewer] == ["Open"]

        granted = client.get("/search", params={"user_id": 5, "org_role": "Viewer"}).json()
        assert [h["title"] for h in granted] == ["Open", "Secret"]

        admin = client.get("/search", params={"user_id": 6, "org_role": "Admin"}).json()
        assert len(admin) == 2

    def test_bad_type(self, client: TestClient) -> None:
        assert client.get("/search", params={"type": "panel"}).status_code == 422


# ---------------------------------------------------------------------------
# Alerting / metrics
# ---------------------------------------------------------------------------

class TestAlerting:
    def test_firing(self, client: TestClient) -> None:
        resp = client.post(
            "/alerting/evaluate",
            json={"evaluator": {"type": "gt", "params": [80]}, "reduced_value": 91},
        )
        assert resp.status_code == 200
        assert resp.json() == {"firing": True}

    def test_not_firing(self, client: TestClient) -> None:
        resp = client.post(
            "/alerting/evaluate",
            json={"evaluator": {"type": "within_range", "params": [1, 5]}, "reduced_value": 9},
        )
        assert resp.json() == {"firing": False}

    def test_invalid_model(self, client: TestClient) -> None:
        resp = client.post(
            "/alerting/evaluate",
            json={"evaluator": {"type": "gt"}, "reduced_value": 1},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Evaluator missing threshold parameter"


class TestMetrics:
    def test_exposes_insert_counter(self, client: TestClient) -> None:
        _save(client, {"title": "CPU"})
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "dashstore_dashboard_inserts_total" in resp.text


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------

class TestRequestConnections:
    def test_each_request_gets_its_own_connection(self, tmp_path) -> None:
        state = SimpleNamespace(db_path=tmp_path / "dashboards.db")
        request = SimpleNamespace(app=SimpleNamespace(state=state))

        first_gen = get_db(request)  # type: ignore[arg-type]
        second_gen = get_db(request)  # type: ignore[arg-type]
        first, second = next(first_gen), next(second_gen)
        assert first is not second

        for gen in (first_gen, second_gen):
            with pytest.raises(StopIteration):
                next(gen)
        with pytest.raises(sqlite3.ProgrammingError):
            first.execute("SELECT 1")

    def test_file_backed_app(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("dashstore.config.settings.workspace_dir", tmp_path)
        with TestClient(create_app()) as c:
            saved = _save(c, {"title": "CPU"})
            updated = _save(c, {**_fetch(c, "cpu")["dashboard"], "panels": [1]})
            assert updated["version"] == 2

        check = get_connection(tmp_path / "dashboards.db")
        try:
            row = check.execute("SELECT version FROM dashboard WHERE id = ?", (saved["id"],))
            assert row.fetchone()["version"] == 2
        finally:
            check.close()
