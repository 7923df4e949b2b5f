"""
Unit tests for the engine HTTP API.
"""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from usmcore import __version__
from usmcore.catalog.models import Script, Settings
from usmcore.catalog.store import InMemoryCatalogStore
from usmcore.server.api import create_app

URL = "https://example.com/page"


def _catalog():
    return [
        Script(id=1, name="early", code="pass", run_at="document-start"),
        Script(id=2, name="late", code="pass", matches=["https://example.com/*"]),
        Script(id=3, name="other", code="pass", matches=["https://other.test/*"]),
    ]


@pytest.fixture
def store():
    return InMemoryCatalogStore(_catalog())


@pytest.fixture
def client(store):
    with TestClient(create_app(store)) as test_client:
        yield test_client


class TestEngineAPI:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_select_for_phase(self, client):
        response = client.post("/api/select", json={"kind": "selectForPhase", "url": URL, "phase": "document-end"})
        assert response.status_code == 200
        scripts = response.json()["scripts"]
        assert [s["id"] for s in scripts] == [2]
        assert scripts[0]["matches"] == ["https://example.com/*"]

    def test_select_rejects_unknown_phase(self, client):
        response = client.post("/api/select", json={"url": URL, "phase": "document-whenever"})
        assert response.status_code == 422

    def test_report_run_reaches_ledger(self, client):
        response = client.post("/api/report", json={"scriptId": 2, "ok": False, "error": "TypeError: x"})
        assert response.status_code == 202

        runs = client.get("/api/runs").json()
        assert runs["2"]["lastError"] == "TypeError: x"
        assert runs["2"]["lastRunTime"] is not None

    def test_list_scripts(self, client):
        names = [s["name"] for s in client.get("/api/scripts").json()]
        assert names == ["early", "late", "other"]

    def test_settings(self, client):
        assert client.get("/api/settings").json() == {
            "themeMode": "system",
            "safeMode": False,
            "scriptDisabledHosts": [],
        }

    def test_explain(self, client):
        rows = {row["id"]: row for row in client.get("/api/explain", params={"url": URL}).json()}
        assert rows[1]["reason"] == "match-all"
        assert rows[2]["reason"] == "matched" and rows[2]["pattern"] == "https://example.com/*"
        assert rows[3]["eligible"] is False and rows[3]["runnable"] is False

    def test_explain_reports_safe_mode(self):
        store = InMemoryCatalogStore(_catalog(), Settings(safe_mode=True))
        with TestClient(create_app(store)) as client:
            rows = client.get("/api/explain", params={"url": URL}).json()
        assert all(row["note"] == "safe mode is on" for row in rows)

    def test_catalog_failure_is_503(self, store):
        store.get_catalog = AsyncMock(side_effect=RuntimeError("disk gone"))
        with TestClient(create_app(store)) as client:
            response = client.post("/api/select", json={"url": URL, "phase": "document-end"})
        assert response.status_code == 503
        assert response.json()["error"] == "CollaboratorUnavailableError"
