"""
API tests for the cleaning and history endpoints.

History is swapped for a fresh in-memory store per test and both AI keys
are blanked, so nothing leaves the process.

Run with:
    pytest tests/test_routes.py -v
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from cleanse_ai.config import settings
from cleanse_ai.main import app
from cleanse_ai.services.history import InMemoryStore, ReportHistory, get_history


CSV = b"name,email,age\n  ACME CORP ,acme.com,150\nBob,bob@x.io,30\n  ACME CORP ,acme.com,150\n"


@pytest.fixture
def history() -> ReportHistory:
    return ReportHistory(InMemoryStore(), key="routes_test", limit=50)


@pytest.fixture
def client(history, monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "")
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    app.dependency_overrides[get_history] = lambda: history
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestCleanJson:
    def test_clean_rows(self, client, history):
        payload = {
            "rows": [{"name": " Ann ", "joined": "5/3/07"}, {"name": " Ann ", "joined": "5/3/07"}],
            "file_name": "people.csv",
            "options": {"use_ai": False},
        }
        response = client.post("/clean", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["rows"] == [{"name": "Ann", "joined": "2007-03-05"}]
        assert body["columns"] == ["name", "joined"]
        assert body["report"]["file_name"] == "people.csv"
        assert body["report"]["duplicates_removed"] == 1
        assert body["report"]["total_changes"] == 3
        assert len(history.entries()) == 1

    def test_schema_alias(self, client):
        payload = {
            "rows": [{"age": "150"}],
            "options": {
                "use_ai": False,
                "validate_schema": True,
                "schema": [{"name": "age", "type": "number", "max": 120}],
            },
        }
        body = client.post("/clean", json=payload).json()

        assert body["report"]["validation_issues_count"] == 1
        assert body["anomalies"][0]["type"] == "schema"
        assert body["anomalies"][0]["reason"] == "Value above maximum (120)"
        assert body["cell_anomalies"] == body["anomalies"]

    def test_min_above_max_rejected(self, client):
        payload = {
            "rows": [{"age": "1"}],
            "options": {"schema": [{"name": "age", "type": "number", "min": 5, "max": 1}]},
        }
        assert client.post("/clean", json=payload).status_code == 422

    def test_ai_without_key_completes(self, client):
        payload = {"rows": [{"a": "x"}], "options": {"use_ai": True, "ai_provider": "openai"}}
        response = client.post("/clean", json=payload)

        assert response.status_code == 200
        assert response.json()["report"]["anomalies_detected"] == 0

    def test_pipeline_failure_is_500(self, client, history):
        with patch("cleanse_ai.services.pipeline.clean", side_effect=RuntimeError("boom")):
            response = client.post("/clean", json={"rows": [{"a": "x"}]})

        assert response.status_code == 500
        assert response.json() == {
            "detail": "Something went wrong during the cleaning process.",
            "error_type": "PipelineError",
        }
        assert history.entries() == []


class TestCleanUpload:
    def test_upload_csv(self, client):
        response = client.post(
            "/clean/upload",
            files={"file": ("customers.csv", CSV, "text/csv")},
            data={"options": json.dumps({"use_ai": False})},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["columns"] == ["name", "email", "age"]
        assert body["rows"][0] == {"name": "Acme corp", "email": "acme.com", "age": "150"}
        assert body["report"]["file_name"] == "customers.csv"
        assert body["report"]["row_count"] == 2
        assert body["report"]["invalid_emails_fixed"] == 1

    def test_default_options(self, client):
        response = client.post("/clean/upload", files={"file": ("data.csv", CSV, "text/csv")})
        assert response.status_code == 200
        assert response.json()["report"]["duplicates_removed"] == 1

    def test_wrong_extension(self, client):
        response = client.post("/clean/upload", files={"file": ("data.xlsx", b"x", "application/octet-stream")})
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidUploadError"

    def test_bad_options(self, client):
        response = client.post(
            "/clean/upload",
            files={"file": ("data.csv", CSV, "text/csv")},
            data={"options": '{"use_ai": "sometimes"}'},
        )
        assert response.status_code == 400
        assert "Invalid cleaning options" in response.json()["detail"]


class TestHistoryRoutes:
    def _run(self, client, name):
        client.post("/clean", json={"rows": [{"a": " x "}], "file_name": name, "options": {"use_ai": False}})

    def test_list_newest_first(self, client):
        self._run(client, "first.csv")
        self._run(client, "second.csv")

        body = client.get("/history").json()
        assert [r["file_name"] for r in body] == ["second.csv", "first.csv"]

    def test_stats(self, client):
        self._run(client, "first.csv")
        self._run(client, "second.csv")

        stats = client.get("/history/stats").json()
        assert stats["runs"] == 2
        assert stats["total_rows_cleaned"] == 2
        assert stats["total_fixes"] == 2
        assert stats["fix_rate"] == 100.0
        assert [r["file_name"] for r in stats["recent"]] == ["first.csv", "second.csv"]

    def test_clear(self, client):
        self._run(client, "first.csv")

        response = client.delete("/history")
        assert response.status_code == 204
        assert client.get("/history").json() == []
