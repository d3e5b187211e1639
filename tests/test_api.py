"""Tests for the HTTP job API."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from critcss.api.routes import critical_css as critical_css_routes
from critcss.core.config import settings
from critcss.main import app
from critcss.services import job_store


@pytest.fixture(autouse=True)
def empty_store():
    job_store.job_store.clear()
    yield
    job_store.job_store.clear()


@pytest.fixture
def enqueue(monkeypatch):
    task = MagicMock()
    monkeypatch.setattr(critical_css_routes, "generate_critical_css", task)
    return task.delay


@pytest.fixture
def client():
    return TestClient(app)


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestGenerate:
    def test_enqueues_job(self, client, enqueue):
        response = client.post(
            "/v1/critical-css/generate",
            json={"url": "https://example.com", "css": "https://example.com/site.css", "height": 600},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "queued"
        assert body["job_id"].startswith("css_")

        enqueue.assert_called_once()
        payload = enqueue.call_args.kwargs["payload"]
        assert enqueue.call_args.kwargs["job_id"] == body["job_id"]
        assert payload["height"] == 600
        assert payload["width"] == settings.default_viewport_width
        assert payload["strict"] is False
        assert job_store.job_store.get_job(body["job_id"]).payload == payload

    @pytest.mark.parametrize(
        "payload",
        [
            {"url": "ftp://example.com", "css": "a { color: red }"},
            {"url": "https://example.com", "css": "a { color: red }", "width": 0},
            {"url": "https://example.com", "css": "a { color: red }", "timeout": -1},
            {"url": "https://example.com"},
        ],
    )
    def test_rejects_invalid_options(self, client, enqueue, payload):
        response = client.post("/v1/critical-css/generate", json=payload)
        assert response.status_code == 422
        enqueue.assert_not_called()


class TestStatus:
    def test_unknown_job(self, client):
        assert client.get("/v1/critical-css/css_missing").status_code == 404

    def test_completed_job(self, client):
        job_store.create_job("css_done", "critical_css", {"url": "https://example.com"})
        job_store.mark_completed(
            "css_done",
            {"critical_css": "header {\n  height: 100px;\n}", "viewport": {"width": 1300, "height": 900}},
        )

        body = client.get("/v1/critical-css/css_done").json()

        assert body["status"] == "completed"
        assert body["url"] == "https://example.com"
        assert body["result"]["critical_css"].startswith("header {")
        assert body["result"]["stats"]["rules_total"] == 0
        assert body["error"] is None

    def test_timed_out_job(self, client):
        job_store.create_job("css_slow", "critical_css", {"url": "https://example.com"})
        job_store.mark_failed("css_slow", "Critical CSS extraction timed out after 100ms", "timeout")

        body = client.get("/v1/critical-css/css_slow").json()

        assert body["status"] == "timed_out"
        assert body["error_kind"] == "timeout"
        assert body["result"] is None


class TestAuth:
    @pytest.fixture(autouse=True)
    def secret(self, monkeypatch):
        monkeypatch.setattr(settings, "auth_jwt_secret", "s3cret")

    def test_missing_token(self, client):
        assert client.get("/auth-check").status_code == 401
        assert client.get("/v1/critical-css/css_missing").status_code == 401

    def test_wrong_token(self, client):
        assert client.get("/auth-check", headers={"Authorization": "Bearer nope"}).status_code == 401

    @pytest.mark.parametrize("header", ["Bearer s3cret", "s3cret"])
    def test_valid_token(self, client, header):
        assert client.get("/auth-check", headers={"Authorization": header}).status_code == 200


class TestCssDownload:
    def test_completed_job_serves_text_css(self, client):
        job_store.create_job("css_done", "critical_css", {"url": "https://example.com"})
        job_store.mark_completed("css_done", {"critical_css": "header {\n  height: 100px;\n}"})

        response = client.get("/v1/critical-css/css_done/css")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/css")
        assert response.text == "header {\n  height: 100px;\n}"

    def test_unfinished_job_conflicts(self, client):
        job_store.create_job("css_queued", "critical_css", {"url": "https://example.com"})
        assert client.get("/v1/critical-css/css_queued/css").status_code == 409

    def test_unknown_job(self, client):
        assert client.get("/v1/critical-css/css_missing/css").status_code == 404
