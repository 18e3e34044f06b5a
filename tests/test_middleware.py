"""Tests for request logging and performance middleware."""

import logging

from fastapi.testclient import TestClient
from starlette.requests import Request

from recipe_bridge.middleware.logging import get_request_params, loggable_path
from recipe_bridge.middleware.performance import metrics

HTML = "<html><body><h1>Borscht</h1></body></html>"


def make_request(query_string: bytes = b"") -> Request:
    return Request({"type": "http", "method": "GET", "path": "/api/recipe", "query_string": query_string, "headers": []})


def test_loggable_path_shortens_staging_id():
    recipe_id = "0123456789abcdef0123456789abcdef"
    assert loggable_path(f"/api/recipe/{recipe_id}") == "/api/recipe/01234567..."
    assert loggable_path("/api/recipe") == "/api/recipe"
    assert loggable_path("/recipes/transform") == "/recipes/transform"


def test_request_params_mask_id_and_secrets():
    params = get_request_params(make_request(b"id=0123456789abcdef0123456789abcdef&api_key=xyz&lang=fr"))
    assert params["query"] == {"id": "01234567...", "api_key": "***", "lang": "fr"}


def test_staging_id_never_logged_in_full(client: TestClient, caplog):
    recipe_id = client.post("/api/recipe", json={"html": HTML}).json()["id"]
    with caplog.at_level(logging.INFO):
        assert client.get(f"/api/recipe/{recipe_id}").status_code == 200
        assert client.get("/api/recipe", params={"id": recipe_id}).status_code == 404

    app_records = [record for record in caplog.records if record.name.startswith("recipe_bridge")]
    assert app_records
    for record in app_records:
        assert recipe_id not in record.getMessage()
        assert recipe_id not in str(record.__dict__)


def test_slow_request_counts_follow_metrics_thresholds(client: TestClient, monkeypatch, caplog):
    monkeypatch.setattr(metrics, "slow_threshold", 0.0)
    metrics.reset()

    with caplog.at_level(logging.WARNING, logger="recipe_bridge.middleware.performance"):
        client.get("/health")

    assert metrics.get_summary()["slow_requests"] == 1
    assert any(record.getMessage().startswith("Slow request: GET /health") for record in caplog.records)
