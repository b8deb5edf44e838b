"""Tests for the problem+json error responses in storage_cos/main.py."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from storage_cos.api.deps import get_services
from storage_cos.main import PROBLEM_JSON, _resolve_error_code, create_app


@pytest.fixture
def client(bundle):
    app = create_app()
    app.dependency_overrides[get_services] = lambda: bundle
    with TestClient(app) as test_client:
        yield test_client


class TestErrorResponses:
    def test_missing_key_is_bad_request(self, client) -> None:
        resp = client.get("/api/files/url", headers={"X-Request-Id": "req-1"})

        assert resp.status_code == 400
        assert resp.headers["content-type"].startswith(PROBLEM_JSON)
        body = resp.json()
        assert body["error_code"] == "bad_request"
        assert body["detail"] == "Missing key parameter"
        assert body["title"] == "HTTP Error"
        assert body["request_id"] == "req-1"

    def test_unknown_route_is_not_found(self, client) -> None:
        resp = client.get("/api/nothing-here")

        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith(PROBLEM_JSON)
        assert resp.json()["error_code"] == "not_found"

    def test_wrong_method_is_method_not_allowed(self, client) -> None:
        resp = client.put("/api/config", json={})

        assert resp.status_code == 405
        assert resp.json()["error_code"] == "method_not_allowed"

    def test_invalid_query_is_validation_error(self, client) -> None:
        resp = client.get("/api/files/url", params={"key": "a.txt", "expires": 0})

        assert resp.status_code == 422
        body = resp.json()
        assert body["error_code"] == "validation_error"
        assert body["title"] == "Validation Error"
        assert all("input" not in error for error in body["detail"])


class TestResolveErrorCode:
    def test_maps_statuses_the_api_returns(self) -> None:
        assert _resolve_error_code(400) == "bad_request"
        assert _resolve_error_code(404) == "not_found"
        assert _resolve_error_code(405) == "method_not_allowed"
        assert _resolve_error_code(422) == "validation_error"

    def test_returns_unknown_error_for_unmapped_status(self) -> None:
        assert _resolve_error_code(418) == "unknown_error"
        assert _resolve_error_code(500) == "unknown_error"
