"""Unit tests for immunotracker.network.models module."""

import pytest

from immunotracker.network.models import FetchRequest, FetchResponse


class TestFetchRequest:
    """Tests for outgoing request helpers."""

    def test_cache_key_drops_fragment(self):
        request = FetchRequest(url="http://localhost:8000/index.html#section")
        assert request.cache_key == "http://localhost:8000/index.html"

    def test_path(self):
        assert FetchRequest(url="http://localhost:8000/api/children?x=1").path == "/api/children"
        assert FetchRequest(url="http://localhost:8000").path == "/"

    @pytest.mark.parametrize("method,expected", [("GET", True), ("head", True), ("POST", False)])
    def test_is_read(self, method, expected):
        assert FetchRequest(url="/x", method=method).is_read is expected

    def test_json_post(self):
        request = FetchRequest.json_post("/api/children", {"name": "Amina"})

        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert request.json_body() == {"name": "Amina"}

    def test_json_body_without_body(self):
        assert FetchRequest(url="/x").json_body() is None


class TestFetchResponse:
    """Tests for response helpers."""

    @pytest.mark.parametrize("status,ok", [(200, True), (204, True), (304, False), (503, False)])
    def test_ok(self, status, ok):
        assert FetchResponse(status=status).ok is ok

    def test_json_response(self):
        response = FetchResponse.json_response({"offline": True}, status=503, url="/api/x")

        assert response.status == 503
        assert response.json_body() == {"offline": True}
        assert response.headers["Content-Type"] == "application/json"
        assert response.text() == '{"offline": true}'
