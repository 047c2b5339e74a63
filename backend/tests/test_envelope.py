# Overview: Pytest coverage for the JSON response envelope and error mapping.

import pytest
from sqlalchemy.exc import OperationalError

from emilocker.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from emilocker.responses import from_service_error, pagination_meta, server_error, success
from emilocker.services import device_service


@pytest.mark.parametrize("error,status", [
    (AuthenticationError("x"), 401),
    (AuthorizationError("x"), 403),
    (NotFoundError("x"), 404),
    (ConflictError("x"), 400),
    (ValidationError("x"), 400),
    (TransientError("x"), 500),
])
def test_status_mapping(app, error, status):
    with app.test_request_context():
        response, code = from_service_error(error)
        assert code == status
        assert response.json["success"] is False
        assert response.json["code"] == error.code


def test_success_envelope(app):
    with app.test_request_context():
        response, code = success({"x": 1}, "done", 201)
        assert code == 201
        assert response.json == {"success": True, "message": "done", "data": {"x": 1}}


@pytest.mark.parametrize("app_env,exposed", [("development", True), ("production", False)])
def test_error_detail_hidden_in_production(app, monkeypatch, app_env, exposed):
    monkeypatch.setitem(app.config, "APP_ENV", app_env)
    with app.test_request_context():
        response, code = server_error("Server error", RuntimeError("boom"))
        assert code == 500
        assert ("error" in response.json) is exposed


@pytest.mark.parametrize("total,limit,pages", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (101, 100, 2)])
def test_total_pages_is_ceiling(total, limit, pages):
    assert pagination_meta(1, limit, total)["total_pages"] == pages


def test_unknown_route_uses_envelope(client, db_session):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json["success"] is False


def test_store_outage_in_route_is_transient(client, db_session, monkeypatch, owner_a_headers, device_a):
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(device_service, "get_device", unavailable)

    resp = client.get(f"/api/devices/{device_a.id}", headers=owner_a_headers)
    assert resp.status_code == 500
    assert resp.json["code"] == "TRANSIENT"
    assert resp.json["success"] is False


def test_unexpected_error_in_route_is_internal(client, db_session, monkeypatch, owner_a_headers, device_a):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(device_service, "get_device", broken)

    resp = client.get(f"/api/devices/{device_a.id}", headers=owner_a_headers)
    assert resp.status_code == 500
    assert resp.json["code"] == "INTERNAL_ERROR"
