"""Tests for normalized error responses."""


def test_not_found_has_standard_shape(client):
    resp = client.get("/v1/subscriptions/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "not_found"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == "Subscription not found: does-not-exist"


def test_validation_error_normalized(client, make_subscription, admin_headers):
    sub = make_subscription()

    resp = client.post(
        f"/v1/admin/subscriptions/{sub.id}/extra-days",
        json={"days": 5, "justification": "   "},
        headers={**admin_headers, "X-Request-Id": "rid-validation"},
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["message"] == "Justification is required"
    assert body["error"]["request_id"] == "rid-validation"
    assert resp.headers.get("x-request-id") == "rid-validation"


def test_conflict_error_normalized(client, make_subscription, admin_headers):
    sub = make_subscription()

    resp = client.post(
        f"/v1/admin/subscriptions/{sub.id}/trial/extend",
        json={"days": 5, "justification": "Sem trial"},
        headers=admin_headers,
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"


def test_auth_error_uses_http_error_code(client, make_subscription):
    sub = make_subscription()

    resp = client.post(f"/v1/admin/subscriptions/{sub.id}/lifetime")

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "http_error"


def test_app_error_subclasses_map_to_status_codes():
    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    from condoadmin.core.errors import (
        AppError,
        ConflictError,
        NotFoundError,
        PermissionError,
        ValidationError,
        app_error_handler,
    )
    from condoadmin.core.middleware.request_id import RequestIdMiddleware

    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)
    test_app.add_exception_handler(AppError, app_error_handler)
    errors = {
        "validation": ValidationError("bad input"),
        "missing": NotFoundError("gone"),
        "forbidden": PermissionError("not yours"),
        "conflict": ConflictError("wrong state"),
    }

    @test_app.get("/raise/{name}")
    async def raise_error(name: str):
        raise errors[name]

    client = TestClient(test_app)
    expected = {
        "validation": (400, "validation_error"),
        "missing": (404, "not_found"),
        "forbidden": (403, "forbidden"),
        "conflict": (409, "conflict"),
    }
    for name, (status, code) in expected.items():
        resp = client.get(f"/raise/{name}")
        assert resp.status_code == status
        assert resp.json()["error"]["code"] == code
