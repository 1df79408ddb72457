"""
tests/test_auth_routes.py -- Integration tests for the /auth/* endpoints.

These tests run through the real ASGI stack with the client fixture, so the
cookie attributes, status codes, and error envelope are the ones a browser
would see.

Coverage:
  - Full login -> session -> refresh -> replay scenario
  - Refresh cookie attributes (HttpOnly, SameSite=Lax, Path=/, Max-Age)
  - 400 for missing fields, uniform 401 for bad credentials
  - Expired refresh sessions are rejected
  - Logout always succeeds and clears the cookie
  - Bearer access token on /auth/me
  - 404 envelope and CORS preflight
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from auth.errors import NotFoundError, ValidationError
from core.config import get_settings

SEEDED_EMAIL = "prueba@usuario.com"
SEEDED_PASSWORD = "1234"


def _with_cookie(client: TestClient, token: str | None) -> TestClient:
    """Make the next request carry exactly this refresh cookie (or none)."""
    client.cookies.clear()
    if token is not None:
        client.cookies.set("refreshToken", token)
    return client


def _login(client: TestClient, email: str = SEEDED_EMAIL, password: str = SEEDED_PASSWORD):
    return _with_cookie(client, None).post("/auth/login", json={"email": email, "password": password})


def _set_cookie(resp) -> str:
    header = resp.headers.get("set-cookie", "")
    assert header.startswith("refreshToken="), header
    return header.lower()


class TestScenario:
    def test_login_session_refresh_replay(self, client, clock):
        # login
        resp = _login(client)
        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["email"] == SEEDED_EMAIL
        assert body["user"]["role"] == "customer"
        assert body["user"]["type"] == "customer"
        access_expiry = datetime.fromisoformat(body["accessTokenExpiresAt"])
        assert access_expiry - clock() == timedelta(minutes=20)
        original = body["refreshToken"]
        assert f"refreshtoken={original.lower()}" in _set_cookie(resp)

        # session with the login cookie
        resp = _with_cookie(client, original).get("/auth/session")
        assert resp.status_code == 200
        session_body = resp.json()
        assert session_body["user"] == body["user"]
        assert session_body["accessToken"]
        assert "refreshToken" not in session_body
        assert f"refreshtoken={original.lower()}" in _set_cookie(resp)

        # refresh rotates
        resp = _with_cookie(client, original).post("/auth/refresh")
        assert resp.status_code == 200
        rotated = resp.json()["refreshToken"]
        assert rotated != original
        assert resp.json()["user"] == body["user"]
        assert f"refreshtoken={rotated.lower()}" in _set_cookie(resp)

        # replaying the original is rejected
        resp = _with_cookie(client, original).post("/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

        # the rotated secret still works
        assert _with_cookie(client, rotated).get("/auth/session").status_code == 200

    def test_merchant_login(self, client):
        resp = _login(client, "local@comercio.com", "1234")
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "merchant"
        assert resp.json()["user"]["type"] == "merchant"


class TestLogin:
    def test_refresh_cookie_attributes(self, client):
        cookie = _set_cookie(_login(client))
        assert "httponly" in cookie
        assert "samesite=lax" in cookie
        assert "path=/" in cookie
        assert f"max-age={14 * 24 * 60 * 60}" in cookie
        assert "secure" not in cookie

    def test_no_store_header(self, client):
        assert _login(client).headers["cache-control"] == "no-store"

    def test_email_is_trimmed_and_case_insensitive(self, client):
        assert _login(client, "  PRUEBA@usuario.com  ").status_code == 200

    @pytest.mark.parametrize(
        "payload",
        [{}, {"email": SEEDED_EMAIL}, {"password": "1234"}, {"email": "   ", "password": "1234"}, {"email": SEEDED_EMAIL, "password": ""}],
    )
    def test_missing_fields_400(self, client, payload):
        resp = _with_cookie(client, None).post("/auth/login", json=payload)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_validation_error_never_echoes_input(self, client):
        resp = _with_cookie(client, None).post("/auth/login", json={"password": "hunter2-secret"})
        assert resp.status_code == 400
        assert "hunter2-secret" not in resp.text
        error = resp.json()["error"]
        assert error["code"] == ValidationError.code
        assert error["message"] == "Email and password are required."
        assert "email" in error["detail"]

    def test_malformed_json_400(self, client):
        resp = _with_cookie(client, None).post(
            "/auth/login", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400

    def test_wrong_password_and_unknown_email_look_the_same(self, client):
        wrong = _login(client, SEEDED_EMAIL, "wrong")
        unknown = _login(client, "ghost@usuario.com", "1234")
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert "set-cookie" not in wrong.headers


class TestSession:
    def test_no_cookie_401(self, client):
        resp = _with_cookie(client, None).get("/auth/session")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_unknown_cookie_401(self, client):
        assert _with_cookie(client, "forged").get("/auth/session").status_code == 401

    def test_expired_session_401(self, client, clock):
        token = _login(client).json()["refreshToken"]
        clock.advance(days=14)
        assert _with_cookie(client, token).get("/auth/session").status_code == 401
        assert _with_cookie(client, token).post("/auth/refresh").status_code == 401

    def test_cookie_max_age_counts_down(self, client, clock):
        token = _login(client).json()["refreshToken"]
        clock.advance(days=4)
        resp = _with_cookie(client, token).get("/auth/session")
        assert f"max-age={10 * 24 * 60 * 60}" in _set_cookie(resp)


class TestLogout:
    def test_logout_clears_cookie_and_session(self, client):
        token = _login(client).json()["refreshToken"]
        resp = _with_cookie(client, token).post("/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out."}
        cookie = _set_cookie(resp)
        assert "max-age=0" in cookie
        assert _with_cookie(client, token).get("/auth/session").status_code == 401

    def test_logout_twice_never_errors(self, client):
        token = _login(client).json()["refreshToken"]
        assert _with_cookie(client, token).post("/auth/logout").status_code == 200
        assert _with_cookie(client, token).post("/auth/logout").status_code == 200

    def test_logout_without_cookie(self, client):
        assert _with_cookie(client, None).post("/auth/logout").status_code == 200


class TestMe:
    def test_bearer_token(self, client):
        access = _login(client).json()["accessToken"]
        resp = _with_cookie(client, None).get("/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == SEEDED_EMAIL

    def test_missing_bearer_401(self, client):
        assert _with_cookie(client, None).get("/auth/me").status_code == 401

    def test_tampered_bearer_401(self, client):
        access = _login(client).json()["accessToken"]
        head, _, sig = access.rpartition(".")
        tampered =head + "." + sig[:5] + ("A" if sig[5] != "A" else "B") + sig[6:]
        resp = _with_cookie(client, None).get("/auth/me", headers={"Authorization": f"Bearer {tampered}"})
        assert resp.status_code == 401

    def test_expired_bearer_401(self, client, clock):
        access = _login(client).json()["accessToken"]
        clock.advance(minutes=20)
        resp = _with_cookie(client, None).get("/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 401


class TestRouting:
    def test_unknown_route_404(self, client):
        resp = client.get("/auth/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": {"code": NotFoundError.code, "message": "Resource not found."}}
        assert NotFoundError.code == "not_found"

    def test_cors_preflight(self, client):
        origin = get_settings().client_url
        resp = client.options(
            "/auth/login",
            headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == origin
        assert resp.headers["access-control-allow-credentials"] == "true"
