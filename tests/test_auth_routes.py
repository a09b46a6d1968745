"""
tests/test_auth_routes.py -- Integration tests for the /auth/* endpoints.

These tests exercise the full stack: FastAPI routing -> strategies ->
SessionCoordinator -> stores -> cookies on the response. Cookie behaviour
(attributes, clearing, which credential source is read) is only observable
at this level.

Coverage:
  - POST /auth/login: 200 + both cookies, no refresh token in the body, 401 on bad credentials, 422 on bad input
  - POST /auth/refresh: rotation through the cookie jar, replay -> 401 with cleared cookies, missing cookie -> 401
  - POST /auth/logout: requires an access token, revokes the refresh cookie's token, clears cookies
  - POST /auth/logout-all: revokes every session of the caller

Fixtures used (from conftest.py):
  - api_client: (client, env) -- fresh cookie jar per test, user a@x.com / Password123
"""

from __future__ import annotations

from fastapi.testclient import TestClient

EMAIL = "a@x.com"
PASSWORD = "Password123"


def _login(client: TestClient):
    resp = client.post("/auth/login", json={"email": EMAIL, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp


def _set_cookies(resp) -> list[str]:
    return resp.headers.get_list("set-cookie")


def _cleared(resp, name: str) -> bool:
    return any(h.startswith(f"{name}=") and "Max-Age=0" in h for h in _set_cookies(resp))


class TestLogin:
    def test_login_sets_both_cookies(self, api_client) -> None:
        client, env = api_client
        resp = _login(client)
        data = resp.json()
        assert data["user"]["id"] == env.user_id
        assert data["user"]["email"] == EMAIL
        assert "access_token" in data
        assert "refresh_token" not in data
        assert "hashed_password" not in data["user"]
        assert resp.cookies.get("accessToken") == data["access_token"]
        assert resp.cookies.get("refreshToken")
        assert resp.headers["cache-control"] == "no-store"

    def test_cookie_attributes(self, api_client) -> None:
        client, _env = api_client
        headers = _set_cookies(_login(client))
        assert len(headers) == 2
        for header in headers:
            assert "HttpOnly" in header
            assert "Path=/" in header
            assert "SameSite=lax" in header

    def test_wrong_password(self, api_client) -> None:
        client, _env = api_client
        resp = client.post("/auth/login", json={"email": EMAIL, "password": "Nope12345"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_credentials"
        assert "set-cookie" not in resp.headers

    def test_unknown_email_same_body(self, api_client) -> None:
        client, _env = api_client
        wrong_pw = client.post("/auth/login", json={"email": EMAIL, "password": "Nope12345"})
        unknown = client.post("/auth/login", json={"email": "nobody@x.com", "password": PASSWORD})
        assert unknown.status_code == wrong_pw.status_code == 401
        assert unknown.json() == wrong_pw.json()

    def test_invalid_body(self, api_client) -> None:
        client, _env = api_client
        resp = client.post("/auth/login", json={"email": "not-an-email", "password": PASSWORD})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestRefresh:
    def test_refresh_rotates_cookie(self, api_client) -> None:
        client, env = api_client
        t0 = _login(client).cookies.get("refreshToken")

        resp = client.post("/auth/refresh")
        assert resp.status_code == 200, resp.text
        t1 = resp.cookies.get("refreshToken")
        assert t1 and t1 != t0
        assert resp.json()["user"]["id"] == env.user_id
        assert resp.cookies.get("accessToken") == resp.json()["access_token"]
        assert resp.headers["cache-control"] == "no-store"

    def test_replayed_token_is_refused_and_cleared(self, api_client) -> None:
        client, _env = api_client
        t0 = _login(client).cookies.get("refreshToken")
        assert client.post("/auth/refresh").status_code == 200

        client.cookies.clear()
        client.cookies.set("refreshToken", t0)
        resp = client.post("/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["error"] == {
            "code": "unauthorized",
            "message": "Invalid or expired refresh token",
            "detail": None,
        }
        assert resp.headers["www-authenticate"] == "Bearer"
        assert _cleared(resp, "accessToken")
        assert _cleared(resp, "refreshToken")

    def test_missing_cookie(self, api_client) -> None:
        client, _env = api_client
        resp = client.post("/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_refresh_token_in_header_is_ignored(self, api_client) -> None:
        client, _env = api_client
        token = _login(client).cookies.get("refreshToken")
        client.cookies.clear()
        resp = client.post("/auth/refresh", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_access_token_in_refresh_cookie(self, api_client) -> None:
        client, _env = api_client
        access = _login(client).json()["access_token"]
        client.cookies.clear()
        client.cookies.set("refreshToken", access)
        assert client.post("/auth/refresh").status_code == 401


class TestLogout:
    def test_logout_revokes_and_clears(self, api_client) -> None:
        client, _env = api_client
        t0 = _login(client).cookies.get("refreshToken")

        resp = client.post("/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Successfully logged out"}
        assert _cleared(resp, "accessToken")
        assert _cleared(resp, "refreshToken")

        client.cookies.clear()
        client.cookies.set("refreshToken", t0)
        assert client.post("/auth/refresh").status_code == 401

    def test_logout_with_bearer_and_no_refresh_cookie(self, api_client) -> None:
        client, _env = api_client
        access = _login(client).json()["access_token"]
        client.cookies.clear()
        resp = client.post("/auth/logout", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200

    def test_logout_requires_authentication(self, api_client) -> None:
        client, _env = api_client
        resp = client.post("/auth/logout")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"
        assert resp.headers["www-authenticate"] == "Bearer"


class TestLogoutAll:
    def test_revokes_every_session(self, api_client) -> None:
        client, env = api_client
        first = _login(client).cookies.get("refreshToken")
        second = _login(client).cookies.get("refreshToken")

        resp = client.post("/auth/logout-all")
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "All sessions revoked"
        assert body["revoked"] >= 2
        assert env.refresh_store.count_active(env.user_id) == 0

        for token in (first, second):
            client.cookies.clear()
            client.cookies.set("refreshToken", token)
            assert client.post("/auth/refresh").status_code == 401
