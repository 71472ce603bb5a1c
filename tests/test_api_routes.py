"""
tests/test_api_routes.py -- Integration tests for the /api/v1/auth routes.

These tests exercise the full stack: FastAPI routing -> auth dependency
injection -> AuthService -> AuthStore -> response model serialization and the
error envelope produced by the exception handlers in api/main.py.

Coverage:
  - register: 201, 409 on duplicate, 400 on invalid input, 422 on missing fields
  - login: 200 token pair with Cache-Control: no-store; uniform 401 body,
    including for JSON strings that decode to lone surrogates
  - refresh: rotation, 401 on replay and on malformed tokens of any length
  - reset-password: 401 without Bearer token, 200 for own account, 404 otherwise
  - error bodies never echo submitted passwords

Fixtures used (from conftest.py):
  - api_client: TestClient over the real app with an isolated file-backed store.
    The store is shared by every test in this module, so each test registers
    its own email address.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


def _register(client: TestClient, email: str, password: str = "password1"):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password})


def _login(client: TestClient, email: str, password: str = "password1"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegisterRoute:
    def test_created(self, api_client: TestClient) -> None:
        resp = _register(api_client, "register-ok@x.com")
        assert resp.status_code == 201
        assert resp.json() == {"message": "User created successfully."}

    def test_duplicate_is_409(self, api_client: TestClient) -> None:
        assert _register(api_client, "register-dup@x.com").status_code == 201
        resp = _register(api_client, "Register-Dup@X.com")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_invalid_email_is_400(self, api_client: TestClient) -> None:
        resp = _register(api_client, "not-an-email")
        assert resp.status_code == 400
        assert resp.json()["error"] == {
            "code": "validation_error",
            "message": "Invalid email format.",
            "detail": None,
        }

    def test_short_password_is_400(self, api_client: TestClient) -> None:
        resp = _register(api_client, "register-short@x.com", "short")
        assert resp.status_code == 400
        assert "8 characters" in resp.json()["error"]["message"]

    def test_missing_field_is_422_without_echoing_input(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/register", json={"password": "hunter2-secret"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"]["code"] == "validation_error"
        assert "hunter2-secret" not in resp.text

    def test_surrogate_password_is_400(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/v1/auth/register",
            content=b'{"email": "register-surrogate@x.com", "password": "\\ud800password"}',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"


class TestLoginRoute:
    def test_success(self, api_client: TestClient) -> None:
        _register(api_client, "login-ok@x.com")
        resp = _login(api_client, "login-ok@x.com")
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["expires_at"]

    def test_wrong_password_and_unknown_account_share_body(self, api_client: TestClient) -> None:
        _register(api_client, "login-uniform@x.com")
        wrong = _login(api_client, "login-uniform@x.com", "wrong-password")
        missing = _login(api_client, "missing@x.com", "anything")

        assert wrong.status_code == missing.status_code == 401
        assert wrong.json() == missing.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"

    def test_surrogate_escapes_get_uniform_401(self, api_client: TestClient) -> None:
        _register(api_client, "login-surrogate@x.com")
        missing = _login(api_client, "missing@x.com", "anything")
        for body in (
            b'{"email": "login-surrogate@x.com", "password": "\\ud800password"}',
            b'{"email": "login-\\udfff@x.com", "password": "password1"}',
        ):
            resp = api_client.post(
                "/api/v1/auth/login",
                content=body,
                headers={"Content-Type": "application/json"},
            )
            assert resp.status_code == 401
            assert resp.json() == missing.json()


class TestRefreshRoute:
    def test_rotation_and_replay(self, api_client: TestClient) -> None:
        _register(api_client, "refresh@x.com")
        t1 = _login(api_client, "refresh@x.com").json()["refresh_token"]

        first = api_client.post("/api/v1/auth/refresh", json={"refresh_token": t1})
        assert first.status_code == 200
        assert first.headers["cache-control"] == "no-store"
        t2 = first.json()["refresh_token"]
        assert t2 != t1

        replay = api_client.post("/api/v1/auth/refresh", json={"refresh_token": t1})
        assert replay.status_code == 401
        assert replay.json()["error"]["message"] == "Invalid credentials."

        assert api_client.post("/api/v1/auth/refresh", json={"refresh_token": t2}).status_code == 200

    def test_unknown_token_matches_replay_body(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": "bm9wZQ=="})
        assert resp.status_code == 401
        assert resp.json()["error"] == {
            "code": "bad_credentials",
            "message": "Invalid credentials.",
            "detail": None,
        }

    @pytest.mark.parametrize("token", ["", "A" * 200, "not a token"])
    def test_malformed_token_is_401(self, api_client: TestClient, token: str) -> None:
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": token})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"


class TestResetPasswordRoute:
    def test_requires_authentication(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/v1/auth/reset-password",
            json={"email": "anyone@x.com", "new_password": "new-password"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_rejects_garbage_bearer(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/v1/auth/reset-password",
            json={"email": "anyone@x.com", "new_password": "new-password"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    def test_own_account(self, api_client: TestClient) -> None:
        _register(api_client, "reset-own@x.com")
        token = _login(api_client, "reset-own@x.com").json()["access_token"]

        resp = api_client.post(
            "/api/v1/auth/reset-password",
            json={"email": "reset-own@x.com", "new_password": "new-password"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 200
        assert _login(api_client, "reset-own@x.com").status_code == 401
        assert _login(api_client, "reset-own@x.com", "new-password").status_code == 200

    def test_other_account_is_404(self, api_client: TestClient) -> None:
        _register(api_client, "reset-alice@x.com")
        _register(api_client, "reset-bob@x.com")
        token = _login(api_client, "reset-alice@x.com").json()["access_token"]

        resp = api_client.post(
            "/api/v1/auth/reset-password",
            json={"email": "reset-bob@x.com", "new_password": "hijacked-password"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"
        assert _login(api_client, "reset-bob@x.com").status_code == 200
