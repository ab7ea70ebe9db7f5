"""HTTP tests for the /auth endpoints."""

import pytest
from fastapi.testclient import TestClient

from api.auth import get_auth_service
from app.core.config import get_settings
from app.core.errors import GENERIC_ERROR_MESSAGE
from app.db.database import SessionLocal
from app.models.user import RefreshToken

PASSWORD = "Abcd1234!"
BASE_URL = "https://testserver"


def register(client, email="alice@example.com", password=PASSWORD, first_name="Alice", last_name="Smith", **kwargs):
    return client.post(
        "/auth/register",
        json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
        **kwargs,
    )


def login(client, email="alice@example.com", password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_root_and_health(client):
    assert client.get("/").json()["success"] is True
    assert client.get("/health").json() == {"success": True, "status": "ok"}


class TestRegisterAndLogin:

    def test_register_returns_access_token_and_sets_refresh_cookie(self, client):
        response = register(client)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["accessToken"]
        assert body["expiresAt"]
        assert body["user"]["roles"] == ["User"]
        assert body["user"]["fullName"] == "Alice Smith"
        assert "refreshToken" not in body

        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith("refreshtoken=")
        assert "httponly" in set_cookie
        assert "secure" in set_cookie
        assert "samesite=strict" in set_cookie

    def test_register_duplicate_email(self, client):
        register(client)

        response = register(client, email="Alice@Example.com")

        assert response.status_code == 400
        assert response.json()["message"] == "User with this email already exists"

    def test_register_weak_password(self, client):
        response = register(client, password="password")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"]

    def test_register_malformed_body(self, client):
        response = register(client, email="not-an-email")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request"

    def test_forwarded_for_ignored_from_untrusted_peer(self, client):
        register(client, headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})

        with SessionLocal() as db:
            assert db.query(RefreshToken).one().created_by_ip == "testclient"

    def test_forwarded_for_honoured_from_trusted_proxy(self, app, settings):
        # TestClient connects from the peer address "testclient"
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"trusted_proxies": ("testclient",)})
        client = TestClient(app, base_url=BASE_URL)

        register(client, headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})

        with SessionLocal() as db:
            assert db.query(RefreshToken).one().created_by_ip == "203.0.113.5"

    def test_register_password_with_nul_byte(self, client):
        response = register(client, password="Abcd1234!\u0000")

        assert response.status_code == 400
        assert response.json()["errors"] == ["Passwords must not contain the NUL character."]

    def test_login_success(self, client):
        register(client)

        response = login(client)

        assert response.status_code == 200
        assert response.json()["message"] == "Login successful"
        assert "refreshToken=" in response.headers["set-cookie"]

    @pytest.mark.parametrize("email,password", [
        ("alice@example.com", "Wrong123!"),
        ("nobody@example.com", PASSWORD),
    ])
    def test_login_failure_is_generic(self, client, email, password):
        register(client)

        response = login(client, email, password)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid email or password"
        assert "set-cookie" not in response.headers

    def test_login_lockout(self, client, settings):
        register(client)
        for _ in range(settings.lockout_threshold):
            login(client, password="Wrong123!")

        response = login(client)

        assert response.status_code == 400
        assert response.json()["message"] == "Account is locked out"


class TestRefreshToken:

    def test_refresh_rotates_cookie(self, client, app):
        register(client)
        original = client.cookies.get("refreshToken")

        response = client.post("/auth/refresh-token")

        assert response.status_code == 200
        body = response.json()
        assert body["accessToken"]
        assert "user" not in body
        assert client.cookies.get("refreshToken") != original

        replay = TestClient(app, base_url=BASE_URL, cookies={"refreshToken": original})
        rejected = replay.post("/auth/refresh-token")
        assert rejected.status_code == 400
        assert rejected.json()["message"] == "Invalid or expired refresh token"

    def test_refresh_without_cookie(self, client):
        response = client.post("/auth/refresh-token")

        assert response.status_code == 400
        assert response.json()["message"] == "Refresh token is required"

    def test_refreshed_access_token_works(self, client):
        register(client)

        token = client.post("/auth/refresh-token").json()["accessToken"]

        assert client.get("/auth/me", headers=bearer(token)).status_code == 200


class TestRevokeToken:

    def test_revoke_from_body(self, client, app):
        register(client)
        token = client.cookies.get("refreshToken")
        anonymous = TestClient(app, base_url=BASE_URL)

        first = anonymous.post("/auth/revoke-token", json={"refreshToken": token})
        second = anonymous.post("/auth/revoke-token", json={"refreshToken": token})

        assert first.status_code == 200
        assert first.json()["message"] == "Token revoked successfully"
        assert second.status_code == 400
        assert second.json()["message"] == "Failed to revoke token"

    def test_revoke_from_cookie(self, client):
        register(client)

        response = client.post("/auth/revoke-token")

        assert response.status_code == 200
        assert client.post("/auth/refresh-token").status_code == 400

    def test_revoke_without_token(self, client):
        response = client.post("/auth/revoke-token", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Token is required"


class TestAuthenticatedEndpoints:

    def test_me(self, client):
        token = register(client).json()["accessToken"]

        response = client.get("/auth/me", headers=bearer(token))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "alice@example.com"
        assert data["firstName"] == "Alice"
        assert data["roles"] == ["User"]

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-jwt"}, {"Authorization": "Basic abc"}])
    def test_me_requires_valid_token(self, client, headers):
        response = client.get("/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Unauthorized access", "errors": []}
        assert response.headers["www-authenticate"] == "Bearer"

    def test_logout_revokes_sessions_and_clears_cookie(self, client, app):
        token = register(client).json()["accessToken"]
        refresh_cookie = client.cookies.get("refreshToken")

        response = client.post("/auth/logout", headers=bearer(token))

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
        assert "max-age=0" in response.headers["set-cookie"].lower()

        replay = TestClient(app, base_url=BASE_URL, cookies={"refreshToken": refresh_cookie})
        assert replay.post("/auth/refresh-token").status_code == 400

    def test_logout_requires_authentication(self, client):
        assert client.post("/auth/logout").status_code == 401

    def test_change_password(self, client):
        token = register(client).json()["accessToken"]

        wrong = client.post("/auth/change-password", headers=bearer(token),
                            json={"currentPassword": "Nope1234!", "newPassword": "Xyz98765?"})
        assert wrong.status_code == 400
        assert wrong.json()["errors"] == ["Incorrect password."]
        assert login(client).status_code == 200

        ok = client.post("/auth/change-password", headers=bearer(token),
                         json={"currentPassword": PASSWORD, "newPassword": "Xyz98765?"})
        assert ok.status_code == 200
        assert ok.json()["message"] == "Password changed successfully"
        assert login(client, password="Xyz98765?").status_code == 200
        assert login(client).status_code == 400


def test_cookie_transport_for_access_token(app, settings):
    app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"access_token_transport": "cookie"})
    client = TestClient(app, base_url=BASE_URL)

    token = register(client).json()["accessToken"]

    assert client.cookies.get("accessToken") == token
    assert client.get("/auth/me").status_code == 200

    # the bearer channel is ignored when cookies carry the access token
    headerless = TestClient(app, base_url=BASE_URL)
    assert headerless.get("/auth/me", headers=bearer(token)).status_code == 401


def test_unexpected_error_returns_generic_500(app):
    def broken_service():
        raise RuntimeError("database exploded")

    app.dependency_overrides[get_auth_service] = broken_service
    client = TestClient(app, base_url=BASE_URL, raise_server_exceptions=False)

    response = login(client)

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": GENERIC_ERROR_MESSAGE, "errors": []}
