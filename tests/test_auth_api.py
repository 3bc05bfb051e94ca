"""Tests for the issuing-side endpoints"""
from datetime import timedelta

from fastapi.testclient import TestClient

from conftest import STRONG_PASSWORD, bearer
from tokenguard.config import settings
from tokenguard.utils.jwt_utils import TokenCodec, utcnow


def test_register(client: TestClient):
    """Test registering a user"""
    response = client.post("/auth/register", json={"email": "Alice@TokenGuard.io", "password": STRONG_PASSWORD})
    assert response.status_code == 201

    data = response.json()
    assert data["success"] is True
    assert data["accessToken"]
    assert data["user"]["userId"].startswith("usr_")
    assert data["user"]["email"] == "alice@tokenguard.io"
    assert "refreshToken" not in data
    assert "password" not in str(data).lower()

    set_cookie = response.headers["set-cookie"]
    assert "refreshToken=" in set_cookie
    assert "httponly" in set_cookie.lower()


def test_register_duplicate_email(client: TestClient, register):
    register()

    response = client.post("/auth/register", json={"email": "alice@tokenguard.io", "password": STRONG_PASSWORD})
    assert response.status_code == 409
    assert response.json()["error"] == "USER_EXISTS"


def test_register_weak_password(client: TestClient):
    response = client.post("/auth/register", json={"email": "bob@tokenguard.io", "password": "password"})
    assert response.status_code == 400

    data = response.json()
    assert data == {"success": False, "error": "WEAK_PASSWORD", "message": data["message"]}


def test_register_invalid_email(client: TestClient):
    response = client.post("/auth/register", json={"email": "not-an-email", "password": STRONG_PASSWORD})
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_login(client: TestClient, register):
    register()

    response = client.post("/auth/login", json={"email": "alice@tokenguard.io", "password": STRONG_PASSWORD})
    assert response.status_code == 200
    assert response.json()["accessToken"]
    assert response.cookies.get("refreshToken")


def test_login_wrong_password(client: TestClient, register):
    register()

    response = client.post("/auth/login", json={"email": "alice@tokenguard.io", "password": "Wr0ng$Password"})
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"


def test_login_unknown_email(client: TestClient):
    response = client.post("/auth/login", json={"email": "nobody@tokenguard.io", "password": STRONG_PASSWORD})
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"


def test_me(client: TestClient, register):
    access, _, body = register()

    response = client.get("/auth/me", headers=bearer(access))
    assert response.status_code == 200
    assert response.json()["user"]["userId"] == body["user"]["userId"]


def test_me_requires_token(client: TestClient):
    response = client.get("/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "MISSING_TOKEN"


def test_me_rejects_malformed_header(client: TestClient, register):
    access, _, _ = register()

    response = client.get("/auth/me", headers={"Authorization": f"Token {access}"})
    assert response.status_code == 401
    assert response.json()["error"] == "MISSING_TOKEN"


def test_me_rejects_garbage_token(client: TestClient):
    response = client.get("/auth/me", headers=bearer("garbage"))
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN"


def test_me_rejects_refresh_token(client: TestClient, register):
    _, refresh, _ = register()

    response = client.get("/auth/me", headers=bearer(refresh))
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN_TYPE"


def test_me_rejects_expired_token(client: TestClient, register):
    _, _, body = register()
    past = TokenCodec.from_settings(settings, clock=lambda: utcnow() - timedelta(days=2))
    expired = past.issue_access(body["user"]["userId"]).token

    response = client.get("/auth/me", headers=bearer(expired))
    assert response.status_code == 401
    assert response.json()["error"] == "TOKEN_EXPIRED"


def test_refresh(client: TestClient, register):
    _, refresh, _ = register()
    client.cookies.clear()
    client.cookies.set("refreshToken", refresh)

    response = client.post("/auth/refresh")
    assert response.status_code == 200

    new_access = response.json()["accessToken"]
    assert client.get("/auth/me", headers=bearer(new_access)).status_code == 200


def test_refresh_without_cookie(client: TestClient):
    client.cookies.clear()

    response = client.post("/auth/refresh")
    assert response.status_code == 401
    assert response.json()["error"] == "MISSING_REFRESH_TOKEN"


def test_refresh_with_expired_token(client: TestClient, register):
    _, _, body = register()
    past = TokenCodec.from_settings(settings, clock=lambda: utcnow() - timedelta(days=8))
    client.cookies.clear()
    client.cookies.set("refreshToken", past.issue_refresh(body["user"]["userId"]).token)

    response = client.post("/auth/refresh")
    assert response.status_code == 401
    assert response.json()["error"] == "REFRESH_TOKEN_EXPIRED"


def test_refresh_with_access_token(client: TestClient, register):
    access, _, _ = register()
    client.cookies.clear()
    client.cookies.set("refreshToken", access)

    response = client.post("/auth/refresh")
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_REFRESH_TOKEN"


def test_refresh_token_not_on_file_is_rejected(client: TestClient, register):
    """A validly signed refresh token that was never recorded cannot be used"""
    _, _, body = register()
    stray = TokenCodec.from_settings(settings).issue_refresh(body["user"]["userId"]).token
    client.cookies.clear()
    client.cookies.set("refreshToken", stray)

    response = client.post("/auth/refresh")
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_REFRESH_TOKEN"
