"""Tests for the revoking-side endpoints"""
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from conftest import bearer
from tokenguard.models.revoked_token import RevokedToken
from tokenguard.utils.auth import hash_token
from tokenguard.utils.errors import RevocationStoreError
from tokenguard.utils.jwt_utils import utcnow


def test_logout_blacklists_access_token(client: TestClient, register):
    """Test that a logged-out access token is blacklisted everywhere"""
    access, _, _ = register()

    response = client.post("/logout", headers=bearer(access))
    assert response.status_code == 200
    assert response.json()["success"] is True

    check = client.get(f"/check-token/{access}")
    assert check.status_code == 200
    assert check.json()["isBlacklisted"] is True
    assert check.json()["blacklistedAt"] is not None

    me = client.get("/auth/me", headers=bearer(access))
    assert me.status_code == 403
    assert me.json()["error"] == "TOKEN_BLACKLISTED"


def test_logout_revokes_refresh_cookie(client: TestClient, register):
    access, refresh, _ = register()
    client.cookies.clear()
    client.cookies.set("refreshToken", refresh)

    response = client.post("/logout", headers=bearer(access))
    assert response.status_code == 200
    assert "refreshToken=" in response.headers["set-cookie"]

    assert client.get(f"/check-token/{refresh}").json()["isBlacklisted"] is True

    client.cookies.set("refreshToken", refresh)
    again = client.post("/auth/refresh")
    assert again.status_code == 401
    assert again.json()["error"] == "INVALID_REFRESH_TOKEN"


def test_logout_with_garbage_still_succeeds(client: TestClient):
    """Logout never fails and always clears the cookie"""
    client.cookies.set("refreshToken", "garbage")

    response = client.post("/logout", headers=bearer("garbage"))
    assert response.status_code == 200
    assert "refreshToken=" in response.headers["set-cookie"]


def test_logout_without_anything(client: TestClient):
    client.cookies.clear()

    response = client.post("/logout")
    assert response.status_code == 200


def test_logout_twice_is_idempotent(client: TestClient, register, db):
    access, _, _ = register()

    assert client.post("/logout", headers=bearer(access)).status_code == 200
    assert client.post("/logout", headers=bearer(access)).status_code == 200
    assert db.query(RevokedToken).filter(RevokedToken.token_hash == hash_token(access)).count() == 1


def test_check_token_unknown(client: TestClient):
    response = client.get("/check-token/not-a-token")
    assert response.status_code == 200
    assert response.json() == {"isBlacklisted": False, "blacklistedAt": None}


def test_logout_all(client: TestClient, register):
    access, first_refresh, _ = register()
    second = client.post("/auth/login", json={"email": "alice@tokenguard.io", "password": "Sup3r$ecret!"})
    second_refresh = second.cookies.get("refreshToken")

    response = client.post("/logout-all", headers=bearer(access))
    assert response.status_code == 200
    assert response.json()["revokedRefreshTokens"] == 2
    assert "refreshToken=" in response.headers["set-cookie"]

    for token in (access, first_refresh, second_refresh):
        assert client.get(f"/check-token/{token}").json()["isBlacklisted"] is True


def test_logout_all_requires_auth(client: TestClient):
    response = client.post("/logout-all")
    assert response.status_code == 401


def test_invalidate_token_then_duplicate(client: TestClient, register):
    victim_access, _, _ = register("victim@tokenguard.io")
    admin_access, _, _ = register("operator@tokenguard.io")

    payload = {"token": victim_access, "tokenType": "access"}
    first = client.post("/invalidate-token", json=payload, headers=bearer(admin_access))
    assert first.status_code == 200

    second = client.post("/invalidate-token", json=payload, headers=bearer(admin_access))
    assert second.status_code == 409
    assert second.json()["error"] == "TOKEN_ALREADY_BLACKLISTED"

    assert client.get("/auth/me", headers=bearer(victim_access)).status_code == 403


def test_invalidate_token_missing_parameters(client: TestClient, register):
    access, _, _ = register()

    response = client.post("/invalidate-token", json={"tokenType": "access"}, headers=bearer(access))
    assert response.status_code == 400
    assert response.json()["error"] == "MISSING_PARAMETERS"


def test_invalidate_token_bad_type(client: TestClient, register):
    access, _, _ = register()

    response = client.post("/invalidate-token", json={"token": access, "tokenType": "id"}, headers=bearer(access))
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_TOKEN_TYPE"


def test_invalidate_token_invalid(client: TestClient, register):
    access, _, _ = register()

    response = client.post(
        "/invalidate-token", json={"token": "garbage", "tokenType": "access"}, headers=bearer(access)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_TOKEN"


def test_invalidate_requires_auth(client: TestClient):
    response = client.post("/invalidate-token", json={"token": "x", "tokenType": "access"})
    assert response.status_code == 401


def test_sessions(client: TestClient, register):
    access, refresh, _ = register()
    client.post("/auth/login", json={"email": "alice@tokenguard.io", "password": "Sup3r$ecret!"})

    response = client.get("/sessions", headers=bearer(access))
    assert response.status_code == 200
    assert response.json()["totalSessions"] == 2

    client.post("/invalidate-token", json={"token": refresh, "tokenType": "refresh"}, headers=bearer(access))

    data = client.get("/sessions", headers=bearer(access)).json()
    assert data["totalSessions"] == 1
    assert len(data["activeSessions"]) == 1
    assert set(data["activeSessions"][0]) == {"tokenId", "createdAt", "expiresAt"}


def test_cleanup_tokens(client: TestClient, register, db):
    access, _, body = register()
    client.post("/logout", headers=bearer(access))
    now = utcnow().replace(tzinfo=None)
    db.add(RevokedToken(
        token_hash=hash_token("long-gone"),
        token_type="access",
        user_id=body["user"]["userId"],
        expires_at=now - timedelta(seconds=1),
        revoked_at=now - timedelta(hours=1),
    ))
    db.commit()

    response = client.post("/cleanup-tokens")
    assert response.status_code == 200

    data = response.json()
    assert data["removedCount"] == 1
    assert data["cleanupTime"]
    assert client.get(f"/check-token/{access}").json()["isBlacklisted"] is True


def test_token_stats(client: TestClient, register):
    access, _, _ = register()
    client.post("/logout", headers=bearer(access))

    response = client.get("/token-stats")
    assert response.status_code == 200

    data = response.json()
    assert data["totalEntries"] == 1
    assert data["activeEntries"] == 1
    assert data["byType"] == {"access": 1}


def test_maintenance_key_enforced_when_configured(client: TestClient, monkeypatch):
    from tokenguard.api import deps

    keyed = deps.settings.model_copy(update={"MAINTENANCE_API_KEY": "maintenance-key"})
    monkeypatch.setattr(deps, "settings", keyed)

    assert client.post("/cleanup-tokens").status_code == 401
    assert client.post("/cleanup-tokens", headers={"X-Admin-Key": "wrong"}).status_code == 401
    assert client.get("/token-stats", headers={"X-Admin-Key": "maintenance-key"}).status_code == 200


def test_responses_carry_request_id(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


class _UnavailableLedger:
    def is_revoked(self, token, now=None):
        raise RevocationStoreError("connection refused")


def test_gate_fails_closed_when_ledger_unavailable(client: TestClient, register):
    from tokenguard.api.deps import get_revocation_checker
    from tokenguard.main import app

    access, _, _ = register()
    app.dependency_overrides[get_revocation_checker] = lambda: _UnavailableLedger()

    response = client.get("/auth/me", headers=bearer(access))
    assert response.status_code == 503
    assert response.json()["error"] == "SERVICE_UNAVAILABLE"
    assert "connection refused" not in response.text


class _BrokenService:
    def logout(self, access_token, refresh_token=None, context=None):
        raise RuntimeError("boom")


def test_logout_survives_internal_failure(client: TestClient):
    from tokenguard.api.deps import get_revocation_service
    from tokenguard.main import app

    app.dependency_overrides[get_revocation_service] = lambda: _BrokenService()
    client.cookies.set("refreshToken", "stale")

    response = client.post("/logout", headers=bearer("whatever"))
    assert response.status_code == 200
    assert "refreshToken=" in response.headers["set-cookie"]


def test_logout_all_survives_refresh_list_failure(client: TestClient, register, monkeypatch):
    from tokenguard.services.users import UserRepository

    access, refresh, _ = register()

    def locked(self, user_id):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(UserRepository, "remove_all_refresh_tokens", locked)

    response = client.post("/logout-all", headers=bearer(access))
    assert response.status_code == 200
    assert "refreshToken=" in response.headers["set-cookie"]
    assert client.get(f"/check-token/{refresh}").json()["isBlacklisted"] is True


class _BrokenLogoutAll:
    def logout_all(self, subject_id, current_access_token, context=None):
        raise RuntimeError("boom")


def test_logout_all_survives_internal_failure(client: TestClient, register):
    from tokenguard.api.deps import get_revocation_service
    from tokenguard.main import app

    access, _, _ = register()
    app.dependency_overrides[get_revocation_service] = lambda: _BrokenLogoutAll()

    response = client.post("/logout-all", headers=bearer(access))
    assert response.status_code == 200
    assert response.json()["revokedRefreshTokens"] == 0
    assert "refreshToken=" in response.headers["set-cookie"]
