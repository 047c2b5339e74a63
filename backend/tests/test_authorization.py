# Overview: Pytest coverage for authentication failures and role-level authorization.

"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401 AUTH_MISSING
- Unknown, revoked and expired tokens are rejected with distinct codes
- Deactivated accounts are rejected with AUTH_INACTIVE
- End users are denied shop-owner operations (403)
- Shop owners are denied platform operations (403)
"""

from datetime import timedelta

import pytest

from emilocker.errors import AUTH_EXPIRED, AUTH_INACTIVE, AUTH_INVALID, AUTH_MISSING
from emilocker.models import SessionToken
from emilocker.services import session_service
from emilocker.time_utils import utcnow


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/shops"),
            ("POST", "/api/shops"),
            ("GET", "/api/shops/1"),
            ("GET", "/api/shops/1/statistics"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/devices"),
            ("POST", "/api/devices/1/lock"),
            ("POST", "/api/devices/1/unlock"),
            ("POST", "/api/devices/bulk/lock"),
            ("POST", "/api/devices/register"),
            ("GET", "/api/admin/dashboard"),
            ("GET", "/api/admin/logs"),
            ("GET", "/api/admin/system/health"),
            ("GET", "/api/auth/profile"),
            ("POST", "/api/auth/logout"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["code"] == AUTH_MISSING

    def test_malformed_header(self, client, db_session):
        resp = client.get("/api/users", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_MISSING

    def test_public_endpoints(self, client, db_session):
        assert client.get("/health").status_code == 200
        assert client.get("/version").json["api_version"] == "1.0.0"


class TestIdentityResolution:

    def test_unknown_token(self, client, db_session):
        resp = client.get("/api/users", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INVALID

    def test_revoked_token(self, client, db_session, owner_a):
        _, token = session_service.create_session(owner_a.id)
        session_service.revoke_session(token)

        resp = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INVALID

    def test_expired_token(self, client, db_session, owner_a):
        session, token = session_service.create_session(owner_a.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        resp = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_EXPIRED

    def test_idle_token_revoked(self, client, db_session, owner_a):
        session, token = session_service.create_session(owner_a.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()
        session_id = session.id

        resp = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_EXPIRED

        db_session.expire_all()
        stored = db_session.get(SessionToken, session_id)
        assert stored.is_revoked is True
        assert stored.revoked_reason == "Idle timeout"

    def test_deactivated_account(self, client, db_session, owner_a, owner_a_headers):
        owner_a.is_active = False
        db_session.commit()

        resp = client.get("/api/users", headers=owner_a_headers)
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INACTIVE

    def test_revoked_token_of_deactivated_account(self, client, db_session, owner_a):
        _, token = session_service.create_session(owner_a.id)
        session_service.revoke_session(token)
        owner_a.is_active = False
        db_session.commit()

        resp = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INVALID


# =============================================================================
# ROLE GATE: 403
# =============================================================================


class TestUserDeniedOwnerOperations:
    """End users cannot perform shop-owner operations."""

    def test_cannot_create_user(self, client, customer_a_headers):
        resp = client.post(
            "/api/users",
            json={"name": "Sneaky", "phone": "9100000099", "password": "secret1"},
            headers=customer_a_headers,
        )
        assert resp.status_code == 403

    def test_cannot_delete_user(self, client, customer_a_headers, owner_a):
        resp = client.delete(f"/api/users/{owner_a.id}", headers=customer_a_headers)
        assert resp.status_code == 403

    def test_cannot_lock_own_device(self, client, customer_a_headers, device_a):
        resp = client.post(f"/api/devices/{device_a.id}/lock", json={}, headers=customer_a_headers)
        assert resp.status_code == 403

    def test_lock_with_malformed_body_is_still_forbidden(self, client, customer_a_headers, device_a):
        resp = client.post(f"/api/devices/{device_a.id}/lock", json=[1], headers=customer_a_headers)
        assert resp.status_code == 403

    def test_cannot_unlock_own_device(self, client, db_session, customer_a_headers, device_a):
        device_a.is_locked = True
        db_session.commit()
        resp = client.post(f"/api/devices/{device_a.id}/unlock", headers=customer_a_headers)
        assert resp.status_code == 403

    def test_cannot_view_dashboard(self, client, customer_a_headers):
        resp = client.get("/api/admin/dashboard", headers=customer_a_headers)
        assert resp.status_code == 403

    def test_cannot_view_shop(self, client, customer_a_headers, shop_a):
        resp = client.get(f"/api/shops/{shop_a.id}", headers=customer_a_headers)
        assert resp.status_code == 403


class TestOwnerDeniedPlatformOperations:
    """Shop owners cannot perform superadmin operations."""

    def test_cannot_list_shops(self, client, owner_a_headers):
        resp = client.get("/api/shops", headers=owner_a_headers)
        assert resp.status_code == 403

    def test_cannot_create_shop(self, client, owner_a_headers, customer_a):
        resp = client.post(
            "/api/shops",
            json={"shop_id": "NEW-SHOP", "name": "New Shop", "owner_id": customer_a.id},
            headers=owner_a_headers,
        )
        assert resp.status_code == 403

    def test_cannot_delete_own_shop(self, client, owner_a_headers, shop_a):
        resp = client.delete(f"/api/shops/{shop_a.id}", headers=owner_a_headers)
        assert resp.status_code == 403

    def test_cannot_view_system_health(self, client, owner_a_headers):
        resp = client.get("/api/admin/system/health", headers=owner_a_headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize("role", ["shopowner", "superadmin"])
    def test_cannot_create_privileged_users(self, client, owner_a_headers, role):
        resp = client.post(
            "/api/users",
            json={"name": "Promoted", "phone": "9100000098", "password": "secret1", "role": role},
            headers=owner_a_headers,
        )
        assert resp.status_code == 403


class TestSuperadminAccess:

    def test_lists_shops(self, client, superadmin_headers, shop_a, shop_b):
        resp = client.get("/api/shops", headers=superadmin_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["pagination"]["total_items"] == 2

    def test_system_health(self, client, superadmin_headers):
        resp = client.get("/api/admin/system/health", headers=superadmin_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["database"] == "connected"
        assert set(data) >= {"status", "database", "uptime", "memory", "timestamp"}
        assert data["memory"]["used"] > 0
