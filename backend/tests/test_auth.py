# Overview: Pytest coverage for login, logout, self-registration and profile endpoints.

from datetime import timedelta

import pytest

from emilocker.errors import AUTH_INACTIVE, AUTH_INVALID, DUPLICATE_SHOP, DUPLICATE_USER, ValidationError
from emilocker.models import ActivityAction, ActivityLog, SessionToken, Shop, User
from emilocker.permissions import Role
from emilocker.services import session_service
from emilocker.services.auth_service import hash_password, verify_password
from emilocker.time_utils import utcnow

from conftest import PASSWORD, auth_headers, get_auth_token


class TestPasswordHashing:

    def test_hash_and_verify(self, app):
        with app.app_context():
            hashed = hash_password("secret1")
            assert hashed != "secret1"
            assert verify_password("secret1", hashed)
            assert not verify_password("wrong", hashed)

    def test_malformed_hash_never_matches(self):
        assert verify_password("secret1", "not-a-bcrypt-hash") is False

    def test_short_password_rejected(self, app):
        with app.app_context():
            with pytest.raises(ValidationError):
                hash_password("12345")


class TestLogin:

    def test_login_by_phone(self, client, db_session, owner_a, shop_a):
        resp = client.post("/api/auth/login", json={"identifier": owner_a.phone, "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.json["data"]
        assert len(data["token"]) == 64
        assert data["user"]["id"] == owner_a.id
        assert data["shop"]["id"] == shop_a.id
        assert "password_hash" not in data["user"]

    def test_login_by_email_case_insensitive(self, client, db_session, superadmin):
        assert get_auth_token(client, "ADMIN@emi.test") is not None
        assert get_auth_token(client, "admin@emi.test") is not None

    def test_login_records_activity(self, client, db_session, owner_a):
        get_auth_token(client, owner_a.phone)
        db_session.refresh(owner_a)
        assert owner_a.last_login_at is not None
        assert db_session.query(ActivityLog).filter_by(action=ActivityAction.USER_LOGIN).count() == 1

    @pytest.mark.parametrize("identifier,password", [
        ("9100000001", "wrong-password"),
        ("0000000000", "Password123"),
    ])
    def test_bad_credentials_look_the_same(self, client, db_session, owner_a, identifier, password):
        resp = client.post("/api/auth/login", json={"identifier": identifier, "password": password})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INVALID
        assert resp.json["message"] == "Invalid credentials"

    def test_deactivated_account(self, client, db_session, owner_a):
        owner_a.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"identifier": owner_a.phone, "password": PASSWORD})
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INACTIVE

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"identifier": "9100000001"})
        assert resp.status_code == 400


class TestLogout:

    def test_logout_revokes_token(self, client, db_session, owner_a):
        token = get_auth_token(client, owner_a.phone)
        headers = auth_headers(token)

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        resp = client.get("/api/auth/profile", headers=headers)
        assert resp.status_code == 401
        assert resp.json["code"] == AUTH_INVALID


class TestRegister:

    PAYLOAD = {
        "name": "Ravi Kumar",
        "phone": "9300000001",
        "email": "Ravi@Example.com",
        "password": "secret1",
        "shop_id": "RAVI-MOBILES",
        "shop_name": "Ravi Mobiles",
        "business_type": "mobile",
        "address": {"city": "Pune", "state": "MH"},
    }

    def test_creates_shop_and_owner(self, client, db_session):
        resp = client.post("/api/auth/register", json=self.PAYLOAD)
        assert resp.status_code == 201
        data = resp.json["data"]

        shop = db_session.get(Shop, data["shop"]["id"])
        user = db_session.get(User, data["user"]["id"])
        assert shop.owner_id == user.id
        assert user.role == Role.SHOPOWNER.value
        assert user.shop_id == shop.id
        assert user.email == "ravi@example.com"
        assert shop.business_type == "mobile"
        assert shop.stat_total_users == 1

        profile = client.get("/api/auth/profile", headers=auth_headers(data["token"]))
        assert profile.status_code == 200

    def test_duplicate_shop_code(self, client, db_session, shop_a):
        payload = dict(self.PAYLOAD, shop_id=shop_a.shop_code)
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 400
        assert resp.json["code"] == DUPLICATE_SHOP
        assert db_session.query(User).filter_by(phone=self.PAYLOAD["phone"]).count() == 0

    def test_duplicate_phone(self, client, db_session, owner_a):
        payload = dict(self.PAYLOAD, phone=owner_a.phone)
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 400
        assert resp.json["code"] == DUPLICATE_USER
        assert db_session.query(Shop).filter_by(shop_code="RAVI-MOBILES").count() == 0

    @pytest.mark.parametrize("field,value", [
        ("phone", "12"),
        ("password", "123"),
        ("shop_id", "x"),
        ("email", "not-an-email"),
        ("business_type", "spaceships"),
    ])
    def test_validation(self, client, db_session, field, value):
        resp = client.post("/api/auth/register", json=dict(self.PAYLOAD, **{field: value}))
        assert resp.status_code == 400


class TestProfile:

    def test_update_profile(self, client, db_session, customer_a, customer_a_headers):
        resp = client.put(
            "/api/auth/profile",
            json={"name": "Customer Alpha", "address": {"city": "Chennai"}},
            headers=customer_a_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["name"] == "Customer Alpha"
        assert resp.json["data"]["user"]["address"]["city"] == "Chennai"

    def test_change_password_revokes_sessions(self, client, db_session, owner_a):
        token = get_auth_token(client, owner_a.phone)
        other_token = get_auth_token(client, owner_a.phone)

        resp = client.put(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        new_token = resp.json["data"]["token"]

        assert client.get("/api/auth/profile", headers=auth_headers(other_token)).status_code == 401
        assert client.get("/api/auth/profile", headers=auth_headers(new_token)).status_code == 200
        assert get_auth_token(client, owner_a.phone, "brand-new-pass") is not None

    def test_change_password_wrong_current(self, client, db_session, owner_a_headers):
        resp = client.put(
            "/api/auth/change-password",
            json={"current_password": "nope-nope", "new_password": "brand-new-pass"},
            headers=owner_a_headers,
        )
        assert resp.status_code == 400


class TestSessionCleanup:

    def test_cleanup_removes_old_revoked(self, db_session, owner_a):
        session, token = session_service.create_session(owner_a.id)
        session_service.revoke_session(token)
        session.created_at = utcnow() - timedelta(days=40)
        db_session.commit()

        session_service.create_session(owner_a.id)

        assert session_service.cleanup_expired_sessions(30) == 1
        assert db_session.query(SessionToken).count() == 1
