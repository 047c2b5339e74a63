# Overview: Pytest coverage for user account management and EMI bookkeeping.

import pytest

from emilocker.errors import DUPLICATE_DEVICE, DUPLICATE_USER
from emilocker.models import ActivityAction, ActivityLog, Device, SessionToken, Severity, Shop, User

from conftest import get_auth_token, make_shop


class TestCreateUser:

    def test_owner_creates_customer_in_own_shop(self, client, db_session, owner_a_headers, owner_a, shop_a):
        resp = client.post("/api/users", json={
            "name": "Meena",
            "phone": "9100000060",
            "email": "meena@example.com",
            "password": "secret1",
            "emi_details": {
                "total_amount_cents": 30_000_00,
                "paid_amount_cents": 10_000_00,
                "monthly_emi_cents": 2_500_00,
                "due_date": "2026-11-05",
            },
        }, headers=owner_a_headers)

        assert resp.status_code == 201
        user = resp.json["data"]["user"]
        assert user["shop_id"] == shop_a.id
        assert user["role"] == "user"
        assert user["emi_details"]["remaining_amount_cents"] == 20_000_00
        assert user["emi_details"]["due_date"] == "2026-11-05T00:00:00Z"

        entry = db_session.query(ActivityLog).filter_by(action=ActivityAction.USER_CREATED).one()
        assert entry.performed_by_id == owner_a.id

    def test_paid_cannot_exceed_total(self, client, owner_a_headers):
        resp = client.post("/api/users", json={
            "name": "Overpaid",
            "phone": "9100000061",
            "password": "secret1",
            "emi_details": {"total_amount_cents": 100, "paid_amount_cents": 200},
        }, headers=owner_a_headers)
        assert resp.status_code == 400

    def test_negative_amount_rejected(self, client, owner_a_headers):
        resp = client.post("/api/users", json={
            "name": "Negative",
            "phone": "9100000062",
            "password": "secret1",
            "emi_details": {"total_amount_cents": -5},
        }, headers=owner_a_headers)
        assert resp.status_code == 400

    def test_duplicate_phone(self, client, owner_a_headers, customer_a):
        resp = client.post("/api/users", json={
            "name": "Copycat",
            "phone": customer_a.phone,
            "password": "secret1",
        }, headers=owner_a_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == DUPLICATE_USER

    def test_superadmin_creates_owner_for_ownerless_shop(self, client, db_session, superadmin_headers):
        shop = make_shop(db_session, code="NO-OWNER", name="Ownerless Shop")
        resp = client.post("/api/users", json={
            "name": "New Owner",
            "phone": "9100000063",
            "password": "secret1",
            "role": "shopowner",
            "shop_id": shop.id,
        }, headers=superadmin_headers)

        assert resp.status_code == 201
        db_session.refresh(shop)
        assert shop.owner_id == resp.json["data"]["user"]["id"]

    def test_second_owner_rejected(self, client, superadmin_headers, owner_a, shop_a):
        resp = client.post("/api/users", json={
            "name": "Usurper",
            "phone": "9100000064",
            "password": "secret1",
            "role": "shopowner",
            "shop_id": shop_a.id,
        }, headers=superadmin_headers)
        assert resp.status_code == 400

    def test_superadmin_needs_shop_for_customers(self, client, superadmin_headers):
        resp = client.post("/api/users", json={
            "name": "Floating",
            "phone": "9100000065",
            "password": "secret1",
        }, headers=superadmin_headers)
        assert resp.status_code == 400

    def test_unknown_shop(self, client, superadmin_headers):
        resp = client.post("/api/users", json={
            "name": "Lost",
            "phone": "9100000066",
            "password": "secret1",
            "shop_id": 424242,
        }, headers=superadmin_headers)
        assert resp.status_code == 404


class TestUpdateUser:

    def test_payment_recorded(self, client, db_session, owner_a_headers, customer_a, shop_a):
        resp = client.put(
            f"/api/users/{customer_a.id}",
            json={"emi_details": {"paid_amount_cents": 500_000}},
            headers=owner_a_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["emi_details"]["remaining_amount_cents"] == 700_000

        entry = db_session.query(ActivityLog).filter_by(action=ActivityAction.EMI_PAYMENT).one()
        assert entry.extra_data["previous_paid_cents"] == 200_000
        assert entry.extra_data["paid_cents"] == 500_000

        db_session.refresh(shop_a)
        assert shop_a.stat_total_revenue_cents == 500_000

    def test_default_recorded_high(self, client, db_session, owner_a_headers, customer_a):
        client.put(
            f"/api/users/{customer_a.id}",
            json={"emi_details": {"status": "defaulted"}},
            headers=owner_a_headers,
        )
        entry = db_session.query(ActivityLog).filter_by(action=ActivityAction.EMI_DEFAULT).one()
        assert entry.severity == Severity.HIGH

    def test_paid_above_existing_total_rejected(self, client, owner_a_headers, customer_a):
        resp = client.put(
            f"/api/users/{customer_a.id}",
            json={"emi_details": {"paid_amount_cents": 1_200_001}},
            headers=owner_a_headers,
        )
        assert resp.status_code == 400

    def test_end_user_cannot_touch_emi(self, client, customer_a_headers, customer_a):
        resp = client.put(
            f"/api/users/{customer_a.id}",
            json={"emi_details": {"paid_amount_cents": 1_200_000}},
            headers=customer_a_headers,
        )
        assert resp.status_code == 403

    def test_end_user_edits_own_profile(self, client, customer_a_headers, customer_a):
        resp = client.put(f"/api/users/{customer_a.id}", json={"name": "Cust A"}, headers=customer_a_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["name"] == "Cust A"

    def test_cannot_deactivate_self(self, client, owner_a_headers, owner_a):
        resp = client.put(f"/api/users/{owner_a.id}", json={"is_active": False}, headers=owner_a_headers)
        assert resp.status_code == 400

    def test_deactivation_revokes_sessions(self, client, db_session, owner_a_headers, customer_a, customer_a_headers):
        resp = client.put(f"/api/users/{customer_a.id}", json={"is_active": False}, headers=owner_a_headers)
        assert resp.status_code == 200

        assert db_session.query(SessionToken).filter_by(user_id=customer_a.id, is_revoked=False).count() == 0
        assert client.get("/api/auth/profile", headers=customer_a_headers).status_code == 401


class TestDeleteUser:

    def test_delete_removes_device_and_sessions(self, client, db_session, owner_a_headers, customer_a, customer_a_headers, device_a):
        customer_id, device_pk = customer_a.id, device_a.id

        resp = client.delete(f"/api/users/{customer_id}", headers=owner_a_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(User, customer_id) is None
        assert db_session.get(Device, device_pk) is None
        assert db_session.query(SessionToken).filter_by(user_id=customer_id).count() == 0

        entry = db_session.query(ActivityLog).filter_by(action=ActivityAction.USER_DELETED).one()
        assert entry.severity == Severity.HIGH
        assert entry.device_id == device_pk

    def test_deleting_owner_clears_shop_owner(self, client, db_session, superadmin_headers, owner_a, shop_a):
        resp = client.delete(f"/api/users/{owner_a.id}", headers=superadmin_headers)
        assert resp.status_code == 200
        db_session.expire_all()
        assert db_session.get(Shop, shop_a.id).owner_id is None

    def test_cannot_delete_self(self, client, superadmin_headers, superadmin):
        resp = client.delete(f"/api/users/{superadmin.id}", headers=superadmin_headers)
        assert resp.status_code == 400


class TestListUsers:

    @pytest.fixture
    def many_customers(self, client, owner_a_headers):
        for index in range(12):
            client.post("/api/users", json={
                "name": f"Bulk Customer {index}",
                "phone": f"91000001{index:02d}",
                "password": "secret1",
            }, headers=owner_a_headers)

    def test_pagination(self, client, owner_a_headers, many_customers):
        resp = client.get("/api/users?page=2&limit=5", headers=owner_a_headers)
        pagination = resp.json["data"]["pagination"]
        assert pagination["total_items"] == 13
        assert pagination["total_pages"] == 3
        assert pagination["current_page"] == 2
        assert len(resp.json["data"]["users"]) == 5

    def test_search(self, client, owner_a_headers, many_customers):
        resp = client.get("/api/users", query_string={"search": "Customer 11"}, headers=owner_a_headers)
        assert [user["name"] for user in resp.json["data"]["users"]] == ["Bulk Customer 11"]

    def test_role_filter(self, client, owner_a_headers, many_customers):
        resp = client.get("/api/users?role=shopowner", headers=owner_a_headers)
        assert resp.json["data"]["pagination"]["total_items"] == 1

    def test_status_filter(self, client, owner_a_headers, many_customers):
        resp = client.get("/api/users?status=inactive", headers=owner_a_headers)
        assert resp.json["data"]["users"] == []

    def test_bad_role_filter(self, client, owner_a_headers):
        resp = client.get("/api/users?role=wizard", headers=owner_a_headers)
        assert resp.status_code == 400


class TestOnboardCustomer:
    """Customer account and handset registered together."""

    PAYLOAD = {
        "name": "Ravi Kumar",
        "phone": "9100000070",
        "device_id": "dev-a-070",
        "imei_number": "353535353535353",
        "device_info": {"brand": "Acme", "model": "A7"},
        "emi_details": {"total_amount_cents": 15_000_00, "paid_amount_cents": 3_000_00},
    }

    def test_creates_user_and_device(self, client, db_session, owner_a, owner_a_headers, shop_a):
        resp = client.post("/api/users/onboard", json=self.PAYLOAD, headers=owner_a_headers)

        assert resp.status_code == 201
        data = resp.json["data"]
        assert data["user"]["role"] == "user"
        assert data["user"]["shop_id"] == shop_a.id
        assert data["device"]["shop_id"] == shop_a.id
        assert data["device"]["device_id"] == "dev-a-070"
        assert data["default_password"] is True

        db_session.expire_all()
        user = db_session.query(User).filter_by(phone="9100000070").one()
        assert user.imei_number == "353535353535353"
        assert user.emi_remaining_amount_cents == 12_000_00
        assert db_session.get(Shop, shop_a.id).stat_total_users == 2

        actions = {entry.action for entry in db_session.query(ActivityLog).filter_by(user_id=user.id)}
        assert {ActivityAction.USER_CREATED, ActivityAction.DEVICE_REGISTERED} <= actions

    def test_phone_is_the_default_password(self, client, db_session, owner_a_headers):
        client.post("/api/users/onboard", json=self.PAYLOAD, headers=owner_a_headers)
        token = get_auth_token(client, "9100000070", password="9100000070")
        assert token

    def test_explicit_password(self, client, db_session, owner_a_headers):
        resp = client.post(
            "/api/users/onboard",
            json={**self.PAYLOAD, "password": "chosen-secret"},
            headers=owner_a_headers,
        )
        assert resp.json["data"]["default_password"] is False
        assert get_auth_token(client, "9100000070", password="chosen-secret")

    def test_role_in_body_ignored(self, client, db_session, owner_a_headers):
        resp = client.post(
            "/api/users/onboard",
            json={**self.PAYLOAD, "role": "shopowner"},
            headers=owner_a_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"]["user"]["role"] == "user"

    def test_duplicate_imei_leaves_nothing(self, client, db_session, owner_a_headers, device_a):
        resp = client.post(
            "/api/users/onboard",
            json={**self.PAYLOAD, "imei_number": device_a.imei_number},
            headers=owner_a_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == DUPLICATE_DEVICE

        db_session.expire_all()
        assert db_session.query(User).filter_by(phone="9100000070").first() is None

    def test_duplicate_phone_leaves_nothing(self, client, db_session, owner_a_headers, customer_a):
        resp = client.post(
            "/api/users/onboard",
            json={**self.PAYLOAD, "phone": customer_a.phone},
            headers=owner_a_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == DUPLICATE_USER

        db_session.expire_all()
        assert db_session.query(Device).filter_by(device_id="dev-a-070").first() is None

    def test_end_user_forbidden(self, client, customer_a_headers):
        resp = client.post("/api/users/onboard", json=self.PAYLOAD, headers=customer_a_headers)
        assert resp.status_code == 403

    def test_superadmin_needs_shop(self, client, superadmin_headers, shop_a):
        missing = client.post("/api/users/onboard", json=self.PAYLOAD, headers=superadmin_headers)
        assert missing.status_code == 400

        placed = client.post(
            "/api/users/onboard",
            json={**self.PAYLOAD, "shop_id": shop_a.id},
            headers=superadmin_headers,
        )
        assert placed.status_code == 201
        assert placed.json["data"]["device"]["shop_id"] == shop_a.id

    def test_invalid_imei(self, client, owner_a_headers):
        resp = client.post(
            "/api/users/onboard",
            json={**self.PAYLOAD, "imei_number": "123"},
            headers=owner_a_headers,
        )
        assert resp.status_code == 400
