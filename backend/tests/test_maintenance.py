# Overview: Pytest coverage for mirror reconciliation and the flask CLI commands.

"""
Maintenance Tests

The device row is authoritative for lock state. reconcile_lock_mirrors()
repairs User.device_* drift left behind by interrupted writes, then rebuilds
every shop's statistics.
"""

import pytest

from emilocker.models import Device, SessionToken, Shop, User
from emilocker.permissions import Role
from emilocker.services import maintenance_service, session_service


class TestReconcileLockMirrors:

    def test_device_wins(self, db_session, shop_a, customer_a, device_a):
        device_a.is_locked = True
        device_a.lock_reason = "maintenance"
        db_session.commit()

        result = maintenance_service.reconcile_lock_mirrors()

        assert result["users_repaired"] == 1
        db_session.expire_all()
        user = db_session.get(User, customer_a.id)
        assert user.device_is_locked is True
        assert user.device_lock_reason == "maintenance"
        assert db_session.get(Shop, shop_a.id).stat_locked_devices == 1

    def test_orphaned_mirror_cleared(self, db_session, customer_a, device_a):
        db_session.query(Device).filter_by(id=device_a.id).delete()
        customer_a.device_is_locked = True
        db_session.commit()

        result = maintenance_service.reconcile_lock_mirrors()

        assert result["users_repaired"] == 1
        db_session.expire_all()
        user = db_session.get(User, customer_a.id)
        assert user.device_is_locked is False
        assert user.device_id is None
        assert user.imei_number is None

    def test_consistent_data_untouched(self, db_session, shop_a, shop_b, device_a, device_b):
        result = maintenance_service.reconcile_lock_mirrors()
        assert result == {"users_repaired": 0, "shops_recomputed": 2}


class TestCli:

    @pytest.fixture
    def runner(self, app):
        return app.test_cli_runner()

    def test_system_init_creates_superadmin(self, runner, db_session):
        result = runner.invoke(args=[
            "system", "init", "--phone", "9999999999", "--password", "admin123", "--name", "Root",
        ])
        assert result.exit_code == 0, result.output
        assert "Created superadmin" in result.output

        admin = db_session.query(User).filter_by(role=Role.SUPERADMIN.value).one()
        assert admin.phone == "9999999999"
        assert admin.shop_id is None

    def test_system_init_is_idempotent(self, runner, db_session, superadmin):
        result = runner.invoke(args=["system", "init", "--phone", "9999999998", "--password", "admin123"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert db_session.query(User).filter_by(role=Role.SUPERADMIN.value).count() == 1

    def test_system_init_rejects_short_password(self, runner, db_session):
        result = runner.invoke(args=["system", "init", "--phone", "9999999997", "--password", "abc"])
        assert result.exit_code != 0

    def test_shops_list(self, runner, shop_a, shop_b):
        result = runner.invoke(args=["shops", "list"])
        assert result.exit_code == 0
        assert "SHOP-A" in result.output
        assert "SHOP-B" in result.output

    def test_stats_recompute_one(self, runner, db_session, shop_a, customer_a):
        result = runner.invoke(args=["stats", "recompute", "--shop-id", str(shop_a.id)])
        assert result.exit_code == 0
        db_session.expire_all()
        assert db_session.get(Shop, shop_a.id).stat_total_users == 1

    def test_stats_recompute_missing_shop(self, runner, db_session):
        result = runner.invoke(args=["stats", "recompute", "--shop-id", "424242"])
        assert result.exit_code != 0

    def test_stats_recompute_all(self, runner, shop_a, shop_b):
        result = runner.invoke(args=["stats", "recompute"])
        assert result.exit_code == 0
        assert "2 shop(s)" in result.output

    def test_reconcile_mirrors(self, runner, db_session, device_a):
        device_a.is_locked = True
        db_session.commit()
        result = runner.invoke(args=["maintenance", "reconcile-mirrors"])
        assert result.exit_code == 0
        assert "Repaired 1 user mirror(s)" in result.output

    def test_cleanup_sessions(self, runner, db_session, owner_a):
        _, token = session_service.create_session(owner_a.id)
        session_service.revoke_session(token)

        result = runner.invoke(args=["maintenance", "cleanup-sessions", "--older-than-days", "0"])
        assert result.exit_code == 0
        assert db_session.query(SessionToken).count() == 0
