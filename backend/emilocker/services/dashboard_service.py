# Overview: Dashboard aggregates and system health for the admin area.

"""
Dashboard

Counters are independent read-only queries, issued one after another.
The superadmin sees platform-wide numbers; a shop owner sees the same
shape restricted to their shop.

System health reports process memory via psutil and a database ping.
"""

from __future__ import annotations

import os
import time

import psutil
from flask import current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Device, Shop, User
from ..permissions import Operation, Role
from ..time_utils import to_utc_z, utcnow
from . import activity_service, tenant_service
from .concurrency import STORE_FAILURES
from .policy_service import CallerIdentity, enforce


_PROCESS_STARTED = time.monotonic()


def get_dashboard(caller: CallerIdentity) -> dict:
    enforce(caller, Operation.DASHBOARD_VIEW)
    shop_id = tenant_service.scoped_shop_id(caller)

    users = db.session.query(User)
    devices = db.session.query(Device)
    if shop_id is not None:
        users = users.filter(User.shop_id == shop_id, User.role != Role.SUPERADMIN.value)
        devices = devices.filter(Device.shop_id == shop_id)

    total_users = users.count()
    active_users = users.filter(User.is_active.is_(True)).count()
    total_devices = devices.count()
    locked_devices = devices.filter(Device.is_locked.is_(True)).count()
    online_devices = devices.filter(Device.is_online.is_(True)).count()

    users_by_role = {role.value: 0 for role in Role}
    for role, count in (
        users.with_entities(User.role, db.func.count(User.id)).group_by(User.role).all()
    ):
        users_by_role[role] = count

    overview = {
        "total_users": total_users,
        "active_users": active_users,
        "total_devices": total_devices,
        "locked_devices": locked_devices,
        "online_devices": online_devices,
    }
    if shop_id is None:
        shops = db.session.query(Shop)
        overview["total_shops"] = shops.count()
        overview["active_shops"] = shops.filter(Shop.is_active.is_(True)).count()

    return {
        "overview": overview,
        "users_by_role": users_by_role,
        "device_status": {
            "locked": locked_devices,
            "unlocked": total_devices - locked_devices,
        },
        "recent_activities": [
            entry.to_dict() for entry in activity_service.recent(shop_id, limit=10)
        ],
    }


def _database_status() -> str:
    try:
        db.session.execute(text("SELECT 1"))
        return "connected"
    except STORE_FAILURES:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return "disconnected"


def get_system_health(caller: CallerIdentity) -> dict:
    enforce(caller, Operation.SYSTEM_HEALTH_VIEW)

    process = psutil.Process(os.getpid())
    memory = process.memory_info()
    database = _database_status()

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "uptime": round(time.monotonic() - _PROCESS_STARTED, 3),
        "memory": {
            "used": memory.rss,
            "total": psutil.virtual_memory().total,
        },
        "timestamp": to_utc_z(utcnow()),
    }
