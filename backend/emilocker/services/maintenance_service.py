# Overview: Repair sweeps run from the CLI; mirror reconciliation and statistics rebuild.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Device, User
from . import statistics_service
from .concurrency import commit


def reconcile_lock_mirrors() -> dict:
    """
    Repair drift between devices and their owners' device_* mirror columns.

    The device row wins. Every shop's statistics are recomputed afterwards.
    Returns {"users_repaired": n, "shops_recomputed": m}.
    """
    repaired = 0
    rows = db.session.query(Device, User).join(User, User.id == Device.user_id).all()
    for device, user in rows:
        changed = False
        if user.device_is_locked != device.is_locked:
            user.device_is_locked = device.is_locked
            changed = True
        if user.device_lock_reason != device.lock_reason:
            user.device_lock_reason = device.lock_reason
            changed = True
        if user.device_id != device.device_id or user.imei_number != device.imei_number:
            user.device_id = device.device_id
            user.imei_number = device.imei_number
            changed = True
        if changed:
            repaired += 1

    # Users whose device row is gone must not look locked
    orphans = db.session.query(User).outerjoin(Device, Device.user_id == User.id).filter(
        Device.id.is_(None),
        db.or_(User.device_is_locked.is_(True), User.device_id.isnot(None)),
    ).all()
    for user in orphans:
        user.device_is_locked = False
        user.device_lock_reason = None
        user.device_id = None
        user.imei_number = None
        repaired += 1

    commit("reconciling device mirrors")
    if repaired:
        current_app.logger.warning("Repaired %s device lock mirror(s)", repaired)

    shops = statistics_service.recompute_all()
    return {"users_repaired": repaired, "shops_recomputed": shops}
