# Overview: Device lock engine; lock/unlock, bulk variants, registration and heartbeats.

"""
Device Lock Engine

STATE MACHINE: each device is UNLOCKED or LOCKED.

    lock:   UNLOCKED -> LOCKED    else ConflictError(ALREADY_LOCKED)
    unlock: LOCKED   -> UNLOCKED  else ConflictError(NOT_LOCKED)

MIRRORS: the device row is the source of truth. The owning user's
device_* columns mirror it and are written in the same transaction, so
after any lock/unlock completes Device.is_locked == User.device_is_locked.

ORDER OF SIDE EFFECTS (single device):
1. device + user mirror, one commit
2. shop statistics recompute, own commit
3. activity log entry (best-effort)
4. device-status-changed broadcast (best-effort)

BULK: devices are processed sequentially, one transaction each. A failing
device lands in failed[] with a reason and the batch continues. Statistics
are recomputed once per distinct shop after the batch.
"""

from __future__ import annotations

from ..errors import (
    ALREADY_LOCKED,
    DEVICE_ALREADY_ASSIGNED,
    DUPLICATE_DEVICE,
    NOT_LOCKED,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from ..extensions import db
from ..models import ActivityAction, DEFAULT_LOCK_REASON, LOCK_REASONS, Device, Severity, Shop, User
from ..permissions import Operation, OperationCategory
from ..time_utils import utcnow
from . import activity_service, broadcast_service, statistics_service, tenant_service
from .concurrency import commit, lock_for_update
from .policy_service import CallerIdentity, Target, enforce


SORTABLE_FIELDS = ("created_at", "device_id", "imei_number", "is_locked", "last_seen")

BULK_ALREADY_LOCKED = "Already locked"
BULK_NOT_LOCKED = "Not locked"
BULK_NOT_FOUND = "Device not found"
BULK_DISABLED = "Bulk operations disabled for shop"


# ---------------------------------------------------------------------------
# State transitions (no commit, no side effects)
# ---------------------------------------------------------------------------


def _owner(device: Device) -> User | None:
    return db.session.query(User).filter_by(id=device.user_id).first()


def apply_lock(device: Device, reason: str, actor_id: int) -> None:
    if device.is_locked:
        raise ConflictError("Device is already locked", code=ALREADY_LOCKED)

    now = utcnow()
    device.is_locked = True
    device.locked_at = now
    device.lock_reason = reason
    device.locked_by_id = actor_id

    owner = _owner(device)
    if owner is not None:
        owner.device_is_locked = True
        owner.device_last_locked_at = now
        owner.device_lock_reason = reason


def apply_unlock(device: Device) -> None:
    if not device.is_locked:
        raise ConflictError("Device is not locked", code=NOT_LOCKED)

    now = utcnow()
    device.is_locked = False
    device.unlocked_at = now
    device.lock_reason = None

    owner = _owner(device)
    if owner is not None:
        owner.device_is_locked = False
        owner.device_last_unlocked_at = now
        owner.device_lock_reason = None


def _resolve_reason(reason: str | None) -> str:
    if not reason:
        return DEFAULT_LOCK_REASON
    if reason not in LOCK_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(LOCK_REASONS)}")
    return reason


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def list_devices(
    caller: CallerIdentity,
    *,
    page: int,
    limit: int,
    search: str | None = None,
    locked: bool | None = None,
    shop_id: int | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> tuple[list[Device], int]:
    enforce(caller, Operation.DEVICE_LIST)
    query = tenant_service.scoped_devices_query(caller)

    if shop_id is not None:
        query = query.filter(Device.shop_id == shop_id)
    if locked is not None:
        query = query.filter(Device.is_locked.is_(locked))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Device.device_id.ilike(pattern),
                Device.imei_number.ilike(pattern),
                Device.brand.ilike(pattern),
                Device.model.ilike(pattern),
            )
        )

    column = getattr(Device, sort_by)
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Device.id.asc())

    total = query.count()
    devices = query.offset((page - 1) * limit).limit(limit).all()
    return devices, total


def get_device(caller: CallerIdentity, device_pk: int, operation: str = Operation.DEVICE_VIEW) -> Device:
    """Role gate, then existence, then scope. Scope misses read as 404."""
    enforce(caller, operation)
    device = db.session.query(Device).filter_by(id=device_pk).first()
    if not device:
        raise NotFoundError("Device not found")
    enforce(caller, operation, Target.for_device(device), not_found_message="Device not found")
    return device


# ---------------------------------------------------------------------------
# Single-device lock / unlock
# ---------------------------------------------------------------------------


def _after_transition(device: Device, caller: CallerIdentity, action: str, severity: str, description: str) -> None:
    statistics_service.recompute(device.shop_id)
    activity_service.record(
        action=action,
        description=description,
        category=OperationCategory.DEVICE,
        performed_by_id=caller.id,
        user_id=device.user_id,
        shop_id=device.shop_id,
        device_id=device.id,
        severity=severity,
        metadata={"lock_reason": device.lock_reason},
    )
    broadcast_service.publish_device_status(device, action, caller.id)


def lock_device(caller: CallerIdentity, device_pk: int, reason: str | None = None) -> Device:
    enforce(caller, Operation.DEVICE_LOCK)
    reason = _resolve_reason(reason)

    device = lock_for_update(db.session.query(Device).filter_by(id=device_pk)).first()
    if not device:
        raise NotFoundError("Device not found")
    enforce(caller, Operation.DEVICE_LOCK, Target.for_device(device), not_found_message="Device not found")

    try:
        apply_lock(device, reason, caller.id)
    except ConflictError:
        db.session.rollback()
        raise
    commit("locking device")

    _after_transition(
        device, caller, ActivityAction.DEVICE_LOCKED, Severity.MEDIUM,
        f"Device locked: {device.device_id} (reason: {reason})",
    )
    return device


def unlock_device(caller: CallerIdentity, device_pk: int) -> Device:
    enforce(caller, Operation.DEVICE_UNLOCK)

    device = lock_for_update(db.session.query(Device).filter_by(id=device_pk)).first()
    if not device:
        raise NotFoundError("Device not found")
    enforce(caller, Operation.DEVICE_UNLOCK, Target.for_device(device), not_found_message="Device not found")

    try:
        apply_unlock(device)
    except ConflictError:
        db.session.rollback()
        raise
    commit("unlocking device")

    _after_transition(
        device, caller, ActivityAction.DEVICE_UNLOCKED, Severity.LOW,
        f"Device unlocked: {device.device_id}",
    )
    return device


# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------


def _bulk(caller: CallerIdentity, operation: str, device_ids: list[int], reason: str | None) -> dict:
    enforce(caller, operation)
    locking = operation == Operation.DEVICE_BULK_LOCK
    action = ActivityAction.BULK_LOCK if locking else ActivityAction.BULK_UNLOCK
    reason = _resolve_reason(reason) if locking else None

    candidates = tenant_service.scoped_device_ids(caller, device_ids)
    shop_allows_bulk: dict[int, bool] = {}
    affected_shop_ids: list[int] = []
    result = {"successful": [], "failed": []}

    for candidate in candidates:
        device_pk = candidate.id
        device_name = candidate.device_id
        shop_id = candidate.shop_id

        if shop_id not in shop_allows_bulk:
            shop = db.session.query(Shop).filter_by(id=shop_id).first()
            shop_allows_bulk[shop_id] = bool(shop and shop.allow_bulk_operations)
        if not shop_allows_bulk[shop_id]:
            result["failed"].append({"device_id": device_pk, "device_name": device_name, "reason": BULK_DISABLED})
            continue

        try:
            device = lock_for_update(db.session.query(Device).filter_by(id=device_pk)).first()
            failure = None
            if device is None:
                failure = BULK_NOT_FOUND
            elif locking and device.is_locked:
                failure = BULK_ALREADY_LOCKED
            elif not locking and not device.is_locked:
                failure = BULK_NOT_LOCKED

            if failure is not None:
                # Release the row lock before moving on
                db.session.rollback()
                result["failed"].append({"device_id": device_pk, "device_name": device_name, "reason": failure})
                continue

            if locking:
                apply_lock(device, reason, caller.id)
            else:
                apply_unlock(device)
            commit("bulk updating device")
        except ServiceError as exc:
            db.session.rollback()
            result["failed"].append({"device_id": device_pk, "device_name": device_name, "reason": exc.message})
            continue

        owner = _owner(device)
        result["successful"].append({
            "device_id": device.id,
            "device_name": device.device_id,
            "user_name": owner.name if owner else None,
        })
        affected_shop_ids.append(device.shop_id)

        verb = "locked" if locking else "unlocked"
        activity_service.record(
            action=action,
            description=f"Device bulk {verb}: {device.device_id}",
            category=OperationCategory.DEVICE,
            performed_by_id=caller.id,
            user_id=device.user_id,
            shop_id=device.shop_id,
            device_id=device.id,
            severity=Severity.MEDIUM,
            metadata={"lock_reason": reason},
        )
        broadcast_service.publish_device_status(device, action, caller.id)

    statistics_service.recompute_many(affected_shop_ids)
    return result


def bulk_lock(caller: CallerIdentity, device_ids: list[int], reason: str | None = None) -> dict:
    return _bulk(caller, Operation.DEVICE_BULK_LOCK, device_ids, reason)


def bulk_unlock(caller: CallerIdentity, device_ids: list[int]) -> dict:
    return _bulk(caller, Operation.DEVICE_BULK_UNLOCK, device_ids, None)


# ---------------------------------------------------------------------------
# Registration and heartbeat
# ---------------------------------------------------------------------------


def stage_registration(
    caller: CallerIdentity,
    *,
    user_id: int,
    device_id: str,
    imei_number: str,
    device_info: dict | None = None,
) -> Device:
    """
    Check and add a new device to the session without committing.

    DUPLICATES: one combined query on device_id OR imei; any hit is a
    DUPLICATE_DEVICE conflict and nothing is written.
    ONE PER USER: a user who already owns a device gets DEVICE_ALREADY_ASSIGNED.
    The user may be a row flushed earlier in the same transaction.
    """
    enforce(caller, Operation.DEVICE_REGISTER)

    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")
    enforce(caller, Operation.DEVICE_REGISTER, Target.for_user(user), not_found_message="User not found")

    if user.shop_id is None:
        raise ValidationError("Devices can only be registered for shop users")

    existing = db.session.query(Device).filter(
        db.or_(Device.device_id == device_id, Device.imei_number == imei_number)
    ).first()
    if existing:
        raise ConflictError("Device with this ID or IMEI already registered", code=DUPLICATE_DEVICE)

    if db.session.query(Device).filter_by(user_id=user.id).first():
        raise ConflictError("User already has a registered device", code=DEVICE_ALREADY_ASSIGNED)

    info = device_info or {}
    now = utcnow()
    device = Device(
        device_id=device_id,
        imei_number=imei_number,
        user_id=user.id,
        shop_id=user.shop_id,
        brand=info.get("brand"),
        model=info.get("model"),
        android_version=info.get("android_version"),
        app_version=info.get("app_version"),
        is_locked=False,
        is_online=True,
        last_seen=now,
        last_heartbeat=now,
        connection_type=info.get("connection_type") or "wifi",
        last_security_check=now,
    )
    db.session.add(device)

    user.device_id = device_id
    user.imei_number = imei_number
    db.session.flush()
    return device


def record_registration(caller: CallerIdentity, device: Device) -> None:
    """Audit entry for a committed registration."""
    activity_service.record(
        action=ActivityAction.DEVICE_REGISTERED,
        description=f"Device registered: {device.device_id} for {device.user.name}",
        category=OperationCategory.DEVICE,
        performed_by_id=caller.id,
        user_id=device.user_id,
        shop_id=device.shop_id,
        device_id=device.id,
        severity=Severity.LOW,
        metadata={"imei_number": device.imei_number},
    )


def register_device(
    caller: CallerIdentity,
    *,
    user_id: int,
    device_id: str,
    imei_number: str,
    device_info: dict | None = None,
) -> Device:
    """Register a device for an existing user; see stage_registration for the checks."""
    device = stage_registration(
        caller,
        user_id=user_id,
        device_id=device_id,
        imei_number=imei_number,
        device_info=device_info,
    )
    commit(
        "registering device",
        conflict_message="Device with this ID or IMEI already registered",
        conflict_code=DUPLICATE_DEVICE,
    )

    statistics_service.recompute(device.shop_id)
    record_registration(caller, device)
    return device


def record_heartbeat(caller: CallerIdentity, device_pk: int, payload: dict) -> Device:
    """
    Connection status update from the handset app.

    Only the device's own user may report for it. A tamper or root report
    raises a critical security_alert entry.
    """
    device = get_device(caller, device_pk)
    if device.user_id != caller.id:
        raise NotFoundError("Device not found")

    now = utcnow()
    device.is_online = True
    device.last_seen = now
    device.last_heartbeat = now
    if payload.get("connection_type"):
        device.connection_type = payload["connection_type"]
    if payload.get("app_version"):
        device.app_version = payload["app_version"]

    location = payload.get("location")
    if location:
        device.last_latitude = location.get("latitude")
        device.last_longitude = location.get("longitude")
        device.last_location_address = location.get("address")
        device.last_location_at = now

    alerts = []
    for flag in ("app_tampered", "root_detected"):
        if flag in payload:
            value = bool(payload[flag])
            if value and not getattr(device, flag):
                alerts.append(flag)
            setattr(device, flag, value)
    if "app_installed" in payload:
        device.app_installed = bool(payload["app_installed"])
    if any(flag in payload for flag in ("app_tampered", "root_detected", "app_installed")):
        device.last_security_check = now

    commit("recording heartbeat")

    if alerts:
        activity_service.record(
            action=ActivityAction.SECURITY_ALERT,
            description=f"Security alert on device {device.device_id}: {', '.join(alerts)}",
            category=OperationCategory.SECURITY,
            performed_by_id=caller.id,
            user_id=device.user_id,
            shop_id=device.shop_id,
            device_id=device.id,
            severity=Severity.CRITICAL,
            metadata={"alerts": alerts},
        )
    return device
