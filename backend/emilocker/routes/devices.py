# Overview: Flask API routes for devices; lock engine endpoints, registration and heartbeats.

from flask import Blueprint, g, request

from ..decorators import log_activity, require_auth
from ..errors import ServiceError, ValidationError
from ..models import ActivityAction
from ..permissions import Operation, OperationCategory
from ..responses import from_service_error, pagination_meta, success
from ..services import device_service, policy_service
from ..validation import (
    parse_bool,
    parse_device_info,
    parse_int,
    parse_pagination,
    parse_sort,
    require_json,
    validate_connection_type,
    validate_device_id,
    validate_id_list,
    validate_imei,
    validate_length,
    validate_lock_reason,
)


devices_bp = Blueprint("devices", __name__, url_prefix="/api/devices")


def _locked_filter(value):
    if not value:
        return None
    if value == "locked":
        return True
    if value == "unlocked":
        return False
    raise ValidationError("status must be locked or unlocked")


@devices_bp.get("")
@require_auth
@log_activity(ActivityAction.DEVICES_VIEWED, OperationCategory.DEVICE, lambda kw: "Viewed device list")
def list_devices_route():
    """Query: page, limit, search, status (locked|unlocked), shop_id, sort_by, sort_order."""
    try:
        page, limit = parse_pagination(request.args)
        sort_by, sort_order = parse_sort(request.args, device_service.SORTABLE_FIELDS)
        shop_id = request.args.get("shop_id")
        devices, total = device_service.list_devices(
            g.caller,
            page=page,
            limit=limit,
            search=request.args.get("search"),
            locked=_locked_filter(request.args.get("status")),
            shop_id=parse_int("shop_id", shop_id) if shop_id else None,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return success({
            "devices": [device.to_dict() for device in devices],
            "pagination": pagination_meta(page, limit, total),
        })
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.get("/<int:device_id>")
@require_auth
@log_activity(ActivityAction.DEVICE_VIEWED, OperationCategory.DEVICE, lambda kw: f"Viewed device {kw['device_id']}")
def get_device_route(device_id: int):
    try:
        device = device_service.get_device(g.caller, device_id)
        return success({"device": device.to_dict()})
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.post("/register")
@require_auth
def register_device_route():
    """
    Body: device_id, imei_number, user_id?, device_info?

    user_id defaults to the caller (end users registering their own handset).
    """
    try:
        data = require_json()
        user_id = data.get("user_id")
        device = device_service.register_device(
            g.caller,
            user_id=parse_int("user_id", user_id) if user_id is not None else g.caller.id,
            device_id=validate_device_id(data.get("device_id")),
            imei_number=validate_imei(data.get("imei_number")),
            device_info=parse_device_info(data.get("device_info")),
        )
        return success({"device": device.to_dict()}, "Device registered successfully", 201)
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.post("/<int:device_id>/lock")
@require_auth
def lock_device_route(device_id: int):
    """Body: reason? (emi_default | manual_lock | suspicious_activity | maintenance)"""
    try:
        policy_service.enforce(g.caller, Operation.DEVICE_LOCK)
        data = require_json()
        device = device_service.lock_device(g.caller, device_id, data.get("reason"))
        return success({"device": device.to_dict()}, "Device locked successfully")
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.post("/<int:device_id>/unlock")
@require_auth
def unlock_device_route(device_id: int):
    try:
        device = device_service.unlock_device(g.caller, device_id)
        return success({"device": device.to_dict()}, "Device unlocked successfully")
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.post("/bulk/lock")
@require_auth
def bulk_lock_route():
    """
    Body: device_ids (non-empty list), reason?

    Always 200 once authorized; per-device failures are listed in data.failed.
    """
    try:
        policy_service.enforce(g.caller, Operation.DEVICE_BULK_LOCK)
        data = require_json()
        device_ids = validate_id_list(data.get("device_ids"))
        reason = validate_lock_reason(data.get("reason"))
        result = device_service.bulk_lock(g.caller, device_ids, reason)
        return success(
            result,
            f"Bulk lock completed. {len(result['successful'])} successful, {len(result['failed'])} failed.",
        )
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.post("/bulk/unlock")
@require_auth
def bulk_unlock_route():
    """Body: device_ids (non-empty list)."""
    try:
        policy_service.enforce(g.caller, Operation.DEVICE_BULK_UNLOCK)
        data = require_json()
        device_ids = validate_id_list(data.get("device_ids"))
        result = device_service.bulk_unlock(g.caller, device_ids)
        return success(
            result,
            f"Bulk unlock completed. {len(result['successful'])} successful, {len(result['failed'])} failed.",
        )
    except ServiceError as exc:
        return from_service_error(exc)


@devices_bp.post("/<int:device_id>/heartbeat")
@require_auth
def heartbeat_route(device_id: int):
    """
    Connection report from the handset app.

    Body: connection_type?, app_version?, location?{latitude, longitude, address?},
    app_installed?, app_tampered?, root_detected?
    """
    try:
        data = require_json()
        payload = {}
        if data.get("connection_type"):
            payload["connection_type"] = validate_connection_type(data["connection_type"])
        if data.get("app_version"):
            payload["app_version"] = validate_length("app_version", data["app_version"], max_len=32)
        for flag in ("app_installed", "app_tampered", "root_detected"):
            if flag in data:
                payload[flag] = parse_bool(flag, data[flag])
        location = data.get("location")
        if location is not None:
            if not isinstance(location, dict):
                raise ValidationError("location must be an object")
            try:
                payload["location"] = {
                    "latitude": float(location["latitude"]),
                    "longitude": float(location["longitude"]),
                    "address": location.get("address"),
                }
            except (KeyError, TypeError, ValueError):
                raise ValidationError("location needs numeric latitude and longitude")

        device = device_service.record_heartbeat(g.caller, device_id, payload)
        return success({"device": device.to_dict()}, "Heartbeat recorded")
    except ServiceError as exc:
        return from_service_error(exc)
