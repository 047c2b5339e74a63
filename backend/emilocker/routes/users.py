# Overview: Flask API routes for user accounts; parses input and returns JSON envelopes.

from flask import Blueprint, g, request

from ..decorators import log_activity, require_auth
from ..errors import ServiceError
from ..models import ActivityAction
from ..permissions import Operation, OperationCategory, Role
from ..responses import from_service_error, pagination_meta, success
from ..services import policy_service, user_service
from ..validation import (
    parse_address,
    parse_bool,
    parse_device_info,
    parse_emi_details,
    parse_int,
    parse_pagination,
    parse_sort,
    parse_status_filter,
    require_json,
    validate_choice,
    validate_device_id,
    validate_email,
    validate_imei,
    validate_name,
    validate_password,
    validate_phone,
)


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

ROLE_VALUES = tuple(role.value for role in Role)


def _user_fields(data: dict) -> dict:
    out = parse_address(data)
    out.update(parse_emi_details(data))
    if "name" in data:
        out["name"] = validate_name(data["name"])
    if "phone" in data:
        out["phone"] = validate_phone(data["phone"])
    if data.get("email"):
        out["email"] = validate_email(data["email"])
    if "is_active" in data:
        out["is_active"] = parse_bool("is_active", data["is_active"])
    return out


@users_bp.get("")
@require_auth
@log_activity(ActivityAction.USERS_VIEWED, OperationCategory.USER, lambda kw: "Viewed user list")
def list_users_route():
    """Query: page, limit, search, role, status, shop_id, sort_by, sort_order."""
    try:
        page, limit = parse_pagination(request.args)
        sort_by, sort_order = parse_sort(request.args, user_service.SORTABLE_FIELDS)
        role = request.args.get("role")
        if role:
            validate_choice("role", role, ROLE_VALUES)
        shop_id = request.args.get("shop_id")

        users, total = user_service.list_users(
            g.caller,
            page=page,
            limit=limit,
            search=request.args.get("search"),
            role=role,
            is_active=parse_status_filter(request.args.get("status")),
            shop_id=parse_int("shop_id", shop_id) if shop_id else None,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return success({
            "users": [user.to_dict() for user in users],
            "pagination": pagination_meta(page, limit, total),
        })
    except ServiceError as exc:
        return from_service_error(exc)


@users_bp.post("")
@require_auth
def create_user_route():
    """Body: name, phone, password, email?, role?, shop_id?, address?, emi_details?"""
    try:
        data = require_json()
        fields = _user_fields(data)
        fields["name"] = validate_name(data.get("name"))
        fields["phone"] = validate_phone(data.get("phone"))
        fields["password"] = validate_password(data.get("password"))
        if data.get("role"):
            fields["role"] = validate_choice("role", data["role"], ROLE_VALUES)
        if data.get("shop_id") is not None:
            fields["shop_id"] = parse_int("shop_id", data["shop_id"])

        user = user_service.create_user(g.caller, fields)
        return success({"user": user.to_dict()}, "User created successfully", 201)
    except ServiceError as exc:
        return from_service_error(exc)


@users_bp.post("/onboard")
@require_auth
def onboard_customer_route():
    """
    Create a customer and register their handset in one call.

    Body: name, phone, email?, password?, shop_id?, address?, emi_details?,
    device_id, imei_number, device_info?

    Without a password the customer signs in with their phone number first.
    """
    try:
        policy_service.enforce(g.caller, Operation.USER_CREATE)
        data = require_json()
        fields = _user_fields(data)
        fields.pop("is_active", None)
        fields["name"] = validate_name(data.get("name"))
        fields["phone"] = validate_phone(data.get("phone"))
        if data.get("password") is not None:
            fields["password"] = validate_password(data["password"])
        if data.get("shop_id") is not None:
            fields["shop_id"] = parse_int("shop_id", data["shop_id"])
        device = {
            "device_id": validate_device_id(data.get("device_id")),
            "imei_number": validate_imei(data.get("imei_number")),
            "device_info": parse_device_info(data.get("device_info")),
        }

        user, registered = user_service.onboard_customer(g.caller, fields, device)
        return success(
            {
                "user": user.to_dict(),
                "device": registered.to_dict(),
                "default_password": "password" not in fields,
            },
            "User registered successfully",
            201,
        )
    except ServiceError as exc:
        return from_service_error(exc)


@users_bp.get("/<int:user_id>")
@require_auth
@log_activity(ActivityAction.USER_VIEWED, OperationCategory.USER, lambda kw: f"Viewed user {kw['user_id']}")
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(g.caller, user_id)
        payload = {"user": user.to_dict()}
        if user.device is not None:
            payload["device"] = user.device.to_dict()
        return success(payload)
    except ServiceError as exc:
        return from_service_error(exc)


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    try:
        changes = _user_fields(require_json())
        user = user_service.update_user(g.caller, user_id, changes)
        return success({"user": user.to_dict()}, "User updated successfully")
    except ServiceError as exc:
        return from_service_error(exc)


@users_bp.delete("/<int:user_id>")
@require_auth
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.caller, user_id)
        return success(message="User deleted successfully")
    except ServiceError as exc:
        return from_service_error(exc)
