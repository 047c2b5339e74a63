# Overview: Flask API routes for shops; parses input and returns JSON envelopes.

from flask import Blueprint, g, request

from ..decorators import log_activity, require_auth
from ..errors import ServiceError
from ..models import ActivityAction
from ..permissions import OperationCategory
from ..responses import from_service_error, pagination_meta, success
from ..services import shop_service
from ..validation import (
    parse_address,
    parse_bool,
    parse_int,
    parse_pagination,
    parse_sort,
    parse_status_filter,
    require_json,
    validate_business_type,
    validate_email,
    validate_grace_period,
    validate_length,
    validate_name,
    validate_phone,
    validate_shop_code,
)


shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


@shops_bp.get("/search")
def search_shops_route():
    """Public shop directory. Query: query (required, 1-100 chars)."""
    try:
        query = validate_length("query", request.args.get("query"), min_len=1, max_len=100)
        shops = shop_service.search_public_shops(query)
        return success(
            {"shops": [shop.to_public_dict() for shop in shops], "count": len(shops)},
            "Shops retrieved successfully",
        )
    except ServiceError as exc:
        return from_service_error(exc)


def _shop_fields(data: dict) -> dict:
    """Flatten the nested shop payload into column names."""
    out = parse_address(data)
    if "name" in data:
        out["name"] = validate_name(data["name"])
    if "description" in data:
        out["description"] = (
            validate_length("description", data["description"], max_len=500)
            if data["description"] is not None else None
        )

    contact = data.get("contact") or {}
    if contact.get("email"):
        out["email"] = validate_email(contact["email"])
    if contact.get("phone"):
        out["phone"] = validate_phone(contact["phone"])
    if contact.get("alternate_phone"):
        out["alternate_phone"] = validate_phone(contact["alternate_phone"])

    business = data.get("business_info") or {}
    for field in ("registration_number", "gst_number", "pan_number"):
        if field in business:
            out[field] = validate_length(field, business[field], max_len=64) if business[field] else None
    if "business_type" in business:
        out["business_type"] = validate_business_type(business["business_type"])

    settings = data.get("settings") or {}
    for field in ("auto_lock_on_default", "notification_enabled", "allow_bulk_operations"):
        if field in settings:
            out[field] = parse_bool(field, settings[field])
    if "grace_period_days" in settings:
        out["grace_period_days"] = validate_grace_period(settings["grace_period_days"])

    if "is_active" in data:
        out["is_active"] = parse_bool("is_active", data["is_active"])
    return out


@shops_bp.get("")
@require_auth
@log_activity(ActivityAction.SHOPS_VIEWED, OperationCategory.SHOP, lambda kw: "Viewed shop list")
def list_shops_route():
    """Query: page, limit, search, status (active|inactive), sort_by, sort_order."""
    try:
        page, limit = parse_pagination(request.args)
        sort_by, sort_order = parse_sort(request.args, shop_service.SORTABLE_FIELDS)
        shops, total = shop_service.list_shops(
            g.caller,
            page=page,
            limit=limit,
            search=request.args.get("search"),
            is_active=parse_status_filter(request.args.get("status")),
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return success({
            "shops": [shop.to_dict() for shop in shops],
            "pagination": pagination_meta(page, limit, total),
        })
    except ServiceError as exc:
        return from_service_error(exc)


@shops_bp.post("")
@require_auth
def create_shop_route():
    """Superadmin only. Body: shop_id, name, owner_id, contact?, address?, business_info?, settings?"""
    try:
        data = require_json()
        fields = _shop_fields(data)
        fields["name"] = validate_name(data.get("name"))
        fields["shop_code"] = validate_shop_code(data.get("shop_id"))
        fields["owner_id"] = parse_int("owner_id", data.get("owner_id"))
        fields.pop("is_active", None)

        shop = shop_service.create_shop(g.caller, fields)
        return success({"shop": shop.to_dict()}, "Shop created successfully", 201)
    except ServiceError as exc:
        return from_service_error(exc)


@shops_bp.get("/<int:shop_id>")
@require_auth
@log_activity(ActivityAction.SHOP_VIEWED, OperationCategory.SHOP, lambda kw: f"Viewed shop {kw['shop_id']}")
def get_shop_route(shop_id: int):
    try:
        shop = shop_service.view_shop(g.caller, shop_id)
        return success({"shop": shop.to_dict()})
    except ServiceError as exc:
        return from_service_error(exc)


@shops_bp.put("/<int:shop_id>")
@require_auth
def update_shop_route(shop_id: int):
    try:
        changes = _shop_fields(require_json())
        shop = shop_service.update_shop(g.caller, shop_id, changes)
        return success({"shop": shop.to_dict()}, "Shop updated successfully")
    except ServiceError as exc:
        return from_service_error(exc)


@shops_bp.delete("/<int:shop_id>")
@require_auth
def delete_shop_route(shop_id: int):
    try:
        summary = shop_service.delete_shop(g.caller, shop_id)
        return success(summary, "Shop deleted successfully")
    except ServiceError as exc:
        return from_service_error(exc)


@shops_bp.get("/<int:shop_id>/statistics")
@require_auth
@log_activity(ActivityAction.SHOP_STATS_VIEWED, OperationCategory.SHOP, lambda kw: f"Viewed statistics of shop {kw['shop_id']}")
def shop_statistics_route(shop_id: int):
    try:
        statistics = shop_service.get_statistics(g.caller, shop_id)
        return success({"statistics": statistics})
    except ServiceError as exc:
        return from_service_error(exc)
