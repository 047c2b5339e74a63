# Overview: Flask API routes for the admin area; dashboard, activity logs and system health.

from flask import Blueprint, g, request

from ..decorators import log_activity, require_auth
from ..errors import ServiceError
from ..models import ALL_ACTIONS, ALL_SEVERITIES, ActivityAction
from ..permissions import ALL_CATEGORIES, Operation, OperationCategory
from ..responses import from_service_error, success
from ..services import activity_service, dashboard_service, policy_service, tenant_service
from ..validation import (
    parse_datetime,
    parse_int,
    parse_pagination,
    parse_sort,
    validate_choice,
)


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/dashboard")
@require_auth
@log_activity(ActivityAction.DASHBOARD_VIEWED, OperationCategory.ADMIN, lambda kw: "Viewed dashboard")
def dashboard_route():
    try:
        return success(dashboard_service.get_dashboard(g.caller))
    except ServiceError as exc:
        return from_service_error(exc)


@admin_bp.get("/logs")
@require_auth
@log_activity(ActivityAction.LOGS_VIEWED, OperationCategory.ADMIN, lambda kw: "Viewed activity logs")
def logs_route():
    """
    Query: page, limit, sort_by, sort_order, shop_id, user_id, device_id,
    category, action, severity, start_date, end_date.

    Shop owners are pinned to their own shop whatever shop_id says.
    """
    try:
        policy_service.enforce(g.caller, Operation.LOGS_VIEW)
        args = request.args
        page, limit = parse_pagination(args)
        sort_by, sort_order = parse_sort(args, activity_service.SORTABLE_FIELDS)

        log_filter = activity_service.LogFilter(
            start_date=parse_datetime("start_date", args.get("start_date")),
            end_date=parse_datetime("end_date", args.get("end_date")),
        )
        for field in ("shop_id", "user_id", "device_id"):
            if args.get(field):
                setattr(log_filter, field, parse_int(field, args[field]))
        if args.get("category"):
            log_filter.category = validate_choice("category", args["category"], ALL_CATEGORIES)
        if args.get("action"):
            log_filter.action = validate_choice("action", args["action"], ALL_ACTIONS)
        if args.get("severity"):
            log_filter.severity = validate_choice("severity", args["severity"], ALL_SEVERITIES)

        scoped_shop_id = tenant_service.scoped_shop_id(g.caller)
        if scoped_shop_id is not None:
            log_filter.shop_id = scoped_shop_id

        entries, pagination = activity_service.query_paginated(
            log_filter, page, limit, sort_by=sort_by, sort_order=sort_order
        )
        return success({
            "logs": [entry.to_dict() for entry in entries],
            "pagination": pagination,
        })
    except ServiceError as exc:
        return from_service_error(exc)


@admin_bp.get("/system/health")
@require_auth
@log_activity(ActivityAction.SYSTEM_HEALTH_VIEWED, OperationCategory.ADMIN, lambda kw: "Viewed system health")
def system_health_route():
    try:
        return success(dashboard_service.get_system_health(g.caller))
    except ServiceError as exc:
        return from_service_error(exc)
