# Overview: Request input validation helpers; raise ValidationError on malformed input.

from __future__ import annotations

import re
from typing import Any

from flask import current_app, request

from .errors import ValidationError
from .models import BUSINESS_TYPES, CONNECTION_TYPES, EMI_STATUSES, LOCK_REASONS
from .time_utils import parse_iso_datetime


IMEI_RE = re.compile(r"^\d{15}$")
SHOP_CODE_RE = re.compile(r"^[A-Za-z0-9_-]{3,50}$")
# Digits with an optional leading "+", 7-15 digits (E.164 length)
PHONE_RE = re.compile(r"^\+?\d{7,15}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 6
SORT_ORDERS = ("asc", "desc")


def require_json() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_int(name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{name} must be an integer")


def parse_pagination(args) -> tuple[int, int]:
    """
    Parse ?page=&limit= query args.

    page >= 1; 1 <= limit <= PAGINATION_MAX_LIMIT. Missing values fall back
    to page 1 and PAGINATION_DEFAULT_LIMIT.
    """
    max_limit = current_app.config["PAGINATION_MAX_LIMIT"]
    default_limit = current_app.config["PAGINATION_DEFAULT_LIMIT"]

    page = parse_int("page", args.get("page", 1))
    limit = parse_int("limit", args.get("limit", default_limit))

    if page < 1:
        raise ValidationError("Page must be a positive integer")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"Limit must be between 1 and {max_limit}")
    return page, limit


def parse_sort(args, allowed: tuple[str, ...], default: str = "created_at") -> tuple[str, str]:
    sort_by = args.get("sort_by", default)
    sort_order = (args.get("sort_order") or "desc").lower()
    if sort_by not in allowed:
        raise ValidationError(f"sort_by must be one of: {', '.join(allowed)}")
    if sort_order not in SORT_ORDERS:
        raise ValidationError("sort_order must be asc or desc")
    return sort_by, sort_order


def parse_status_filter(value: str | None) -> bool | None:
    """?status=active|inactive -> is_active filter."""
    if not value:
        return None
    if value == "active":
        return True
    if value == "inactive":
        return False
    raise ValidationError("status must be active or inactive")


def parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{name} must be a boolean")


def parse_cents(name: str, value: Any) -> int:
    """Monetary amounts are non-negative integer cents."""
    amount = parse_int(name, value)
    if amount < 0:
        raise ValidationError(f"{name} must not be negative")
    return amount


def parse_datetime(name: str, value: Any):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def validate_length(name: str, value: Any, *, min_len: int = 0, max_len: int | None = None) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{name} is required")
    value = value.strip()
    if len(value) < min_len:
        if min_len <= 1:
            raise ValidationError(f"{name} is required")
        raise ValidationError(f"{name} must be at least {min_len} characters")
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"{name} must be at most {max_len} characters")
    return value


def validate_name(value: Any, field: str = "name") -> str:
    return validate_length(field, value, min_len=2, max_len=100)


def validate_phone(value: Any) -> str:
    if not isinstance(value, str) or not PHONE_RE.match(value.strip()):
        raise ValidationError("Please provide a valid phone number")
    return value.strip()


def validate_email(value: Any) -> str:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError("Please provide a valid email")
    return value.strip().lower()


def validate_password(value: Any) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return value


def validate_shop_code(value: Any) -> str:
    if not isinstance(value, str) or not SHOP_CODE_RE.match(value.strip()):
        raise ValidationError(
            "Shop ID must be 3-50 characters of letters, numbers, hyphens and underscores"
        )
    return value.strip()


def validate_imei(value: Any) -> str:
    if not isinstance(value, str) or not IMEI_RE.match(value.strip()):
        raise ValidationError("IMEI must be exactly 15 digits")
    return value.strip()


def validate_device_id(value: Any) -> str:
    return validate_length("device_id", value, min_len=1, max_len=128)


def validate_lock_reason(value: Any) -> str | None:
    """None means "use the default reason"."""
    if value is None or value == "":
        return None
    if value not in LOCK_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(LOCK_REASONS)}")
    return value


def validate_choice(name: str, value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValidationError(f"{name} must be one of: {', '.join(choices)}")
    return value


def validate_emi_status(value: Any) -> str:
    return validate_choice("emi_status", value, EMI_STATUSES)


def validate_business_type(value: Any) -> str:
    return validate_choice("business_type", value, BUSINESS_TYPES)


def validate_connection_type(value: Any) -> str:
    return validate_choice("connection_type", value, CONNECTION_TYPES)


def validate_grace_period(value: Any) -> int:
    days = parse_int("grace_period_days", value)
    if days < 0 or days > 30:
        raise ValidationError("grace_period_days must be between 0 and 30")
    return days


def validate_id_list(value: Any, name: str = "device_ids") -> list[int]:
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{name} must be a non-empty list")
    ids = []
    for raw in value:
        ids.append(parse_int(name, raw))
    # Preserve request order, drop repeats
    return list(dict.fromkeys(ids))


ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")


def parse_address(data: dict) -> dict:
    """Flatten a nested {"address": {...}} block into column names."""
    address = data.get("address")
    if address is None:
        return {}
    if not isinstance(address, dict):
        raise ValidationError("address must be an object")
    out = {}
    for field in ADDRESS_FIELDS:
        if field in address:
            value = address[field]
            out[field] = validate_length(field, value, max_len=255) if value is not None else None
    return out


EMI_AMOUNT_FIELDS = {
    "total_amount_cents": "emi_total_amount_cents",
    "paid_amount_cents": "emi_paid_amount_cents",
    "monthly_emi_cents": "emi_monthly_cents",
}
EMI_DATE_FIELDS = {
    "due_date": "emi_due_date",
    "next_due_date": "emi_next_due_date",
}


def parse_emi_details(data: dict) -> dict:
    """Flatten {"emi_details": {...}}. remaining_amount_cents is derived, never accepted."""
    emi = data.get("emi_details")
    if emi is None:
        return {}
    if not isinstance(emi, dict):
        raise ValidationError("emi_details must be an object")
    out = {}
    for key, column in EMI_AMOUNT_FIELDS.items():
        if key in emi:
            out[column] = parse_cents(key, emi[key])
    for key, column in EMI_DATE_FIELDS.items():
        if key in emi:
            out[column] = parse_datetime(key, emi[key])
    if "status" in emi:
        out["emi_status"] = validate_emi_status(emi["status"])
    return out


DEVICE_INFO_FIELDS = ("brand", "model", "android_version", "app_version")


def parse_device_info(info: Any) -> dict:
    """Optional {"device_info": {...}} block of a registration body."""
    if info is None:
        return {}
    if not isinstance(info, dict):
        raise ValidationError("device_info must be an object")
    out = {
        field: validate_length(field, info[field], max_len=64)
        for field in DEVICE_INFO_FIELDS
        if info.get(field)
    }
    if info.get("connection_type"):
        out["connection_type"] = validate_connection_type(info["connection_type"])
    return out
