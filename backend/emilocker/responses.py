# Overview: Standard JSON envelope {success, message, data, error} for every API response.

from __future__ import annotations

from flask import current_app, jsonify

from .errors import ServiceError


def success(data=None, message: str | None = None, status: int = 200):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def failure(message: str, status: int, code: str | None = None, detail: str | None = None):
    body = {"success": False, "message": message}
    if code:
        body["code"] = code
    # Error detail is only exposed outside production
    if detail and current_app.config.get("APP_ENV") != "production":
        body["error"] = detail
    return jsonify(body), status


def from_service_error(exc: ServiceError):
    return failure(exc.message, exc.status_code, code=exc.code)


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def server_error(message: str, exc: Exception | None = None):
    return failure(message, 500, code="INTERNAL_ERROR", detail=str(exc) if exc else None)
