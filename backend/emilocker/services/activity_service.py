# Overview: Activity audit log; append-only record() and paginated, filtered reads.

"""
Activity Audit Log

record() is best-effort by contract: an audit write failure is rolled back,
logged with current_app.logger.exception and never propagated, so it can
never undo or fail the operation it describes. Call it after the main unit
of work has committed.

Rows are never updated. They are deleted only by the shop-delete cascade
(shop_service.delete_shop).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app, has_request_context, request

from ..extensions import db
from ..models import ActivityLog, Severity
from ..responses import pagination_meta


SORTABLE_FIELDS = ("created_at", "action", "category", "severity")


@dataclass
class LogFilter:
    shop_id: int | None = None
    user_id: int | None = None
    device_id: int | None = None
    category: str | None = None
    action: str | None = None
    severity: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


def _client_context() -> tuple[str | None, str | None]:
    if not has_request_context():
        return None, None
    return request.remote_addr, request.headers.get("User-Agent")


def record(
    *,
    action: str,
    description: str,
    category: str,
    performed_by_id: int,
    user_id: int | None = None,
    shop_id: int | None = None,
    device_id: int | None = None,
    severity: str = Severity.LOW,
    metadata: dict | None = None,
) -> ActivityLog | None:
    """Append one audit entry. Returns None if the write failed."""
    ip_address, user_agent = _client_context()
    entry = ActivityLog(
        action=action,
        description=description,
        category=category,
        performed_by_id=performed_by_id,
        user_id=user_id,
        shop_id=shop_id,
        device_id=device_id,
        severity=severity,
        extra_data=metadata or {},
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    try:
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record activity %s", action)
        return None


def _apply_filter(query, log_filter: LogFilter):
    if log_filter.shop_id is not None:
        query = query.filter(ActivityLog.shop_id == log_filter.shop_id)
    if log_filter.user_id is not None:
        query = query.filter(ActivityLog.user_id == log_filter.user_id)
    if log_filter.device_id is not None:
        query = query.filter(ActivityLog.device_id == log_filter.device_id)
    if log_filter.category:
        query = query.filter(ActivityLog.category == log_filter.category)
    if log_filter.action:
        query = query.filter(ActivityLog.action == log_filter.action)
    if log_filter.severity:
        query = query.filter(ActivityLog.severity == log_filter.severity)
    if log_filter.start_date is not None:
        query = query.filter(ActivityLog.created_at >= log_filter.start_date)
    if log_filter.end_date is not None:
        query = query.filter(ActivityLog.created_at <= log_filter.end_date)
    return query


def query_paginated(
    log_filter: LogFilter,
    page: int,
    limit: int,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> tuple[list[ActivityLog], dict]:
    """
    Return (entries, pagination) for the filtered log.

    page and limit are validated by the caller. Ties on the sort column are
    broken by id in the same direction so paging is stable.
    """
    query = _apply_filter(db.session.query(ActivityLog), log_filter)

    column = getattr(ActivityLog, sort_by)
    if sort_order == "asc":
        query = query.order_by(column.asc(), ActivityLog.id.asc())
    else:
        query = query.order_by(column.desc(), ActivityLog.id.desc())

    total = query.count()
    entries = query.offset((page - 1) * limit).limit(limit).all()
    return entries, pagination_meta(page, limit, total)


def recent(shop_id: int | None = None, limit: int = 10) -> list[ActivityLog]:
    query = _apply_filter(db.session.query(ActivityLog), LogFilter(shop_id=shop_id))
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()


def delete_shop_logs(shop_id: int) -> int:
    """Shop-delete cascade only. Flushes; the caller commits."""
    return db.session.query(ActivityLog).filter(
        ActivityLog.shop_id == shop_id
    ).delete(synchronize_session=False)
