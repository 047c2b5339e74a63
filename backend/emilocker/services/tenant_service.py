"""
Tenant Scoping Helpers

WHY: List endpoints never load a record and ask the policy about it one by
one. Instead they start from a query already narrowed to the caller's
scope; the rules here mirror the scope rules in policy_service.

SCOPE:
- superadmin: everything
- shopowner:  rows with shop_id == caller.shop_id (never superadmin users)
- user:       their own user row and their own device

USAGE:
    query = tenant_service.scoped_users_query(caller)
    query = tenant_service.scoped_devices_query(caller)
"""

from __future__ import annotations

from ..extensions import db
from ..models import Device, User
from ..permissions import Role
from .policy_service import CallerIdentity


def _no_rows(query, model):
    return query.filter(model.id.is_(None))


def scoped_users_query(caller: CallerIdentity):
    query = db.session.query(User)
    if caller.role is Role.SUPERADMIN:
        return query
    if caller.role is Role.SHOPOWNER:
        if caller.shop_id is None:
            return _no_rows(query, User)
        return query.filter(User.shop_id == caller.shop_id, User.role != Role.SUPERADMIN.value)
    if caller.role is Role.USER:
        return query.filter(User.id == caller.id)
    raise ValueError(f"Unhandled role: {caller.role!r}")


def scoped_devices_query(caller: CallerIdentity):
    query = db.session.query(Device)
    if caller.role is Role.SUPERADMIN:
        return query
    if caller.role is Role.SHOPOWNER:
        if caller.shop_id is None:
            return _no_rows(query, Device)
        return query.filter(Device.shop_id == caller.shop_id)
    if caller.role is Role.USER:
        return query.filter(Device.user_id == caller.id)
    raise ValueError(f"Unhandled role: {caller.role!r}")


def scoped_shop_id(caller: CallerIdentity) -> int | None:
    """Shop filter for aggregate views; None means all shops."""
    if caller.role is Role.SUPERADMIN:
        return None
    return caller.shop_id


def scoped_device_ids(caller: CallerIdentity, device_ids: list[int]) -> list[Device]:
    """
    Resolve requested device ids to the caller-visible subset.

    Ids outside the caller's scope and ids that do not exist are dropped
    silently. Request order is preserved.
    """
    if not device_ids:
        return []
    devices = scoped_devices_query(caller).filter(Device.id.in_(device_ids)).all()
    by_id = {device.id: device for device in devices}
    return [by_id[device_id] for device_id in device_ids if device_id in by_id]
