# Overview: Closed role enum and the operations each role may ever attempt.

"""
Roles

Three mutually exclusive capability sets. ROLE_OPERATIONS is the role-level
gate: an operation missing from a role's set is denied before any target is
looked at. Scope rules (own shop, own record) are applied afterwards by the
policy service.
"""

import enum

from .definitions import Operation


class Role(str, enum.Enum):
    SUPERADMIN = "superadmin"
    SHOPOWNER = "shopowner"
    USER = "user"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}")


ROLE_OPERATIONS = {
    Role.SUPERADMIN: frozenset({
        Operation.SHOP_LIST,
        Operation.SHOP_VIEW,
        Operation.SHOP_UPDATE,
        Operation.SHOP_CREATE,
        Operation.SHOP_DELETE,
        Operation.USER_LIST,
        Operation.USER_VIEW,
        Operation.USER_UPDATE,
        Operation.USER_CREATE,
        Operation.USER_DELETE,
        Operation.DEVICE_LIST,
        Operation.DEVICE_VIEW,
        Operation.DEVICE_REGISTER,
        Operation.DEVICE_LOCK,
        Operation.DEVICE_UNLOCK,
        Operation.DEVICE_BULK_LOCK,
        Operation.DEVICE_BULK_UNLOCK,
        Operation.DASHBOARD_VIEW,
        Operation.LOGS_VIEW,
        Operation.SYSTEM_HEALTH_VIEW,
    }),

    Role.SHOPOWNER: frozenset({
        Operation.SHOP_VIEW,
        Operation.SHOP_UPDATE,
        Operation.USER_LIST,
        Operation.USER_VIEW,
        Operation.USER_UPDATE,
        Operation.USER_CREATE,
        Operation.USER_DELETE,
        Operation.DEVICE_LIST,
        Operation.DEVICE_VIEW,
        Operation.DEVICE_REGISTER,
        Operation.DEVICE_LOCK,
        Operation.DEVICE_UNLOCK,
        Operation.DEVICE_BULK_LOCK,
        Operation.DEVICE_BULK_UNLOCK,
        Operation.DASHBOARD_VIEW,
        Operation.LOGS_VIEW,
    }),

    # End users see themselves and their own device; they never lock anything
    Role.USER: frozenset({
        Operation.USER_LIST,
        Operation.USER_VIEW,
        Operation.USER_UPDATE,
        Operation.DEVICE_LIST,
        Operation.DEVICE_VIEW,
        Operation.DEVICE_REGISTER,
    }),
}
