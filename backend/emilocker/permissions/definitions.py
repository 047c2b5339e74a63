# Overview: Operation codes subject to the access control policy.

"""
Operation Definitions

Every request the backend serves maps to exactly one operation code below.
The access control policy (services/policy_service.py) decides per
(caller, operation, target) whether it is allowed.
"""


class Operation:
    SHOP_LIST = "SHOP_LIST"
    SHOP_VIEW = "SHOP_VIEW"
    SHOP_UPDATE = "SHOP_UPDATE"
    SHOP_CREATE = "SHOP_CREATE"
    SHOP_DELETE = "SHOP_DELETE"

    USER_LIST = "USER_LIST"
    USER_VIEW = "USER_VIEW"
    USER_UPDATE = "USER_UPDATE"
    USER_CREATE = "USER_CREATE"
    USER_DELETE = "USER_DELETE"

    DEVICE_LIST = "DEVICE_LIST"
    DEVICE_VIEW = "DEVICE_VIEW"
    DEVICE_REGISTER = "DEVICE_REGISTER"
    DEVICE_LOCK = "DEVICE_LOCK"
    DEVICE_UNLOCK = "DEVICE_UNLOCK"
    DEVICE_BULK_LOCK = "DEVICE_BULK_LOCK"
    DEVICE_BULK_UNLOCK = "DEVICE_BULK_UNLOCK"

    DASHBOARD_VIEW = "DASHBOARD_VIEW"
    LOGS_VIEW = "LOGS_VIEW"
    SYSTEM_HEALTH_VIEW = "SYSTEM_HEALTH_VIEW"


ALL_OPERATIONS = frozenset(
    value for name, value in vars(Operation).items() if name.isupper()
)
