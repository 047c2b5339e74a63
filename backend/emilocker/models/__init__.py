from .tenancy import Shop, BUSINESS_TYPES
from .auth import User, SessionToken, EMI_STATUSES
from .devices import Device, LOCK_REASONS, DEFAULT_LOCK_REASON, CONNECTION_TYPES
from .activity import ActivityLog, ActivityAction, Severity, ALL_ACTIONS, ALL_SEVERITIES

__all__ = [
    'Shop', 'BUSINESS_TYPES',
    'User', 'SessionToken', 'EMI_STATUSES',
    'Device', 'LOCK_REASONS', 'DEFAULT_LOCK_REASON', 'CONNECTION_TYPES',
    'ActivityLog', 'ActivityAction', 'Severity', 'ALL_ACTIONS', 'ALL_SEVERITIES',
]
