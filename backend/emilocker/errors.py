# Overview: Service error taxonomy shared by services, decorators, and routes.

"""
Service Errors

Every failure a service reports to its caller is a ServiceError subclass.
Each class carries the HTTP status it renders as and a machine-readable code,
so routes can turn any of them into the standard envelope without a
per-exception branch.

    AuthenticationError  401  credential missing/invalid/expired, account inactive
    AuthorizationError   403  role may never perform the operation
    NotFoundError        404  entity absent or outside the caller's scope
    ConflictError        400  duplicate unique field or invalid state transition
    ValidationError      400  malformed input
    TransientError       500  store or identity backend unavailable; caller may retry
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class AuthenticationError(ServiceError):
    status_code = 401
    default_code = "AUTH_INVALID"


class AuthorizationError(ServiceError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(ServiceError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(ServiceError):
    status_code = 400
    default_code = "CONFLICT"


class ValidationError(ServiceError):
    status_code = 400
    default_code = "VALIDATION_FAILED"


class TransientError(ServiceError):
    status_code = 500
    default_code = "TRANSIENT"


# Identity resolution failure codes
AUTH_MISSING = "AUTH_MISSING"
AUTH_INVALID = "AUTH_INVALID"
AUTH_EXPIRED = "AUTH_EXPIRED"
AUTH_INACTIVE = "AUTH_INACTIVE"

# Device lock engine conflict codes
ALREADY_LOCKED = "ALREADY_LOCKED"
NOT_LOCKED = "NOT_LOCKED"
DUPLICATE_DEVICE = "DUPLICATE_DEVICE"
DEVICE_ALREADY_ASSIGNED = "DEVICE_ALREADY_ASSIGNED"

# Entity uniqueness conflict codes
DUPLICATE_USER = "DUPLICATE_USER"
DUPLICATE_SHOP = "DUPLICATE_SHOP"
