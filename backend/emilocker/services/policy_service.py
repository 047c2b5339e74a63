# Overview: Access control policy; pure decide(caller, operation, target) plus an enforcing wrapper.

"""
Access Control Policy

decide() is a pure function: it reads only the caller identity, the
operation code and a small description of the target. It never touches the
database, so every rule is unit-testable without fixtures.

EVALUATION ORDER:
1. Inactive caller -> deny (AUTH_INACTIVE)
2. Role gate: operation not in ROLE_OPERATIONS[role] -> deny (FORBIDDEN).
   This runs before anything about the target is known, so a role-level
   denial never depends on whether the target exists.
3. Scope: the concrete target must lie in the caller's shop (shopowner) or
   be the caller / the caller's device (user) -> deny (OUT_OF_SCOPE).

enforce() maps the outcome to exceptions: OUT_OF_SCOPE is reported as
NotFoundError so a scoped caller cannot probe for other tenants' records.

Target=None evaluates steps 1 and 2 only. Services call enforce() once
without a target before loading the record, then again with it.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import AUTH_INACTIVE, AuthenticationError, AuthorizationError, NotFoundError
from ..permissions import Operation, ROLE_OPERATIONS, Role


FORBIDDEN = "FORBIDDEN"
OUT_OF_SCOPE = "OUT_OF_SCOPE"


@dataclass(frozen=True)
class CallerIdentity:
    id: int
    role: Role
    shop_id: int | None
    is_active: bool = True

    @classmethod
    def from_user(cls, user) -> "CallerIdentity":
        return cls(
            id=user.id,
            role=Role.parse(user.role),
            shop_id=user.shop_id,
            is_active=bool(user.is_active),
        )


@dataclass(frozen=True)
class Target:
    """
    What an operation acts on.

    id:       the entity's own id (shop id, user id or device row id)
    shop_id:  owning shop
    user_id:  owning user (devices) or the user itself (users)
    role:     the target user's role, or the requested role on create
    """
    id: int | None = None
    shop_id: int | None = None
    user_id: int | None = None
    role: Role | None = None

    @classmethod
    def for_shop(cls, shop) -> "Target":
        return cls(id=shop.id, shop_id=shop.id)

    @classmethod
    def for_user(cls, user) -> "Target":
        return cls(id=user.id, shop_id=user.shop_id, user_id=user.id, role=Role.parse(user.role))

    @classmethod
    def for_device(cls, device) -> "Target":
        return cls(id=device.id, shop_id=device.shop_id, user_id=device.user_id)

    @classmethod
    def for_new_user(cls, shop_id: int | None, role) -> "Target":
        return cls(shop_id=shop_id, role=Role.parse(role))


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""
    code: str | None = None


ALLOW = Decision(True)

_SHOP_SCOPED = frozenset({Operation.SHOP_VIEW, Operation.SHOP_UPDATE})

_DEVICE_OPERATIONS = frozenset({
    Operation.DEVICE_VIEW,
    Operation.DEVICE_LOCK,
    Operation.DEVICE_UNLOCK,
    Operation.DEVICE_BULK_LOCK,
    Operation.DEVICE_BULK_UNLOCK,
})


def _out_of_scope(reason: str) -> Decision:
    return Decision(False, reason, OUT_OF_SCOPE)


def _forbidden(reason: str) -> Decision:
    return Decision(False, reason, FORBIDDEN)


def _decide_shopowner(caller: CallerIdentity, operation: str, target: Target) -> Decision:
    if caller.shop_id is None:
        return _out_of_scope("Shop owner has no shop")

    if operation in _SHOP_SCOPED:
        if target.id != caller.shop_id:
            return _out_of_scope("Shop is outside your shop")
        return ALLOW

    if operation == Operation.USER_CREATE:
        if target.role in (Role.SUPERADMIN, Role.SHOPOWNER):
            return _forbidden("Shop owners can only create end users")
        if target.shop_id != caller.shop_id:
            return _forbidden("Users can only be created in your own shop")
        return ALLOW

    if operation == Operation.USER_DELETE:
        if target.role == Role.SUPERADMIN or target.shop_id != caller.shop_id:
            return _out_of_scope("User is outside your shop")
        return ALLOW

    # Remaining user and device operations: same-shop rule
    if target.shop_id != caller.shop_id or target.role == Role.SUPERADMIN:
        return _out_of_scope("Record is outside your shop")
    return ALLOW


def _decide_user(caller: CallerIdentity, operation: str, target: Target) -> Decision:
    if operation in (Operation.USER_VIEW, Operation.USER_UPDATE, Operation.DEVICE_REGISTER):
        if target.user_id != caller.id:
            return _out_of_scope("You can only access your own account")
        return ALLOW

    if operation in _DEVICE_OPERATIONS:
        if target.user_id != caller.id:
            return _out_of_scope("You can only access your own device")
        return ALLOW

    return _out_of_scope("Record is outside your scope")


def decide(caller: CallerIdentity, operation: str, target: Target | None = None) -> Decision:
    """Return the policy decision for caller performing operation on target."""
    if not caller.is_active:
        return Decision(False, "Account is deactivated", AUTH_INACTIVE)

    role = caller.role
    allowed_operations = ROLE_OPERATIONS.get(role)
    if allowed_operations is None:
        raise ValueError(f"Unhandled role: {role!r}")
    if operation not in allowed_operations:
        return _forbidden(f"Role {role.value} may not perform {operation}")

    if target is None:
        return ALLOW

    if role is Role.SUPERADMIN:
        return ALLOW
    elif role is Role.SHOPOWNER:
        return _decide_shopowner(caller, operation, target)
    elif role is Role.USER:
        return _decide_user(caller, operation, target)
    raise ValueError(f"Unhandled role: {role!r}")


def enforce(caller: CallerIdentity, operation: str, target: Target | None = None, *, not_found_message: str = "Not found") -> None:
    """
    Raise when decide() denies.

    AUTH_INACTIVE -> AuthenticationError (401)
    FORBIDDEN     -> AuthorizationError (403)
    OUT_OF_SCOPE  -> NotFoundError (404)
    """
    decision = decide(caller, operation, target)
    if decision.allowed:
        return
    if decision.code == AUTH_INACTIVE:
        raise AuthenticationError(decision.reason, code=AUTH_INACTIVE)
    if decision.code == OUT_OF_SCOPE:
        raise NotFoundError(not_found_message)
    raise AuthorizationError("Access denied", code=FORBIDDEN)


def is_allowed(caller: CallerIdentity, operation: str, target: Target | None = None) -> bool:
    return decide(caller, operation, target).allowed
