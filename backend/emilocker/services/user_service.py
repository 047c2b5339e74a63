# Overview: Service-layer operations for user accounts; scoped CRUD with EMI bookkeeping.

from __future__ import annotations

from ..errors import (
    DUPLICATE_USER,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from ..extensions import db
from ..models import ActivityAction, Device, SessionToken, Severity, Shop, User
from ..permissions import Operation, OperationCategory, Role
from . import activity_service, device_service, session_service, statistics_service, tenant_service
from .auth_service import ensure_unique_contact, hash_password
from .concurrency import commit
from .policy_service import CallerIdentity, Target, enforce


SORTABLE_FIELDS = ("created_at", "name", "phone", "last_login_at")

PROFILE_FIELDS = ("name", "email", "street", "city", "state", "zip_code", "country")
# Only shop owners and the superadmin may touch these
MANAGED_FIELDS = (
    "phone",
    "is_active",
    "emi_total_amount_cents",
    "emi_paid_amount_cents",
    "emi_monthly_cents",
    "emi_due_date",
    "emi_next_due_date",
    "emi_status",
)


def list_users(
    caller: CallerIdentity,
    *,
    page: int,
    limit: int,
    search: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    shop_id: int | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> tuple[list[User], int]:
    enforce(caller, Operation.USER_LIST)
    query = tenant_service.scoped_users_query(caller)

    if shop_id is not None:
        query = query.filter(User.shop_id == shop_id)
    if role:
        query = query.filter(User.role == Role.parse(role).value)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                User.name.ilike(pattern),
                User.phone.ilike(pattern),
                User.email.ilike(pattern),
                User.imei_number.ilike(pattern),
            )
        )

    column = getattr(User, sort_by)
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), User.id.asc())

    total = query.count()
    users = query.offset((page - 1) * limit).limit(limit).all()
    return users, total


def _check_emi_amounts(current: User | None, changes: dict) -> None:
    """paid may never exceed total; remaining is derived from the two."""
    total = changes.get("emi_total_amount_cents", current.emi_total_amount_cents if current else 0)
    paid = changes.get("emi_paid_amount_cents", current.emi_paid_amount_cents if current else 0)
    if (paid or 0) > (total or 0):
        raise ValidationError("EMI paid amount cannot exceed the total amount")


def get_user(caller: CallerIdentity, user_id: int, operation: str = Operation.USER_VIEW) -> User:
    enforce(caller, operation)
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")
    enforce(caller, operation, Target.for_user(user), not_found_message="User not found")
    return user


def stage_user(caller: CallerIdentity, data: dict) -> User:
    """
    Check and add a new account to the session without committing.

    RULES:
    - shopowner: own shop only, end users only; shop_id defaults to theirs
    - superadmin: any shop, any role
    - shop_id is required for shopowner and user roles, absent for superadmin
    - a shop has exactly one owner
    """
    enforce(caller, Operation.USER_CREATE)

    role = Role.parse(data.get("role") or Role.USER.value)
    shop_id = data.get("shop_id")
    if shop_id is None and caller.role is Role.SHOPOWNER:
        shop_id = caller.shop_id

    enforce(caller, Operation.USER_CREATE, Target.for_new_user(shop_id, role))

    shop = None
    if role is Role.SUPERADMIN:
        if shop_id is not None:
            raise ValidationError("Superadmin accounts do not belong to a shop")
    else:
        if shop_id is None:
            raise ValidationError("shop_id is required for shop owners and users")
        shop = db.session.query(Shop).filter_by(id=shop_id).first()
        if not shop:
            raise NotFoundError("Shop not found")
        if role is Role.SHOPOWNER and shop.owner_id is not None:
            raise ConflictError("Shop already has an owner")

    _check_emi_amounts(None, data)
    ensure_unique_contact(data["phone"], data.get("email"))

    user = User(
        role=role.value,
        shop_id=shop_id,
        name=data["name"],
        phone=data["phone"],
        email=data.get("email"),
        password_hash=hash_password(data["password"]),
        created_by_id=caller.id,
    )
    for field in PROFILE_FIELDS + MANAGED_FIELDS:
        if field in data and field not in ("name", "email", "phone"):
            setattr(user, field, data[field])
    db.session.add(user)
    db.session.flush()

    if shop is not None and role is Role.SHOPOWNER:
        shop.owner_id = user.id
    return user


def _record_user_created(caller: CallerIdentity, user: User, device_pk: int | None = None) -> None:
    activity_service.record(
        action=ActivityAction.USER_CREATED,
        description=f"User created: {user.name} ({user.role})",
        category=OperationCategory.USER,
        performed_by_id=caller.id,
        user_id=user.id,
        shop_id=user.shop_id,
        device_id=device_pk,
        severity=Severity.LOW,
    )


def create_user(caller: CallerIdentity, data: dict) -> User:
    """Create an account; see stage_user for the role and shop rules."""
    user = stage_user(caller, data)
    commit("creating user", conflict_message="User with this phone or email already exists", conflict_code=DUPLICATE_USER)

    statistics_service.recompute(user.shop_id)
    _record_user_created(caller, user)
    return user


def onboard_customer(caller: CallerIdentity, data: dict, device: dict) -> tuple[User, Device]:
    """
    Create an end user and register their handset in one transaction.

    data:   account fields as for create_user; role is always user and the
            password defaults to the phone number
    device: device_id, imei_number, device_info?

    A duplicate phone, device id or IMEI leaves nothing behind.
    """
    fields = dict(data, role=Role.USER.value)
    fields.setdefault("password", fields["phone"])

    try:
        user = stage_user(caller, fields)
        registered = device_service.stage_registration(
            caller,
            user_id=user.id,
            device_id=device["device_id"],
            imei_number=device["imei_number"],
            device_info=device.get("device_info"),
        )
    except ServiceError:
        db.session.rollback()
        raise

    commit("onboarding customer", conflict_message="User or device already exists", conflict_code=DUPLICATE_USER)

    statistics_service.recompute(user.shop_id)
    _record_user_created(caller, user, registered.id)
    device_service.record_registration(caller, registered)
    return user, registered


def update_user(caller: CallerIdentity, user_id: int, changes: dict) -> User:
    """
    Edit an account.

    End users may edit their own profile fields only. EMI bookkeeping, phone
    and is_active are reserved for shop owners and the superadmin.
    Deactivation revokes every session of the account.
    """
    user = get_user(caller, user_id, Operation.USER_UPDATE)

    managed = sorted(field for field in MANAGED_FIELDS if field in changes)
    if managed and caller.role is Role.USER:
        raise AuthorizationError(f"Not allowed to change: {', '.join(managed)}")

    if changes.get("is_active") is False and user.id == caller.id:
        raise ValidationError("You cannot deactivate your own account")

    _check_emi_amounts(user, changes)
    ensure_unique_contact(changes.get("phone"), changes.get("email"), exclude_user_id=user.id)

    was_active = user.is_active
    old_paid = user.emi_paid_amount_cents
    old_status = user.emi_status

    for field in PROFILE_FIELDS + MANAGED_FIELDS:
        if field in changes:
            setattr(user, field, changes[field])

    deactivated = was_active and not user.is_active
    if deactivated:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated", flush_only=True)

    commit("updating user", conflict_message="User with this phone or email already exists", conflict_code=DUPLICATE_USER)

    if user.is_active != was_active or user.emi_paid_amount_cents != old_paid:
        statistics_service.recompute(user.shop_id)

    activity_service.record(
        action=ActivityAction.USER_UPDATED,
        description=f"User updated: {user.name}",
        category=OperationCategory.USER,
        performed_by_id=caller.id,
        user_id=user.id,
        shop_id=user.shop_id,
        severity=Severity.MEDIUM if deactivated else Severity.LOW,
        metadata={"fields": sorted(changes)},
    )
    if user.emi_paid_amount_cents != old_paid:
        activity_service.record(
            action=ActivityAction.EMI_PAYMENT,
            description=f"EMI paid amount updated for {user.name}",
            category=OperationCategory.PAYMENT,
            performed_by_id=caller.id,
            user_id=user.id,
            shop_id=user.shop_id,
            metadata={
                "previous_paid_cents": old_paid,
                "paid_cents": user.emi_paid_amount_cents,
                "remaining_cents": user.emi_remaining_amount_cents,
            },
        )
    if user.emi_status == "defaulted" and old_status != "defaulted":
        activity_service.record(
            action=ActivityAction.EMI_DEFAULT,
            description=f"EMI marked defaulted for {user.name}",
            category=OperationCategory.PAYMENT,
            performed_by_id=caller.id,
            user_id=user.id,
            shop_id=user.shop_id,
            severity=Severity.HIGH,
        )
    return user


def delete_user(caller: CallerIdentity, user_id: int) -> None:
    """Delete an account together with its device and sessions."""
    user = get_user(caller, user_id, Operation.USER_DELETE)
    if user.id == caller.id:
        raise ValidationError("You cannot delete your own account")

    shop_id = user.shop_id
    name = user.name
    role = user.role

    device = db.session.query(Device).filter_by(user_id=user.id).first()
    device_pk = device.id if device else None
    if device is not None:
        db.session.delete(device)
    db.session.query(SessionToken).filter_by(user_id=user.id).delete(synchronize_session=False)

    if shop_id is not None:
        db.session.query(Shop).filter_by(id=shop_id, owner_id=user.id).update(
            {"owner_id": None}, synchronize_session=False
        )

    db.session.delete(user)
    commit("deleting user")

    statistics_service.recompute(shop_id)
    activity_service.record(
        action=ActivityAction.USER_DELETED,
        description=f"User deleted: {name} ({role})",
        category=OperationCategory.USER,
        performed_by_id=caller.id,
        user_id=user_id,
        shop_id=shop_id,
        device_id=device_pk,
        severity=Severity.HIGH,
    )
