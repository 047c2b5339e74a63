# Overview: Service-layer operations for shops; scoped CRUD, statistics view and cascade delete.

from __future__ import annotations

from ..errors import DUPLICATE_SHOP, NotFoundError, ValidationError
from ..extensions import db
from ..models import ActivityAction, Device, SessionToken, Severity, Shop, User
from ..permissions import Operation, OperationCategory, Role
from . import activity_service, statistics_service
from .auth_service import ensure_unique_shop
from .concurrency import commit, lock_for_update
from .policy_service import CallerIdentity, Target, enforce


SORTABLE_FIELDS = ("created_at", "name", "shop_code")

# Writable through create/update; statistics are never client-writable
SHOP_FIELDS = (
    "name",
    "description",
    "email",
    "phone",
    "alternate_phone",
    "street",
    "city",
    "state",
    "zip_code",
    "country",
    "registration_number",
    "gst_number",
    "pan_number",
    "business_type",
    "auto_lock_on_default",
    "grace_period_days",
    "notification_enabled",
    "allow_bulk_operations",
)
SUPERADMIN_ONLY_FIELDS = ("is_active",)


def list_shops(
    caller: CallerIdentity,
    *,
    page: int,
    limit: int,
    search: str | None = None,
    is_active: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> tuple[list[Shop], int]:
    enforce(caller, Operation.SHOP_LIST)
    query = db.session.query(Shop)

    if is_active is not None:
        query = query.filter(Shop.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Shop.name.ilike(pattern),
                Shop.shop_code.ilike(pattern),
                Shop.city.ilike(pattern),
            )
        )

    column = getattr(Shop, sort_by)
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Shop.id.asc())

    total = query.count()
    shops = query.offset((page - 1) * limit).limit(limit).all()
    return shops, total


PUBLIC_SEARCH_LIMIT = 20


def search_public_shops(query: str) -> list[Shop]:
    """Active shops whose name, description or email contains query (case-insensitive)."""
    pattern = f"%{query}%"
    return (
        db.session.query(Shop)
        .filter(
            Shop.is_active.is_(True),
            db.or_(
                Shop.name.ilike(pattern),
                Shop.description.ilike(pattern),
                Shop.email.ilike(pattern),
            ),
        )
        .order_by(Shop.name.asc(), Shop.id.asc())
        .limit(PUBLIC_SEARCH_LIMIT)
        .all()
    )


def get_shop(caller: CallerIdentity, shop_id: int, operation: str = Operation.SHOP_VIEW) -> Shop:
    enforce(caller, operation)
    shop = db.session.query(Shop).filter_by(id=shop_id).first()
    if not shop:
        raise NotFoundError("Shop not found")
    enforce(caller, operation, Target.for_shop(shop), not_found_message="Shop not found")
    return shop


def view_shop(caller: CallerIdentity, shop_id: int) -> Shop:
    """Single-shop read; the statistics snapshot is refreshed on every view."""
    shop = get_shop(caller, shop_id)
    statistics_service.recompute(shop.id)
    return shop


def get_statistics(caller: CallerIdentity, shop_id: int) -> dict:
    shop = get_shop(caller, shop_id)
    stats = statistics_service.recompute(shop.id)

    users = db.session.query(User).filter(User.shop_id == shop.id)
    total = users.count()
    inactive = users.filter(User.is_active.is_(False)).count()
    devices = db.session.query(Device).filter(Device.shop_id == shop.id)

    return {
        **stats,
        "user_breakdown": {
            "total": total,
            "active": total - inactive,
            "inactive": inactive,
            "locked_devices": stats["locked_devices"],
        },
        "device_breakdown": {
            "total": devices.count(),
            "online": devices.filter(Device.is_online.is_(True)).count(),
            "locked": devices.filter(Device.is_locked.is_(True)).count(),
        },
        "recent_activities": [entry.to_dict() for entry in activity_service.recent(shop.id, limit=10)],
    }


def create_shop(caller: CallerIdentity, data: dict) -> Shop:
    """
    Superadmin creates a shop for an existing account.

    The owner must not be a superadmin, must not already own a shop and
    must not hold a device (devices stay in their original shop). The owner
    is moved into the new shop as its shopowner.
    """
    enforce(caller, Operation.SHOP_CREATE)

    owner = db.session.query(User).filter_by(id=data["owner_id"]).first()
    if not owner:
        raise ValidationError("Invalid owner ID")
    if owner.role == Role.SUPERADMIN.value:
        raise ValidationError("A superadmin cannot own a shop")
    if db.session.query(Shop).filter_by(owner_id=owner.id).first():
        raise ValidationError("User already owns a shop")
    if db.session.query(Device).filter_by(user_id=owner.id).first():
        raise ValidationError("Owner has a registered device in another shop")

    ensure_unique_shop(data["name"], data["shop_code"])

    previous_shop_id = owner.shop_id
    shop = Shop(
        shop_code=data["shop_code"],
        owner_id=owner.id,
        created_by_id=caller.id,
        **{field: data[field] for field in SHOP_FIELDS if field in data},
    )
    db.session.add(shop)
    db.session.flush()

    owner.role = Role.SHOPOWNER.value
    owner.shop_id = shop.id

    commit("creating shop", conflict_message="Shop with this name or shop ID already exists", conflict_code=DUPLICATE_SHOP)

    statistics_service.recompute_many([previous_shop_id, shop.id])
    activity_service.record(
        action=ActivityAction.SHOP_CREATED,
        description=f"Shop created: {shop.name}",
        category=OperationCategory.SHOP,
        performed_by_id=caller.id,
        user_id=owner.id,
        shop_id=shop.id,
        severity=Severity.MEDIUM,
    )
    return shop


def update_shop(caller: CallerIdentity, shop_id: int, changes: dict) -> Shop:
    enforce(caller, Operation.SHOP_UPDATE)
    shop = lock_for_update(db.session.query(Shop).filter_by(id=shop_id)).first()
    if not shop:
        raise NotFoundError("Shop not found")
    enforce(caller, Operation.SHOP_UPDATE, Target.for_shop(shop), not_found_message="Shop not found")

    if "is_active" in changes and caller.role is not Role.SUPERADMIN:
        raise ValidationError("Only the superadmin can activate or deactivate a shop")

    if "name" in changes:
        ensure_unique_shop(changes["name"], None, exclude_shop_id=shop.id)

    for field in SHOP_FIELDS + SUPERADMIN_ONLY_FIELDS:
        if field in changes:
            setattr(shop, field, changes[field])

    commit("updating shop", conflict_message="Shop with this name already exists", conflict_code=DUPLICATE_SHOP)

    activity_service.record(
        action=ActivityAction.SHOP_UPDATED,
        description=f"Shop updated: {shop.name}",
        category=OperationCategory.SHOP,
        performed_by_id=caller.id,
        shop_id=shop.id,
        metadata={"fields": sorted(changes)},
    )
    return shop


def delete_shop(caller: CallerIdentity, shop_id: int) -> dict:
    """
    Delete a shop and everything it owns.

    CASCADE (one transaction): devices, session tokens of its users, users,
    the shop's activity log rows, then the shop. The shop_deleted entry is
    written afterwards with no shop_id so it survives the cascade.
    """
    shop = get_shop(caller, shop_id, Operation.SHOP_DELETE)
    name = shop.name

    user_ids = [row[0] for row in db.session.query(User.id).filter(User.shop_id == shop.id).all()]
    devices_deleted = db.session.query(Device).filter(Device.shop_id == shop.id).delete(synchronize_session=False)
    if user_ids:
        db.session.query(SessionToken).filter(SessionToken.user_id.in_(user_ids)).delete(synchronize_session=False)
    users_deleted = db.session.query(User).filter(User.shop_id == shop.id).delete(synchronize_session=False)
    logs_deleted = activity_service.delete_shop_logs(shop.id)
    db.session.query(Shop).filter(Shop.id == shop.id).delete(synchronize_session=False)

    commit("deleting shop")

    summary = {
        "users_deleted": users_deleted,
        "devices_deleted": devices_deleted,
        "logs_deleted": logs_deleted,
    }
    activity_service.record(
        action=ActivityAction.SHOP_DELETED,
        description=f"Shop deleted: {name}",
        category=OperationCategory.SHOP,
        performed_by_id=caller.id,
        severity=Severity.HIGH,
        metadata={"shop_id": shop_id, **summary},
    )
    return summary
