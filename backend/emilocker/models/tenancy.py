from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


BUSINESS_TYPES = ("electronics", "mobile", "appliances", "furniture", "vehicles", "other")


class Shop(db.Model):
    """
    Tenant root: every customer account and device belongs to exactly one Shop.

    MULTI-TENANT: users.shop_id and devices.shop_id scope all tenant data.
    A shop owner only ever sees rows carrying their own shop_id.

    STATISTICS: the stat_* columns are a denormalized snapshot recomputed by
    statistics_service.recompute(). They are never edited directly.

    owner_id and created_by_id are plain integers; users.shop_id already
    points the other way and a second FK would make the schema cyclic.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_owner_id", "owner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(50), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(500), nullable=True)

    owner_id = db.Column(db.Integer, nullable=True)

    # Contact
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    alternate_phone = db.Column(db.String(20), nullable=True)

    # Address
    street = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=False, default="India")

    # Business info
    registration_number = db.Column(db.String(64), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)
    pan_number = db.Column(db.String(16), nullable=True)
    business_type = db.Column(db.String(32), nullable=False, default="electronics")

    # Settings
    auto_lock_on_default = db.Column(db.Boolean, nullable=False, default=True)
    grace_period_days = db.Column(db.Integer, nullable=False, default=3)
    notification_enabled = db.Column(db.Boolean, nullable=False, default=True)
    allow_bulk_operations = db.Column(db.Boolean, nullable=False, default=True)

    # Statistics snapshot
    stat_total_users = db.Column(db.Integer, nullable=False, default=0)
    stat_active_users = db.Column(db.Integer, nullable=False, default=0)
    stat_locked_devices = db.Column(db.Integer, nullable=False, default=0)
    stat_total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    stats_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship(
        "User",
        primaryjoin="foreign(Shop.owner_id) == User.id",
        viewonly=True,
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Shop id={self.id} shop_code={self.shop_code!r}>"

    def statistics_dict(self) -> dict:
        return {
            "total_users": self.stat_total_users,
            "active_users": self.stat_active_users,
            "locked_devices": self.stat_locked_devices,
            "total_revenue_cents": self.stat_total_revenue_cents,
            "updated_at": to_utc_z(self.stats_updated_at),
        }

    def to_public_dict(self) -> dict:
        """Directory listing for unauthenticated callers; no settings or statistics."""
        owner = self.owner
        return {
            "id": self.id,
            "shop_code": self.shop_code,
            "name": self.name,
            "description": self.description,
            "owner": {"name": owner.name, "phone": owner.phone, "email": owner.email} if owner else None,
            "contact": {"email": self.email, "phone": self.phone},
            "address": {"city": self.city, "state": self.state, "country": self.country},
            "business_type": self.business_type,
        }

    def to_dict(self) -> dict:
        owner = self.owner
        return {
            "id": self.id,
            "shop_code": self.shop_code,
            "name": self.name,
            "description": self.description,
            "owner_id": self.owner_id,
            "owner": {
                "id": owner.id,
                "name": owner.name,
                "phone": owner.phone,
                "email": owner.email,
            } if owner else None,
            "contact": {
                "email": self.email,
                "phone": self.phone,
                "alternate_phone": self.alternate_phone,
            },
            "address": {
                "street": self.street,
                "city": self.city,
                "state": self.state,
                "zip_code": self.zip_code,
                "country": self.country,
            },
            "business_info": {
                "registration_number": self.registration_number,
                "gst_number": self.gst_number,
                "pan_number": self.pan_number,
                "business_type": self.business_type,
            },
            "settings": {
                "auto_lock_on_default": self.auto_lock_on_default,
                "grace_period_days": self.grace_period_days,
                "notification_enabled": self.notification_enabled,
                "allow_bulk_operations": self.allow_bulk_operations,
            },
            "statistics": self.statistics_dict(),
            "is_active": self.is_active,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
