from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


LOCK_REASONS = ("emi_default", "manual_lock", "suspicious_activity", "maintenance")
DEFAULT_LOCK_REASON = "emi_default"

CONNECTION_TYPES = ("wifi", "mobile", "offline")


class Device(db.Model):
    """
    A customer's financed handset.

    MULTI-TENANT: shop_id is the owning user's shop at registration time.

    SOURCE OF TRUTH: is_locked here is authoritative. users.device_is_locked
    mirrors it and is repaired from this table by the reconcile sweep.

    One device per user: user_id is unique.
    """
    __tablename__ = "devices"
    __table_args__ = (
        db.Index("ix_devices_shop_locked", "shop_id", "is_locked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    device_id = db.Column(db.String(128), nullable=False, unique=True, index=True)
    imei_number = db.Column(db.String(15), nullable=False, unique=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    # Device info
    brand = db.Column(db.String(64), nullable=True)
    model = db.Column(db.String(64), nullable=True)
    android_version = db.Column(db.String(32), nullable=True)
    app_version = db.Column(db.String(32), nullable=True)
    last_latitude = db.Column(db.Float, nullable=True)
    last_longitude = db.Column(db.Float, nullable=True)
    last_location_address = db.Column(db.String(255), nullable=True)
    last_location_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Lock status
    is_locked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    unlocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    lock_reason = db.Column(db.String(32), nullable=True)
    locked_by_id = db.Column(db.Integer, nullable=True)

    # Connection status
    is_online = db.Column(db.Boolean, nullable=False, default=False)
    last_seen = db.Column(db.DateTime(timezone=True), nullable=True)
    last_heartbeat = db.Column(db.DateTime(timezone=True), nullable=True)
    connection_type = db.Column(db.String(16), nullable=False, default="offline")

    # Security
    app_installed = db.Column(db.Boolean, nullable=False, default=True)
    app_tampered = db.Column(db.Boolean, nullable=False, default=False)
    root_detected = db.Column(db.Boolean, nullable=False, default=False)
    last_security_check = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("device", uselist=False, lazy=True))
    shop = db.relationship("Shop", backref=db.backref("devices", lazy=True))

    @property
    def display_name(self) -> str:
        label = " ".join(part for part in (self.brand, self.model) if part)
        return label or self.device_id

    def __repr__(self) -> str:
        return f"<Device id={self.id} device_id={self.device_id!r} locked={self.is_locked}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "imei_number": self.imei_number,
            "user_id": self.user_id,
            "shop_id": self.shop_id,
            "device_name": self.display_name,
            "device_info": {
                "brand": self.brand,
                "model": self.model,
                "android_version": self.android_version,
                "app_version": self.app_version,
                "last_location": {
                    "latitude": self.last_latitude,
                    "longitude": self.last_longitude,
                    "address": self.last_location_address,
                    "timestamp": to_utc_z(self.last_location_at),
                },
            },
            "lock_status": {
                "is_locked": self.is_locked,
                "locked_at": to_utc_z(self.locked_at),
                "unlocked_at": to_utc_z(self.unlocked_at),
                "lock_reason": self.lock_reason,
                "locked_by_id": self.locked_by_id,
            },
            "connection_status": {
                "is_online": self.is_online,
                "last_seen": to_utc_z(self.last_seen),
                "last_heartbeat": to_utc_z(self.last_heartbeat),
                "connection_type": self.connection_type,
            },
            "security": {
                "app_installed": self.app_installed,
                "app_tampered": self.app_tampered,
                "root_detected": self.root_detected,
                "last_security_check": to_utc_z(self.last_security_check),
            },
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
