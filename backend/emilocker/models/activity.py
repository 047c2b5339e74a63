from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ActivityAction:
    DEVICE_LOCKED = "device_locked"
    DEVICE_UNLOCKED = "device_unlocked"
    DEVICE_REGISTERED = "device_registered"
    DEVICE_VIEWED = "device_viewed"
    DEVICES_VIEWED = "devices_viewed"
    BULK_LOCK = "bulk_lock"
    BULK_UNLOCK = "bulk_unlock"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_VIEWED = "user_viewed"
    USERS_VIEWED = "users_viewed"
    SHOP_CREATED = "shop_created"
    SHOP_UPDATED = "shop_updated"
    SHOP_DELETED = "shop_deleted"
    SHOP_VIEWED = "shop_viewed"
    SHOPS_VIEWED = "shops_viewed"
    SHOP_STATS_VIEWED = "shop_stats_viewed"
    EMI_PAYMENT = "emi_payment"
    EMI_DEFAULT = "emi_default"
    ADMIN_ACTION = "admin_action"
    DASHBOARD_VIEWED = "dashboard_viewed"
    LOGS_VIEWED = "logs_viewed"
    SYSTEM_HEALTH_VIEWED = "system_health_viewed"
    SECURITY_ALERT = "security_alert"


ALL_ACTIONS = tuple(
    value for name, value in vars(ActivityAction).items() if not name.startswith("_")
)


class Severity:
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ALL_SEVERITIES = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


class ActivityLog(db.Model):
    """
    Activity audit log.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    The only deletion path is the shop-delete cascade.

    Entity references are plain integers without foreign keys so history
    survives deletion of the user, device or shop it mentions.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_shop_created", "shop_id", "created_at"),
        db.Index("ix_activity_logs_user_created", "user_id", "created_at"),
        db.Index("ix_activity_logs_category_created", "category", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, nullable=True)
    shop_id = db.Column(db.Integer, nullable=True)
    device_id = db.Column(db.Integer, nullable=True, index=True)

    action = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(16), nullable=False)
    severity = db.Column(db.String(16), nullable=False, default=Severity.LOW, index=True)

    performed_by_id = db.Column(db.Integer, nullable=False, index=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    # "metadata" is reserved on declarative models
    extra_data = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def __repr__(self) -> str:
        return f"<ActivityLog id={self.id} action={self.action}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "shop_id": self.shop_id,
            "device_id": self.device_id,
            "action": self.action,
            "description": self.description,
            "category": self.category,
            "severity": self.severity,
            "performed_by_id": self.performed_by_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "metadata": self.extra_data or {},
            "created_at": to_utc_z(self.created_at),
        }
