from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..permissions import Role
from ..time_utils import to_utc_z


EMI_STATUSES = ("active", "completed", "defaulted", "suspended")


class User(db.Model):
    """
    Accounts for all three roles: superadmin, shopowner and end user.

    MULTI-TENANT: shop_id is required for shopowner and user, and NULL for
    the superadmin. Phone is globally unique (login identifier); email is
    optional but unique when present.

    MIRRORS: device_id/imei_number and the device_* lock columns copy the
    owned Device's state so list views need no join. The device lock engine
    writes both sides in one transaction.

    EMI: amounts are integer cents. remaining = total - paid is recomputed
    by the mapper hooks below before every insert and update.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_shop_role", "shop_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    role = db.Column(db.String(16), nullable=False, default=Role.USER.value, index=True)

    # MULTI-TENANT: NULL only for superadmin
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)

    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=True, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # Device mirror
    device_id = db.Column(db.String(128), nullable=True)
    imei_number = db.Column(db.String(15), nullable=True)

    # Address
    street = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    # EMI bookkeeping (cents)
    emi_total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    emi_paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    emi_remaining_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    emi_monthly_cents = db.Column(db.Integer, nullable=False, default=0)
    emi_due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    emi_next_due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    emi_status = db.Column(db.String(16), nullable=False, default="active")

    # Device status mirror
    device_is_locked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    device_last_locked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    device_last_unlocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    device_lock_reason = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "device_id": self.device_id,
            "imei_number": self.imei_number,
            "address": {
                "street": self.street,
                "city": self.city,
                "state": self.state,
                "zip_code": self.zip_code,
                "country": self.country,
            },
            "emi_details": {
                "total_amount_cents": self.emi_total_amount_cents,
                "paid_amount_cents": self.emi_paid_amount_cents,
                "remaining_amount_cents": self.emi_remaining_amount_cents,
                "monthly_emi_cents": self.emi_monthly_cents,
                "due_date": to_utc_z(self.emi_due_date),
                "next_due_date": to_utc_z(self.emi_next_due_date),
                "status": self.emi_status,
            },
            "device_status": {
                "is_locked": self.device_is_locked,
                "last_locked_at": to_utc_z(self.device_last_locked_at),
                "last_unlocked_at": to_utc_z(self.device_last_unlocked_at),
                "lock_reason": self.device_lock_reason,
            },
            "is_active": self.is_active,
            "last_login_at": to_utc_z(self.last_login_at),
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def _recompute_remaining(mapper, connection, target):
    total = target.emi_total_amount_cents or 0
    paid = target.emi_paid_amount_cents or 0
    target.emi_remaining_amount_cents = total - paid


event.listen(User, "before_insert", _recompute_remaining)
event.listen(User, "before_update", _recompute_remaining)


class SessionToken(db.Model):
    """
    Bearer session tokens.

    SECURITY: only the SHA-256 hash of the token is stored. The plaintext
    goes to the client once at login.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at),
            "revoked_reason": self.revoked_reason,
        }
