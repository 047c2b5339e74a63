# Overview: Service-layer operations for auth; password hashing, login, self-registration and profile.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for password hashing.

LOGIN: the identifier is an email when it contains "@", otherwise a phone
number. Bad identifier and bad password give the same AUTH_INVALID answer.
A correct password on a deactivated account gives AUTH_INACTIVE.

SELF-REGISTRATION: creates a Shop and its owning shopowner User in one
transaction. Either both rows exist afterwards or neither does.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters
- Password change revokes every session of the user
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..errors import (
    AUTH_INACTIVE,
    AUTH_INVALID,
    DUPLICATE_SHOP,
    DUPLICATE_USER,
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import ActivityAction, Severity, Shop, User
from ..permissions import OperationCategory, Role
from ..time_utils import utcnow
from ..validation import validate_password
from . import activity_service, session_service, statistics_service
from .concurrency import commit


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Length is validated before hashing."""
    validate_password(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def find_by_identifier(identifier: str) -> User | None:
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    if "@" in identifier:
        return db.session.query(User).filter_by(email=identifier.lower()).first()
    return db.session.query(User).filter_by(phone=identifier).first()


def ensure_unique_contact(phone: str | None, email: str | None, *, exclude_user_id: int | None = None) -> None:
    """Raise DUPLICATE_USER if phone or email is taken by another user."""
    clauses = []
    if phone:
        clauses.append(User.phone == phone)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return
    query = db.session.query(User).filter(db.or_(*clauses))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError("User with this phone or email already exists", code=DUPLICATE_USER)


def ensure_unique_shop(name: str | None, shop_code: str | None, *, exclude_shop_id: int | None = None) -> None:
    clauses = []
    if name:
        clauses.append(Shop.name == name)
    if shop_code:
        clauses.append(Shop.shop_code == shop_code)
    if not clauses:
        return
    query = db.session.query(Shop).filter(db.or_(*clauses))
    if exclude_shop_id is not None:
        query = query.filter(Shop.id != exclude_shop_id)
    if query.first():
        raise ConflictError("Shop with this name or shop ID already exists", code=DUPLICATE_SHOP)


def authenticate(identifier: str, password: str) -> User:
    """
    Verify credentials and return the user.

    Raises AuthenticationError (AUTH_INVALID / AUTH_INACTIVE).
    """
    user = find_by_identifier(identifier)
    if not user or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid credentials", code=AUTH_INVALID)
    if not user.is_active:
        raise AuthenticationError("Account is deactivated", code=AUTH_INACTIVE)
    return user


def login(identifier: str, password: str, *, user_agent: str | None = None, ip_address: str | None = None) -> tuple[User, str]:
    user = authenticate(identifier, password)
    user.last_login_at = utcnow()
    commit("recording login")

    _, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)

    activity_service.record(
        action=ActivityAction.USER_LOGIN,
        description=f"User logged in: {user.name}",
        category=OperationCategory.SECURITY,
        performed_by_id=user.id,
        user_id=user.id,
        shop_id=user.shop_id,
    )
    return user, token


def logout(user: User, token: str) -> None:
    session_service.revoke_session(token, reason="User logout")
    activity_service.record(
        action=ActivityAction.USER_LOGOUT,
        description=f"User logged out: {user.name}",
        category=OperationCategory.SECURITY,
        performed_by_id=user.id,
        user_id=user.id,
        shop_id=user.shop_id,
    )


def register_shop_owner(*, owner: dict, shop: dict) -> tuple[User, Shop]:
    """
    Self-service signup: new shop plus its shopowner account.

    owner: name, phone, email?, password, address fields?
    shop:  shop_code, name, description?, contact/address/business fields?
    """
    ensure_unique_contact(owner["phone"], owner.get("email"))
    ensure_unique_shop(shop["name"], shop["shop_code"])

    new_shop = Shop(**shop)
    db.session.add(new_shop)
    db.session.flush()

    user = User(
        role=Role.SHOPOWNER.value,
        shop_id=new_shop.id,
        name=owner["name"],
        phone=owner["phone"],
        email=owner.get("email"),
        password_hash=hash_password(owner["password"]),
        street=owner.get("street"),
        city=owner.get("city"),
        state=owner.get("state"),
        zip_code=owner.get("zip_code"),
        country=owner.get("country"),
    )
    db.session.add(user)
    db.session.flush()

    new_shop.owner_id = user.id
    new_shop.created_by_id = user.id
    new_shop.email = new_shop.email or user.email
    new_shop.phone = new_shop.phone or user.phone

    commit(
        "registering shop",
        conflict_message="Shop or user already exists",
        conflict_code=DUPLICATE_SHOP,
    )

    statistics_service.recompute(new_shop.id)
    activity_service.record(
        action=ActivityAction.SHOP_CREATED,
        description=f"Shop registered: {new_shop.name}",
        category=OperationCategory.SHOP,
        performed_by_id=user.id,
        user_id=user.id,
        shop_id=new_shop.id,
        severity=Severity.MEDIUM,
        metadata={"self_registration": True},
    )
    return user, new_shop


def update_profile(user: User, changes: dict) -> User:
    """Self-service profile edit: name, email and address only."""
    if "email" in changes and changes["email"]:
        ensure_unique_contact(None, changes["email"], exclude_user_id=user.id)

    for field in ("name", "email", "street", "city", "state", "zip_code", "country"):
        if field in changes:
            setattr(user, field, changes[field])

    commit("updating profile", conflict_message="Email already in use", conflict_code=DUPLICATE_USER)

    activity_service.record(
        action=ActivityAction.USER_UPDATED,
        description=f"Profile updated: {user.name}",
        category=OperationCategory.USER,
        performed_by_id=user.id,
        user_id=user.id,
        shop_id=user.shop_id,
        metadata={"fields": sorted(changes)},
    )
    return user


def change_password(user: User, current_password: str, new_password: str) -> int:
    """
    Replace the password and revoke every session of the user.

    Returns the number of sessions revoked.
    """
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Password changed", flush_only=True)
    commit("changing password")

    activity_service.record(
        action=ActivityAction.USER_UPDATED,
        description=f"Password changed: {user.name}",
        category=OperationCategory.SECURITY,
        performed_by_id=user.id,
        user_id=user.id,
        shop_id=user.shop_id,
        severity=Severity.MEDIUM,
        metadata={"sessions_revoked": revoked},
    )
    return revoked


def create_superadmin(*, name: str, phone: str, password: str, email: str | None = None) -> User:
    """Bootstrap path used by `flask system init`."""
    ensure_unique_contact(phone, email)
    user = User(
        role=Role.SUPERADMIN.value,
        shop_id=None,
        name=name,
        phone=phone,
        email=email,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    commit("creating superadmin", conflict_message="User already exists", conflict_code=DUPLICATE_USER)
    return user
