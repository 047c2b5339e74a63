# Overview: Flask API routes for authentication; login, logout, self-registration and profile.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..errors import ServiceError, ValidationError
from ..responses import from_service_error, success
from ..services import auth_service, session_service
from ..validation import (
    parse_address,
    require_json,
    validate_business_type,
    validate_email,
    validate_length,
    validate_name,
    validate_password,
    validate_phone,
    validate_shop_code,
)


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client():
    return request.headers.get("User-Agent"), request.remote_addr


@auth_bp.post("/register")
def register_route():
    """
    Self-service signup: creates a shop and its shop owner.

    Body: name, phone, email?, password, shop_id, shop_name, description?,
    business_type?, address?
    Returns the owner, the shop and a session token.
    """
    try:
        data = require_json()
        owner = {
            "name": validate_name(data.get("name")),
            "phone": validate_phone(data.get("phone")),
            "password": validate_password(data.get("password")),
            **parse_address(data),
        }
        if data.get("email"):
            owner["email"] = validate_email(data["email"])

        shop = {
            "shop_code": validate_shop_code(data.get("shop_id")),
            "name": validate_name(data.get("shop_name"), "shop_name"),
            **parse_address(data),
        }
        if data.get("description"):
            shop["description"] = validate_length("description", data["description"], max_len=500)
        if data.get("business_type"):
            shop["business_type"] = validate_business_type(data["business_type"])

        user, new_shop = auth_service.register_shop_owner(owner=owner, shop=shop)
        user_agent, ip_address = _client()
        _, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)

        return success(
            {"user": user.to_dict(), "shop": new_shop.to_dict(), "token": token},
            "Shop registered successfully",
            201,
        )
    except ServiceError as exc:
        return from_service_error(exc)


@auth_bp.post("/login")
def login_route():
    """Body: identifier (phone or email), password."""
    try:
        data = require_json()
        identifier = data.get("identifier") or data.get("phone") or data.get("email")
        password = data.get("password")
        if not identifier or not password:
            raise ValidationError("Identifier and password are required")

        user_agent, ip_address = _client()
        user, token = auth_service.login(identifier, password, user_agent=user_agent, ip_address=ip_address)
        payload = {"user": user.to_dict(), "token": token}
        if user.shop is not None:
            payload["shop"] = user.shop.to_dict()
        return success(payload, "Login successful")
    except ServiceError as exc:
        return from_service_error(exc)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        auth_service.logout(g.current_user, g.session_token)
        return success(message="Logout successful")
    except ServiceError as exc:
        return from_service_error(exc)


@auth_bp.get("/profile")
@require_auth
def get_profile_route():
    user = g.current_user
    payload = {"user": user.to_dict()}
    if user.shop is not None:
        payload["shop"] = user.shop.to_dict()
    return success(payload)


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """Body: name?, email?, address?"""
    try:
        data = require_json()
        changes = parse_address(data)
        if "name" in data:
            changes["name"] = validate_name(data["name"])
        if data.get("email"):
            changes["email"] = validate_email(data["email"])

        user = auth_service.update_profile(g.current_user, changes)
        return success({"user": user.to_dict()}, "Profile updated successfully")
    except ServiceError as exc:
        return from_service_error(exc)


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    """
    Body: current_password, new_password.

    Every existing session is revoked; a fresh token is returned.
    """
    try:
        data = require_json()
        new_password = validate_password(data.get("new_password"))
        user = g.current_user
        auth_service.change_password(user, data.get("current_password"), new_password)

        user_agent, ip_address = _client()
        _, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)
        return success({"token": token}, "Password changed successfully")
    except ServiceError as exc:
        return from_service_error(exc)
