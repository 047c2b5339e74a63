# Overview: Service-layer operations for session tokens and caller identity resolution.

"""
Bearer Sessions and Identity Resolution

Every authenticated request carries a bearer token issued at login. The
plaintext goes to the client once; the sessions table only ever sees its
SHA-256 digest.

IDENTITY: resolve_caller() turns a bearer token into the caller record the
access control policy works on. Each failure carries a distinct code:

- AUTH_INVALID:  unknown or revoked token
- AUTH_EXPIRED:  absolute or idle timeout passed
- AUTH_INACTIVE: the account behind the token is deactivated

LIFETIME:
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2); an idle session is
  revoked the first time it is presented after the window
- Revoked on logout; all of a user's sessions go on password change,
  deactivation and deletion
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..errors import AUTH_EXPIRED, AUTH_INACTIVE, AUTH_INVALID, AuthenticationError
from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import as_naive_utc, utcnow
from .concurrency import commit


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config["SESSION_ABSOLUTE_TIMEOUT_HOURS"])


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config["SESSION_IDLE_TIMEOUT_HOURS"])


def generate_token() -> str:
    """New bearer token: 32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are random, so a fast digest is enough here (bcrypt is for passwords)
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Open a session for user_id.

    Returns (session row, plaintext token). The token is not recoverable
    from the row afterwards.
    """
    token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    commit("creating session")

    return session, token


def resolve_caller(token: str) -> tuple[User, SessionToken]:
    """
    Validate a bearer token and return (user, session).

    Raises AuthenticationError with AUTH_INVALID, AUTH_EXPIRED or AUTH_INACTIVE.
    Updates last_used_at on success (idle tracking).
    """
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    # A dead token says nothing about the account behind it
    if not session or not session.user or session.is_revoked:
        raise AuthenticationError("Invalid token", code=AUTH_INVALID)

    if not session.user.is_active:
        raise AuthenticationError("Account is deactivated", code=AUTH_INACTIVE)

    now = utcnow()
    if as_naive_utc(session.expires_at) < now:
        raise AuthenticationError("Token expired", code=AUTH_EXPIRED)

    if now - as_naive_utc(session.last_used_at) > _idle_timeout():
        _mark_revoked(session, "Idle timeout", now)
        commit("revoking idle session")
        raise AuthenticationError("Token expired", code=AUTH_EXPIRED)

    session.last_used_at = now
    commit("touching session")
    return session.user, session


def _mark_revoked(session: SessionToken, reason: str, when) -> None:
    session.is_revoked = True
    session.revoked_at = when
    session.revoked_reason = reason


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one live session. False when the token is unknown or already revoked."""
    session = (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )
    if not session:
        return False

    _mark_revoked(session, reason, utcnow())
    commit("revoking session")
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", *, flush_only: bool = False) -> int:
    """
    Revoke every live session of user_id and return how many were revoked.

    With flush_only the caller owns the transaction and commits it together
    with its own changes.
    """
    now = utcnow()
    live = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in live:
        _mark_revoked(session, reason, now)

    if flush_only:
        db.session.flush()
    else:
        commit("revoking sessions")
    return len(live)


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """Delete sessions that are expired or revoked and older than the cutoff."""
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = (
        db.session.query(SessionToken)
        .filter(
            db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True)),
            SessionToken.created_at < cutoff,
        )
        .delete(synchronize_session=False)
    )

    commit("cleaning up sessions")
    return deleted
