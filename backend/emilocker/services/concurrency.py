# Overview: Row locking and store-failure translation shared by the write paths.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..errors import ConflictError, TransientError
from ..extensions import db


STORE_FAILURES = (OperationalError, DisconnectionError, PoolTimeoutError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Concurrent writers are otherwise last-write-wins.
    """
    return query.with_for_update()


@contextmanager
def store_call(action: str):
    """
    Translate store unavailability into TransientError.

    No retries: the session is rolled back and the caller decides whether
    to try again.
    """
    try:
        yield
    except STORE_FAILURES as exc:
        db.session.rollback()
        raise TransientError(f"Database unavailable while {action}") from exc


def commit(action: str, *, conflict_message: str | None = None, conflict_code: str | None = None) -> None:
    """
    Commit the current unit of work.

    IntegrityError becomes ConflictError when a conflict message is given;
    it is the unique-constraint backstop for the application-level checks.
    """
    with store_call(action):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if conflict_message is None:
                raise
            raise ConflictError(conflict_message, code=conflict_code) from exc
