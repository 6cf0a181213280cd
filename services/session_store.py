# services/session_store.py
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from db import db
from errors import PersistenceFailure
from models.session_record import SessionRecord
from utils.clock import utcnow

__all__ = ["SessionIdentity", "ANONYMOUS", "SessionStore"]


@dataclass(frozen=True)
class SessionIdentity:
    """
    Immutable snapshot of who a session belongs to.

    At most one field is set. Only ``user_id`` means the session is
    authenticated; the two email fields mark a signup in progress.
    """
    pending_email: str | None = None
    verified_email: str | None = None
    user_id: int | None = None

    def __post_init__(self):
        filled = [v for v in (self.pending_email, self.verified_email, self.user_id) if v is not None]
        if len(filled) > 1:
            raise ValueError("a session identity holds at most one of pending_email, verified_email, user_id")

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = SessionIdentity()


class SessionStore:
    """Get/set/destroy session identities by opaque token."""

    def __init__(self, ttl: timedelta):
        self.ttl = ttl

    @staticmethod
    def new_token() -> str:
        return secrets.token_urlsafe(32)

    def get(self, token: str) -> SessionIdentity | None:
        """Return the identity for ``token``, or None when unknown or expired."""
        try:
            row = db.session.get(SessionRecord, token)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceFailure() from e

        if row is None or row.expires_at <= utcnow():
            return None
        return SessionIdentity(
            pending_email=row.pending_email,
            verified_email=row.verified_email,
            user_id=row.user_id,
        )

    def set(self, token: str, identity: SessionIdentity) -> None:
        """Persist ``identity`` under ``token`` and push its expiry forward."""
        try:
            row = db.session.get(SessionRecord, token)
            if row is None:
                row = SessionRecord(token=token)
                db.session.add(row)
            row.pending_email = identity.pending_email
            row.verified_email = identity.verified_email
            row.user_id = identity.user_id
            row.expires_at = utcnow() + self.ttl
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceFailure() from e

    def destroy(self, token: str) -> None:
        try:
            db.session.execute(delete(SessionRecord).where(SessionRecord.token == token))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceFailure() from e

    def purge_expired(self) -> int:
        """Delete expired rows; returns how many were removed."""
        try:
            result = db.session.execute(delete(SessionRecord).where(SessionRecord.expires_at <= utcnow()))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceFailure() from e
        return result.rowcount or 0
