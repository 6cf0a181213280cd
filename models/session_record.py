# models/session_record.py
from __future__ import annotations
from db import db
from sqlalchemy.sql import func


class SessionRecord(db.Model):
    """Server-side session identity, keyed by the opaque token in the cookie."""
    __tablename__ = "sessions"

    token          = db.Column(db.String(64), primary_key=True)
    pending_email  = db.Column(db.String(254), nullable=True)
    verified_email = db.Column(db.String(254), nullable=True)
    user_id        = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_at     = db.Column(db.DateTime, server_default=func.now(), nullable=False)
    expires_at     = db.Column(db.DateTime, nullable=False, index=True)
