# models/note.py
from __future__ import annotations
from db import db
from sqlalchemy.sql import func


class Note(db.Model):
    __tablename__ = "notes"

    id         = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title      = db.Column(db.String(200), nullable=False, default="")
    content    = db.Column(db.Text, nullable=False, default="")
    owner_id   = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime, server_default=func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = db.relationship("User", back_populates="notes")
