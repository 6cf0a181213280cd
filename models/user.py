# models/user.py
from __future__ import annotations
from db import db
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash


class User(db.Model):
    __tablename__ = "users"

    id            = db.Column(db.Integer, primary_key=True, autoincrement=True)
    # stored as given; lookups are case-sensitive
    email         = db.Column(db.String(254), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at    = db.Column(db.DateTime, server_default=func.now(), nullable=False)

    notes = db.relationship(
        "Note",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    # ── Helpers ─────────────────────────────────────────────────────────────
    def set_password(self, raw: str) -> None:
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        try:
            return check_password_hash(self.password_hash or "", raw or "")
        except ValueError:
            # unknown hashing method in a legacy row
            return False

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"
