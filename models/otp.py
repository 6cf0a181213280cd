# models/otp.py
from __future__ import annotations
from db import db


class OtpRecord(db.Model):
    __tablename__ = "otp_records"

    id              = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_identifier = db.Column(db.String(254), nullable=False, index=True)   # email
    code            = db.Column(db.String(6), nullable=False)
    created_at      = db.Column(db.DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<OtpRecord {self.id} for={self.user_identifier} at={self.created_at}>"
