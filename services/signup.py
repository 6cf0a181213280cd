# services/signup.py
"""
Signup / verification flow.

    Anonymous --request_otp--> pending_email
              --verify_otp---> verified_email
              --set_password-> user_id (authenticated)

    Anonymous --login--------> user_id

Each step takes the caller's current SessionIdentity and returns the next
one. Persisting that identity is the caller's job and must happen before
the client is sent on to the next step.
"""
from __future__ import annotations

import secrets

from flask import current_app
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from db import db
from errors import (
    AccountExists,
    InvalidPassword,
    NoOtpFound,
    NoPendingIdentity,
    NoVerifiedIdentity,
    OtpMismatch,
    PersistenceFailure,
    UserNotFound,
    ValidationFailure,
)
from mailer import send_email
from models.otp import OtpRecord
from models.user import User
from services.session_store import SessionIdentity
from utils.clock import utcnow
from utils.mask import mask_email

__all__ = ["generate_otp_code", "request_otp", "verify_otp", "set_password", "login"]

OTP_MIN = 100_000
OTP_MAX = 999_999

OTP_SUBJECT = "Your OTP Code"

OTP_HTML = """
  <div style="font-family:system-ui,Segoe UI,Roboto,Arial">
    <h2>Verify your email</h2>
    <p>Your one-time code is:</p>
    <div style="font-size:24px;font-weight:700;letter-spacing:3px">{code}</div>
  </div>
"""


def generate_otp_code() -> str:
    """Six digits, uniform over [100000, 999999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e


def latest_otp(email: str) -> OtpRecord | None:
    try:
        return (
            OtpRecord.query
            .filter_by(user_identifier=email)
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .first()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e


# -------------------------------------------------------------------
# Step 1: request OTP
# -------------------------------------------------------------------
def request_otp(email: str) -> SessionIdentity:
    """
    Issue a code for ``email``: store it, then mail it.

    The record is committed before the mail goes out. A failed send raises
    DeliveryFailure and leaves the record behind.
    """
    email = (email or "").strip()
    if not email:
        raise ValidationFailure("Email is required")

    code = generate_otp_code()
    db.session.add(OtpRecord(user_identifier=email, code=code, created_at=utcnow()))
    _commit()
    current_app.logger.info("[otp] issued for %s", mask_email(email))

    send_email(
        to=email,
        subject=OTP_SUBJECT,
        text=f"Your OTP is {code}.",
        html=OTP_HTML.format(code=code),
    )

    return SessionIdentity(pending_email=email)


# -------------------------------------------------------------------
# Step 2: verify OTP
# -------------------------------------------------------------------
def verify_otp(identity: SessionIdentity, code: str) -> SessionIdentity:
    email = identity.pending_email
    if not email:
        raise NoPendingIdentity()

    rec = latest_otp(email)
    if rec is None:
        raise NoOtpFound()

    submitted = (code or "").strip()
    if not secrets.compare_digest(rec.code.encode("utf-8"), submitted.encode("utf-8")):
        current_app.logger.info("[otp] mismatch for %s", mask_email(email))
        raise OtpMismatch()

    # Consume only if the row still exists with this code; a concurrent
    # verification that deleted it first wins.
    try:
        result = db.session.execute(
            delete(OtpRecord).where(OtpRecord.id == rec.id, OtpRecord.code == submitted)
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e

    if result.rowcount != 1:
        current_app.logger.warning("[otp] record %s already consumed for %s", rec.id, mask_email(email))
        raise OtpMismatch()

    current_app.logger.info("[otp] verified %s", mask_email(email))
    return SessionIdentity(verified_email=email)


# -------------------------------------------------------------------
# Step 3: set password
# -------------------------------------------------------------------
def set_password(identity: SessionIdentity, password: str) -> tuple[User, SessionIdentity]:
    email = identity.verified_email
    if not email:
        raise NoVerifiedIdentity()
    if not password:
        raise ValidationFailure("Password is required")

    user = User(email=email)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.info("[signup] %s already registered", mask_email(email))
        raise AccountExists() from e
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e

    current_app.logger.info("[signup] created user id=%s email=%s", user.id, mask_email(email))
    return user, SessionIdentity(user_id=user.id)


# -------------------------------------------------------------------
# Login (returning users)
# -------------------------------------------------------------------
def login(email: str, password: str) -> SessionIdentity:
    email = (email or "").strip()
    try:
        user = User.query.filter_by(email=email).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceFailure() from e

    if user is None:
        raise UserNotFound()
    if not user.check_password(password):
        current_app.logger.info("[login] bad password for user id=%s", user.id)
        raise InvalidPassword()

    current_app.logger.info("[login] user id=%s signed in", user.id)
    return SessionIdentity(user_id=user.id)
