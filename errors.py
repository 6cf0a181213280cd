# errors.py
"""
Error taxonomy for the note app.

Every error carries a user-facing ``message`` and the HTTP ``status_code``
a handler should answer with. Auth, validation and not-found errors are
handled where they are raised; anything else reaches the app-level handler.
"""
from __future__ import annotations


class NoteAppError(Exception):
    message = "Something went wrong!"
    status_code = 500

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ── Validation ──────────────────────────────────────────────────────────
class ValidationFailure(NoteAppError):
    message = "Invalid input"
    status_code = 400


class AccountExists(ValidationFailure):
    message = "An account with this email already exists"
    status_code = 409


# ── Not found ───────────────────────────────────────────────────────────
class NotFound(NoteAppError):
    message = "Page not found!"
    status_code = 404


class NoteNotFound(NotFound):
    message = "Note not found!"


# ── Auth ────────────────────────────────────────────────────────────────
class AuthFailure(NoteAppError):
    message = "Authentication failed"
    status_code = 401


class NoPendingIdentity(AuthFailure):
    message = "Session expired or email not found."


class NoOtpFound(AuthFailure):
    message = "No OTP record found."
    status_code = 404


class OtpMismatch(AuthFailure):
    message = "Invalid OTP"


class NoVerifiedIdentity(AuthFailure):
    message = "Email not verified. Please sign up again."


class UserNotFound(AuthFailure):
    message = "No user"


class InvalidPassword(AuthFailure):
    message = "Invalid Password"


# ── Infrastructure ──────────────────────────────────────────────────────
class PersistenceFailure(NoteAppError):
    message = "Storage is unavailable. Please try again."
    status_code = 500


class DeliveryFailure(NoteAppError):
    message = "Unable to send the verification email."
    status_code = 502
