# routes/auth.py
from __future__ import annotations

from flask import Blueprint, g, redirect, render_template, request, url_for

from auth_guard import commit_identity, end_session
from errors import AuthFailure, ValidationFailure
from services import signup as flow

__all__ = ["auth_bp"]
auth_bp = Blueprint("auth", __name__)


# -------------------------------------------------------------------
# Middleware
# -------------------------------------------------------------------
@auth_bp.after_request
def add_no_store(resp):
    resp.headers["Cache-Control"] = "no-store"
    return resp


# -------------------------------------------------------------------
# Signup: request OTP
# -------------------------------------------------------------------
@auth_bp.route("/signup", methods=["GET"])
def signup_form():
    return render_template("auth/signup.html")


@auth_bp.route("/signup", methods=["POST"])
def signup():
    email = request.form.get("email", "")
    try:
        identity = flow.request_otp(email)
    except ValidationFailure as e:
        return render_template("auth/signup.html", error=e.message, email=email), e.status_code

    # pending email must be stored before we send the client on
    commit_identity(identity)
    return redirect(url_for("auth.verify_otp"))


# -------------------------------------------------------------------
# Verify OTP
# -------------------------------------------------------------------
@auth_bp.route("/verify-otp", methods=["GET"])
def verify_otp_form():
    return render_template("auth/verify_otp.html", email=g.identity.pending_email)


@auth_bp.route("/verify-otp", methods=["POST"])
def verify_otp():
    try:
        identity = flow.verify_otp(g.identity, request.form.get("otp", ""))
    except AuthFailure as e:
        return render_template("auth/verify_otp.html", error=e.message, email=g.identity.pending_email), e.status_code

    commit_identity(identity)
    return redirect(url_for("auth.set_password"))


# -------------------------------------------------------------------
# Set password → account created, signed in
# -------------------------------------------------------------------
@auth_bp.route("/set-password", methods=["GET"])
def set_password_form():
    return render_template("auth/set_password.html", email=g.identity.verified_email)


@auth_bp.route("/set-password", methods=["POST"])
def set_password():
    try:
        _, identity = flow.set_password(g.identity, request.form.get("password", ""))
    except (AuthFailure, ValidationFailure) as e:
        return render_template("auth/set_password.html", error=e.message, email=g.identity.verified_email), e.status_code

    commit_identity(identity, rotate=True)
    return redirect(url_for("notes.index"))


# -------------------------------------------------------------------
# Login / logout
# -------------------------------------------------------------------
@auth_bp.route("/login", methods=["GET"])
def login_form():
    return render_template("auth/login.html")


@auth_bp.route("/login", methods=["POST"])
def login():
    email = request.form.get("email", "")
    try:
        identity = flow.login(email, request.form.get("password", ""))
    except AuthFailure as e:
        return render_template("auth/login.html", error=e.message, email=email), e.status_code

    commit_identity(identity, rotate=True)
    return redirect(url_for("notes.index"))


@auth_bp.route("/logout", methods=["GET"])
def logout():
    end_session()
    return redirect(url_for("auth.login"))
