# app.py
from __future__ import annotations

import os

import click
from flask import Flask, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

import auth_guard
from config import Config, config_for
from db import db, migrate
from errors import NoteAppError

# Ensure models are imported so Flask-Migrate sees them
from models.user import User
from models.otp import OtpRecord
from models.note import Note
from models.session_record import SessionRecord

# Blueprints
from routes.auth import auth_bp
from routes.notes import notes_bp

from utils.method_override import MethodOverrideMiddleware


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config + init extensions
    app.config.from_object(config_object or config_for(os.environ.get("APP_ENV")))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # HTML forms tunnel PUT/DELETE through POST; then respect reverse proxy headers
    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)  # type: ignore[method-assign]
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[method-assign]

    db.init_app(app)
    migrate.init_app(app, db)
    auth_guard.init_app(app)

    # Touch models so Alembic/Flask-Migrate registers them
    _ = (User, OtpRecord, Note, SessionRecord)

    @app.route("/")
    def home():
        return redirect(url_for("notes.index"))

    # Health check
    @app.route("/health")
    def health_check():
        return jsonify(status="ok"), 200

    @app.errorhandler(404)
    def handle_404(e):
        return render_template("error.html", message="Page not found!"), 404

    # Global error handler
    @app.errorhandler(Exception)
    def handle_any_error(e: Exception):
        if isinstance(e, HTTPException):
            return render_template("error.html", message=e.description), e.code
        app.logger.exception("[app] unhandled error on %s %s", request.method, request.path)
        if isinstance(e, NoteAppError):
            return render_template("error.html", message=e.message), e.status_code
        return render_template("error.html", message="Something went wrong!"), 500

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(notes_bp)

    # CLI
    @app.cli.command("init-db")
    def init_db_cmd():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("purge-sessions")
    def purge_sessions_cmd():
        """Delete expired session rows."""
        removed = auth_guard.session_store().purge_expired()
        click.echo(f"Purged {removed} expired session(s).")

    return app


# Optional local entrypoint (useful for quick dev runs)
if __name__ == "__main__":
    app = create_app()
    app.run(
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
        debug=app.config["DEBUG"],
    )
