# auth_guard.py
from __future__ import annotations

from datetime import timedelta
from functools import wraps

from flask import Flask, current_app, g, redirect, request, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from services.session_store import ANONYMOUS, SessionIdentity, SessionStore

__all__ = ["init_app", "require_login", "commit_identity", "end_session", "session_store"]

SALT_SESSION = "noteapp-session"
EXTENSION_KEY = "session_store"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=SALT_SESSION)


def _ttl_seconds() -> int:
    return int(current_app.config["SESSION_TTL_MINUTES"]) * 60


def session_store() -> SessionStore:
    return current_app.extensions[EXTENSION_KEY]


def _load_identity():
    """Resolve the session cookie into g.session_token / g.identity."""
    g.session_token = None
    g.identity = ANONYMOUS
    g.session_cookie = None

    raw = request.cookies.get(current_app.config["SESSION_COOKIE_NAME"])
    if not raw:
        return

    try:
        token = _serializer().loads(raw, max_age=_ttl_seconds())
    except SignatureExpired:
        current_app.logger.debug("[session] cookie expired")
        return
    except BadSignature:
        current_app.logger.warning("[session] bad cookie signature ip=%s", request.remote_addr)
        return

    identity = session_store().get(token)
    if identity is None:
        return

    g.session_token = token
    g.identity = identity


def _write_cookie(resp):
    action = getattr(g, "session_cookie", None)
    name = current_app.config["SESSION_COOKIE_NAME"]
    if action == "set":
        resp.set_cookie(
            name,
            _serializer().dumps(g.session_token),
            max_age=_ttl_seconds(),
            httponly=True,
            samesite="Lax",
            secure=bool(current_app.config.get("SESSION_COOKIE_SECURE")),
        )
    elif action == "clear":
        resp.delete_cookie(name)
    return resp


def commit_identity(identity: SessionIdentity, *, rotate: bool = False) -> None:
    """
    Persist ``identity`` for this client before the handler responds.

    A fresh token is minted when there is none yet or when ``rotate`` is set
    (on authentication), and the old record is dropped. Storage errors
    propagate as PersistenceFailure.
    """
    store = session_store()
    old_token = g.get("session_token")
    token = old_token
    if token is None or rotate:
        token = store.new_token()

    store.set(token, identity)
    if old_token and old_token != token:
        store.destroy(old_token)

    g.session_token = token
    g.identity = identity
    g.session_cookie = "set"


def end_session() -> None:
    token = g.get("session_token")
    if token:
        session_store().destroy(token)
    g.session_token = None
    g.identity = ANONYMOUS
    g.session_cookie = "clear"


def require_login(f):
    """Redirect to /login unless the session is authenticated."""
    @wraps(f)
    def wrapped(*args, **kwargs):
        identity: SessionIdentity = g.get("identity", ANONYMOUS)
        if not identity.is_authenticated:
            current_app.logger.info("[guard] %s %s → login (anonymous)", request.method, request.path)
            return redirect(url_for("auth.login"))
        return f(*args, **kwargs)

    return wrapped


def init_app(app: Flask) -> None:
    app.extensions[EXTENSION_KEY] = SessionStore(
        ttl=timedelta(minutes=int(app.config["SESSION_TTL_MINUTES"]))
    )
    app.before_request(_load_identity)
    app.after_request(_write_cookie)

    @app.context_processor
    def _inject_user():
        identity = g.get("identity", ANONYMOUS)
        return {"user_id": identity.user_id}
