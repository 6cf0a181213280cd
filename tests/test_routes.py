# =============================================================================
# tests/test_routes.py - End-to-end tests through the Flask test client
# =============================================================================

import time

import pytest

import auth_guard
import mailer
from conftest import last_code, mailed_codes, register
from db import db
from errors import PersistenceFailure
from models.note import Note
from models.otp import OtpRecord
from models.session_record import SessionRecord
from models.user import User
from services.session_store import SessionStore

EMAIL = "a@x.com"


def _count(app, model, **filters):
    with app.app_context():
        return model.query.filter_by(**filters).count()


def _note_id(app, title):
    with app.app_context():
        return Note.query.filter_by(title=title).one().id


# =============================================================================
# Misc
# =============================================================================

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_home_redirects_to_notes(client):
    resp = client.get("/")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/notes")


def test_unknown_page(client):
    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert b"Page not found!" in resp.data


@pytest.mark.parametrize("method,path", [
    ("get", "/notes"),
    ("get", "/notes/new"),
    ("post", "/notes"),
    ("get", "/notes/1"),
    ("get", "/notes/1/edit"),
    ("put", "/notes/1"),
    ("delete", "/notes/1"),
])
def test_notes_require_login(client, method, path):
    resp = getattr(client, method)(path)
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/login")


@pytest.mark.parametrize("path", ["/signup", "/verify-otp", "/set-password", "/login"])
def test_forms_render(client, path):
    assert client.get(path).status_code == 200


# =============================================================================
# Signup flow
# =============================================================================

class TestSignupFlow:

    def test_end_to_end(self, app, client):
        resp = client.post("/signup", data={"email": EMAIL})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/verify-otp")
        assert _count(app, OtpRecord, user_identifier=EMAIL) == 1

        resp = client.post("/verify-otp", data={"otp": last_code(app)})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/set-password")
        assert _count(app, OtpRecord, user_identifier=EMAIL) == 0

        # verified is not signed in
        assert client.get("/notes").status_code == 302
        assert EMAIL.encode() in client.get("/set-password").data

        resp = client.post("/set-password", data={"password": "secret"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/notes")

        with app.app_context():
            user = User.query.filter_by(email=EMAIL).one()
            assert user.password_hash != "secret"
            assert user.check_password("secret")

        resp = client.get("/notes")
        assert resp.status_code == 200
        assert b"No notes yet." in resp.data

    def test_wrong_code(self, app, client):
        client.post("/signup", data={"email": EMAIL})
        code = last_code(app)
        wrong = "000000" if code != "000000" else "111111"

        resp = client.post("/verify-otp", data={"otp": wrong})

        assert resp.status_code == 401
        assert b"Invalid OTP" in resp.data
        assert _count(app, OtpRecord, user_identifier=EMAIL) == 1
        # still pending: the right code works afterwards
        resp = client.post("/verify-otp", data={"otp": code})
        assert resp.headers["Location"].endswith("/set-password")

    def test_stale_code_after_second_signup(self, app, client):
        client.post("/signup", data={"email": EMAIL})
        client.post("/signup", data={"email": EMAIL})
        assert _count(app, OtpRecord, user_identifier=EMAIL) == 2
        older, newer = mailed_codes(app)

        if older != newer:
            resp = client.post("/verify-otp", data={"otp": older})
            assert resp.status_code == 401
            assert b"Invalid OTP" in resp.data

        resp = client.post("/verify-otp", data={"otp": newer})
        assert resp.status_code == 302
        assert _count(app, OtpRecord, user_identifier=EMAIL) == 1

    def test_verify_without_session(self, client):
        resp = client.post("/verify-otp", data={"otp": "123456"})
        assert resp.status_code == 401
        assert b"Session expired" in resp.data

    def test_verify_without_record(self, app, client):
        client.post("/signup", data={"email": EMAIL})
        with app.app_context():
            OtpRecord.query.delete()
            db.session.commit()

        resp = client.post("/verify-otp", data={"otp": "123456"})
        assert resp.status_code == 404
        assert b"No OTP record found." in resp.data

    def test_set_password_without_verification(self, app, client):
        resp = client.post("/set-password", data={"password": "secret"})
        assert resp.status_code == 401
        assert _count(app, User) == 0

    def test_set_password_while_only_pending(self, app, client):
        client.post("/signup", data={"email": EMAIL})
        resp = client.post("/set-password", data={"password": "secret"})
        assert resp.status_code == 401
        assert _count(app, User) == 0

    def test_blank_email(self, app, client):
        resp = client.post("/signup", data={"email": ""})
        assert resp.status_code == 400
        assert _count(app, OtpRecord) == 0

    def test_duplicate_account(self, app, client, other_client):
        register(client, app, EMAIL)
        resp = register(other_client, app, EMAIL, password="another")
        assert resp.status_code == 409
        assert _count(app, User, email=EMAIL) == 1

    def test_session_persistence_failure_is_not_a_redirect(self, app, client, monkeypatch):
        def _fail(self, token, identity):
            raise PersistenceFailure()

        monkeypatch.setattr(SessionStore, "set", _fail)

        resp = client.post("/signup", data={"email": EMAIL})

        assert resp.status_code == 500
        assert "Location" not in resp.headers

    def test_delivery_failure(self, app, client, monkeypatch):
        app.config["MAIL_SUPPRESS_SEND"] = False

        def _boom(*args, **kwargs):
            raise OSError("connection refused")

        monkeypatch.setattr(mailer.smtplib, "SMTP", _boom)

        resp = client.post("/signup", data={"email": EMAIL})
        assert resp.status_code == 502
        # no pending identity was stored
        assert client.post("/verify-otp", data={"otp": "123456"}).status_code == 401


# =============================================================================
# Login / logout / cookies
# =============================================================================

class TestLogin:

    def test_login_after_logout(self, app, client):
        register(client, app, EMAIL)

        resp = client.get("/logout")
        assert resp.headers["Location"].endswith("/login")
        assert client.get("/notes").status_code == 302

        resp = client.post("/login", data={"email": EMAIL, "password": "secret"})
        assert resp.headers["Location"].endswith("/notes")
        assert client.get("/notes").status_code == 200

    def test_unknown_user(self, client):
        resp = client.post("/login", data={"email": EMAIL, "password": "secret"})
        assert resp.status_code == 401
        assert b"No user" in resp.data

    def test_wrong_password(self, app, client, other_client):
        register(client, app, EMAIL)
        resp = other_client.post("/login", data={"email": EMAIL, "password": "wrong"})
        assert resp.status_code == 401
        assert b"Invalid Password" in resp.data
        assert other_client.get("/notes").status_code == 302

    def test_tampered_cookie_is_anonymous(self, app, client):
        register(client, app, EMAIL)
        client.set_cookie(app.config["SESSION_COOKIE_NAME"], "forged.value.here")
        assert client.get("/notes").status_code == 302

    def test_stale_cookie_is_anonymous(self, app, client, monkeypatch):
        register(client, app, EMAIL)
        assert client.get("/notes").status_code == 200

        ttl = app.config["SESSION_TTL_MINUTES"] * 60
        real_time = time.time
        monkeypatch.setattr(time, "time", lambda: real_time() + ttl + 3600)

        resp = client.get("/notes")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/login")

    def test_login_rotates_token(self, app, client):
        client.post("/signup", data={"email": EMAIL})
        client.post("/verify-otp", data={"otp": last_code(app)})
        with app.app_context():
            before = {r.token for r in SessionRecord.query.all()}

        client.post("/set-password", data={"password": "secret"})

        with app.app_context():
            after = {r.token for r in SessionRecord.query.all()}
        assert len(after) == 1
        assert before.isdisjoint(after)


# =============================================================================
# Notes
# =============================================================================

class TestNotes:

    @pytest.fixture
    def alice(self, app, client):
        register(client, app, "alice@x.com")
        return client

    @pytest.fixture
    def bob(self, app, other_client):
        register(other_client, app, "bob@x.com")
        return other_client

    def test_crud(self, app, alice):
        resp = alice.post("/notes", data={"title": "Groceries", "content": "milk"})
        assert resp.headers["Location"].endswith("/notes")
        note_id = _note_id(app, "Groceries")

        assert b"Groceries" in alice.get("/notes").data
        assert b"milk" in alice.get(f"/notes/{note_id}").data
        assert b"milk" in alice.get(f"/notes/{note_id}/edit").data

        resp = alice.put(f"/notes/{note_id}", data={"title": "Groceries", "content": "eggs"})
        assert resp.status_code == 302
        assert b"eggs" in alice.get(f"/notes/{note_id}").data

        resp = alice.delete(f"/notes/{note_id}")
        assert resp.status_code == 302
        assert alice.get(f"/notes/{note_id}").status_code == 404

    def test_html_forms_use_method_override(self, app, alice):
        alice.post("/notes", data={"title": "Draft", "content": "v1"})
        note_id = _note_id(app, "Draft")

        resp = alice.post(f"/notes/{note_id}?_method=PUT", data={"title": "Draft", "content": "v2"})
        assert resp.status_code == 302
        assert b"v2" in alice.get(f"/notes/{note_id}").data

        resp = alice.post(f"/notes/{note_id}", data={"_method": "DELETE"})
        assert resp.status_code == 302
        assert _count(app, Note, id=note_id) == 0

    def test_blank_title(self, app, alice):
        resp = alice.post("/notes", data={"title": "", "content": "x"})
        assert resp.status_code == 400
        assert _count(app, Note) == 0

    def test_notes_are_private(self, app, alice, bob):
        alice.post("/notes", data={"title": "Secret", "content": "alice only"})
        note_id = _note_id(app, "Secret")

        assert b"Secret" not in bob.get("/notes").data

        missing_id = note_id + 1000
        for method, suffix, data in [
            ("get", "", None),
            ("get", "/edit", None),
            ("put", "", {"title": "Pwned", "content": ""}),
            ("delete", "", None),
        ]:
            foreign = getattr(bob, method)(f"/notes/{note_id}{suffix}", data=data)
            missing = getattr(bob, method)(f"/notes/{missing_id}{suffix}", data=data)
            assert foreign.status_code == missing.status_code == 404
            assert foreign.data == missing.data

        resp = alice.get(f"/notes/{note_id}")
        assert resp.status_code == 200
        assert b"alice only" in resp.data


def test_purge_sessions_cli(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["purge-sessions"])
    assert result.exit_code == 0
    assert "Purged 0 expired session(s)." in result.output


def test_session_store_registered(app):
    with app.app_context():
        assert isinstance(auth_guard.session_store(), SessionStore)
