# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Every test gets a fresh app on an in-memory SQLite database, with outgoing
# mail recorded in the outbox instead of sent.
# =============================================================================

import re

import pytest

from app import create_app
from config import TestingConfig
from db import db
from mailer import outbox

CODE_RE = re.compile(r"\b(\d{6})\b")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def app():
    """App wired with TestingConfig and empty tables."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    """Pushed app context for calling services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def other_client(app):
    """A second browser with its own cookie jar."""
    return app.test_client()


# =============================================================================
# Helpers
# =============================================================================

def mailed_codes(app):
    """Codes from every recorded message, oldest first."""
    codes = []
    for msg in outbox(app):
        m = CODE_RE.search(msg.get_body(preferencelist=("plain",)).get_content())
        if m:
            codes.append(m.group(1))
    return codes


def last_code(app):
    return mailed_codes(app)[-1]


def register(client, app, email, password="secret"):
    """Walk a client through signup → verify → set password."""
    client.post("/signup", data={"email": email})
    client.post("/verify-otp", data={"otp": last_code(app)})
    return client.post("/set-password", data={"password": password})
