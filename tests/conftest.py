"""Shared fixtures: in-memory SQLite store, user factory and an email recorder."""
import os

# Must be set before wishvault.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENCRYPTION_KEY"] = "test-encryption-secret"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""
os.environ["ADMIN_PASSWORD"] = ""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import wishvault.models  # noqa: F401  (registers every table on Base)
from wishvault.database import Base
from wishvault.models.user import User
from wishvault.services import auth as auth_service
from wishvault.services import notifications


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """bcrypt at production cost makes the suite slow; the hash format is unchanged."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


class SentMail:
    def __init__(self):
        self.messages = []

    def __call__(self, to_email, subject, html_content, text_content=None):
        self.messages.append({"to": to_email, "subject": subject, "html": html_content, "text": text_content or ""})
        return True

    def to(self, email):
        return [m for m in self.messages if m["to"] == email]


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Replaces the Mailgun call; every send_* helper goes through send_email."""
    sent = SentMail()
    monkeypatch.setattr(notifications, "send_email", sent)
    return sent


@pytest.fixture
def make_user(db):
    def _make(email, password="Passw0rd1", full_name=None, is_admin=False):
        user = User(
            email=email,
            hashed_password=auth_service.get_password_hash(password),
            full_name=full_name,
            is_admin=is_admin,
            email_verified=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com", full_name="Olive Owner")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", full_name="Ada Admin", is_admin=True)


@pytest.fixture
def stranger(make_user):
    return make_user("stranger@example.com", full_name="Sam Stranger")
