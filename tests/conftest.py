# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime
from itertools import count
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from murmur_stage.core.security import create_access_token, hash_password, token_fingerprint
from murmur_stage.db.session import Base
from murmur_stage.db.session import get_db as app_get_session
from murmur_stage.db.time import utcnow
from murmur_stage.main import app as fastapi_app
from murmur_stage.models import Follow, Post, User
from murmur_stage.services.posts import create_post
from murmur_stage.services.realtime import get_event_bus
from murmur_stage.services.storage import build_object_key, get_blob_store
from murmur_stage.services.token_blacklist import get_token_blacklist

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "secret123"

_USER_COUNTER = count(1)
# bcrypt is deliberately slow; hash the shared fixture password once.
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class InMemoryTokenBlacklist:
    """Blacklist double keeping revoked fingerprints in a dict."""

    def __init__(self) -> None:
        self.revoked: dict[str, datetime] = {}

    def revoke(self, token: str, expires_at: datetime) -> None:
        self.revoked[token_fingerprint(token)] = expires_at

    def is_revoked(self, token: str) -> bool:
        return token_fingerprint(token) in self.revoked


class InMemoryBlobStore:
    """Blob store double recording uploads instead of calling S3."""

    def __init__(self) -> None:
        self.uploads: dict[str, bytes] = {}

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        key = build_object_key(filename, content_type)
        self.uploads[key] = data
        return f"https://media.test/{key}"


class RecordingEventBus:
    """Event publisher double collecting ``(event, payload)`` pairs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, event: str, payload: dict[str, Any]) -> bool:
        self.events.append((event, payload))
        return True

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so wipe every table between tests.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def token_blacklist() -> InMemoryTokenBlacklist:
    return InMemoryTokenBlacklist()


@pytest.fixture()
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture()
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    token_blacklist: InMemoryTokenBlacklist,
    blob_store: InMemoryBlobStore,
    event_bus: RecordingEventBus,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides: dict[Callable[..., Any], Callable[..., Any]] = {
        app_get_session: _get_session_override,
        get_token_blacklist: lambda: token_blacklist,
        get_blob_store: lambda: blob_store,
        get_event_bus: lambda: event_bus,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with the shared test password."""

    def _make_user(username: str | None = None, **fields: Any) -> User:
        n = next(_USER_COUNTER)
        username = username or f"user{n}"
        user = User(
            username=username,
            email=fields.pop("email", f"{username.lower()}@example.com"),
            password_hash=_TEST_PASSWORD_HASH,
            display_name=fields.pop("display_name", username.title()),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return the primary test user."""
    return make_user("alice")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Create and return a second user."""
    return make_user("bob")


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def bearer_for() -> Callable[[User], dict[str, str]]:
    """Return a helper building authorization headers for any user."""
    return bearer


@pytest.fixture()
def password() -> str:
    return TEST_PASSWORD


@pytest.fixture()
def auth_headers(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return bearer(test_user)


@pytest.fixture()
def other_auth_headers(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return bearer(other_user)


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory creating posts through the post service.

    ``created_at`` may be pinned to control feed ordering.
    """

    def _make_post(author: User, content: str = "hello", created_at: datetime | None = None,
                   **kwargs: Any) -> Post:
        view = create_post(db_session, author, content=content, **kwargs)
        post = db_session.get(Post, view.id)
        assert post is not None
        if created_at is not None:
            post.created_at = created_at
            db_session.commit()
        return post

    return _make_post


@pytest.fixture()
def test_post(make_post: Callable[..., Post], test_user: User) -> Post:
    """Create a baseline post authored by ``test_user``."""
    return make_post(test_user, "Test post content #testing")


@pytest.fixture()
def follow(db_session: Session) -> Callable[[User, User], Follow]:
    def _follow(follower: User, target: User) -> Follow:
        edge = Follow(follower_id=follower.id, following_id=target.id, created_at=utcnow())
        db_session.add(edge)
        db_session.commit()
        return edge

    return _follow
