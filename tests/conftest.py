from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Generator

# Configure the app before it is imported: throwaway SQLite file, fixed JWT secret.
_DB_DIR = tempfile.mkdtemp(prefix="homesite-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ.setdefault("ADMIN_EMAILS", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from homesite import models, storage
from homesite.auth import create_access_token
from homesite.db import Base, SessionLocal, engine
from homesite.main import app
from homesite.services.accounts import hash_password

DEFAULT_PASSWORD = "password123"


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    """Factory creating users directly in the database."""

    def _make_user(
        username: str = "testuser",
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        role: str = models.ROLE_USER,
        is_active: bool = True,
    ) -> models.User:
        user = models.User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hash_password(password),
            display_name=username.title(),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user) -> models.User:
    return make_user("testuser")


@pytest.fixture()
def other_user(make_user) -> models.User:
    return make_user("otheruser")


@pytest.fixture()
def admin_user(make_user) -> models.User:
    return make_user("admin", role=models.ROLE_ADMIN)


def _auth_headers(user: models.User) -> dict[str, str]:
    token, _ = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers() -> Callable[[models.User], dict[str, str]]:
    """Bearer headers for a user, minted without going through login."""
    return _auth_headers


@pytest.fixture()
def make_post(db: Session) -> Callable[..., models.Post]:
    """Factory creating posts directly in the database."""

    def _make_post(
        author: models.User,
        title: str = "Hello World",
        slug: str | None = None,
        status: str = "PUBLISHED",
        visibility: str = "PUBLIC",
        content: str = "Some **markdown** content",
    ) -> models.Post:
        post = models.Post(
            slug=slug or title.lower().replace(" ", "-"),
            title=title,
            content=content,
            status=status,
            visibility=visibility,
            author_id=author.id,
            published_at=models.utcnow() if status == "PUBLISHED" else None,
        )
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make_post


class FakeStorage:
    """In-memory stand-in for the object store."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.deleted: list[str] = []
        self.fail_delete = False

    def presign_upload(self, object_key: str, content_type: str, expires_in: int = 3600) -> str:
        return f"http://storage.test/bucket/{object_key}?signature=fake&expires={expires_in}"

    def object_exists(self, object_key: str) -> bool:
        return object_key in self.objects

    def open_object(self, object_key: str) -> storage.StoredObject:
        if object_key not in self.objects:
            raise storage.ObjectNotFound(object_key)
        data, content_type = self.objects[object_key]
        return storage.StoredObject(body=iter([data]), content_type=content_type, content_length=len(data))

    def delete_object(self, object_key: str) -> None:
        if self.fail_delete:
            raise storage.StorageError("delete failed")
        self.objects.pop(object_key, None)
        self.deleted.append(object_key)


@pytest.fixture()
def fake_storage(monkeypatch) -> FakeStorage:
    fake = FakeStorage()
    for name in ("presign_upload", "object_exists", "open_object", "delete_object"):
        monkeypatch.setattr(storage, name, getattr(fake, name))
    return fake
