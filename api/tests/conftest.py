from __future__ import annotations

import io
import itertools
import os
import tempfile
from pathlib import Path
from typing import Callable, Generator

# Point the app at throw-away storage before any cardwall module reads its settings
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="cardwall-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'cardwall.db'}"
os.environ["VAULT_LOCATION"] = str(_TEST_ROOT / "vault")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-cardwall-suite-0123456789")
os.environ.pop("REDIS_URL", None)

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.orm import Session

from cardwall import models
from cardwall.auth import create_access_token
from cardwall.db import Base, SessionLocal
from cardwall.deps import get_db, get_images
from cardwall.main import app, run_startup_tasks
from cardwall.services import posts as post_service
from cardwall.vault import LocalVault

load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    run_startup_tasks()


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Database session shared by the test and the app; all rows are wiped afterwards."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture()
def vault(tmp_path: Path) -> LocalVault:
    return LocalVault(tmp_path / "vault")


@pytest.fixture()
def client(db: Session, vault: LocalVault) -> Generator[TestClient, None, None]:
    def _get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_images] = lambda: vault
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def png_bytes() -> Callable[..., bytes]:
    def _png(width: int = 4, height: int = 3, color: str = "red") -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), color).save(buffer, format="PNG")
        return buffer.getvalue()

    return _png


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    counter = itertools.count(1)

    def _make(handle: str | None = None, role: str = "user", **fields) -> models.User:
        n = next(counter)
        user = models.User(
            handle=handle or f"user{n}",
            name=f"User {n}",
            email=f"user{n}@example.com",
            role=role,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth() -> Callable[[models.User], dict[str, str]]:
    def _headers(user: models.User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.user_key)}"}

    return _headers


@pytest.fixture()
def make_taxonomy(db: Session) -> Callable[..., models.Category | models.Tag]:
    def _make(kind: str, name: str, post_count: int = 0):
        model = models.Category if kind == "category" else models.Tag
        entity = model(name=name, post_count=post_count)
        db.add(entity)
        db.commit()
        db.refresh(entity)
        return entity

    return _make


@pytest.fixture()
def make_post(
    db: Session, vault: LocalVault, png_bytes: Callable[..., bytes]
) -> Callable[..., models.Post]:
    def _make(
        owner: models.User,
        category: str = "tech",
        tags: list[str] | str = ("x", "y"),
        content: str = "Stay hungry",
    ) -> models.Post:
        return post_service.create_post(
            db,
            owner,
            content=content,
            author="Someone Famous",
            category=category,
            tags=list(tags) if not isinstance(tags, str) else tags,
            content_color="#ffffff",
            author_color="#eeeeee",
            tint_color="#000000",
            image=png_bytes(),
            images=vault,
        )

    return _make
