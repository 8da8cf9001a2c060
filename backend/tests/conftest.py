"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core.identity import Principal
from app.core.security import create_access_token
from app.database import get_db
from app.main import app
from app.models import Base, User
from app.services.cache import get_cache
from app.services.mentions import get_mention_dispatcher

TENANT_ID = 1
OTHER_TENANT_ID = 2


@pytest.fixture(autouse=True)
def reset_process_caches() -> Iterator[None]:
    """Give every test a fresh in-memory cache and dispatcher."""

    get_cache.cache_clear()
    get_mention_dispatcher.cache_clear()
    yield
    get_cache.cache_clear()
    get_mention_dispatcher.cache_clear()


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def users(session_factory) -> dict[str, int]:
    """Seed tenant users and return their ids by first name.

    ``alice``, ``bob``, ``carol`` and ``erin`` share the main tenant;
    ``mallory`` belongs to another tenant.
    """

    seed = (
        ("alice", TENANT_ID),
        ("bob", TENANT_ID),
        ("carol", TENANT_ID),
        ("erin", TENANT_ID),
        ("mallory", OTHER_TENANT_ID),
    )
    session = session_factory()
    try:
        created = {}
        for name, tenant_id in seed:
            user = User(
                tenant_id=tenant_id,
                email=f"{name}@example.com",
                first_name=name.title(),
                last_name="Tester",
            )
            session.add(user)
            created[name] = user
        session.commit()
        return {name: user.id for name, user in created.items()}
    finally:
        session.close()


def make_principal(user_id: int, tenant_id: int = TENANT_ID, roles: Iterable[str] = ()) -> Principal:
    return Principal(user_id=user_id, tenant_id=tenant_id, roles=frozenset(roles))


def auth_headers(user_id: int, tenant_id: int = TENANT_ID, roles: Iterable[str] = ()) -> dict[str, str]:
    token = create_access_token(user_id, tenant_id, roles)
    return {"Authorization": f"Bearer {token}"}
