from __future__ import annotations

from datetime import datetime, timezone
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dropbin import create_app
from dropbin.db import Base, SessionLocal, get_engine
from dropbin.domain import models as _models  # noqa: F401
from dropbin.services.paste_service import PasteService
from dropbin.storage import LocalBlobStore


FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# Database / storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory SQLite engine for each test function.

    A single shared connection keeps the database alive across the
    sessions opened by the service under test.
    """

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def paste_service(
    session_factory: sessionmaker,
    blob_store: LocalBlobStore,
    clock: FrozenClock,
) -> PasteService:
    """Service with its own session factory; each call gets a new session from the test engine."""

    return PasteService(
        session_factory=session_factory,
        blob_store=blob_store,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Flask fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(tmp_path) -> Generator[Flask, None, None]:
    app = create_app(
        "testing",
        {
            "SQLALCHEMY_DATABASE_URI": "sqlite+pysqlite:///:memory:",
            "BLOB_STORAGE_ROOT": str(tmp_path / "storage"),
            "BACKEND_BASE_URL": "http://api.test",
            "PUBLIC_BASE_URL": "http://web.test",
        },
    )
    Base.metadata.create_all(get_engine())
    try:
        yield app
    finally:
        SessionLocal.remove()
        get_engine().dispose()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
