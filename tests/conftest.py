from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pastebin import create_app
from pastebin.db import Base, dispose_db
from pastebin.domain import models as _models  # noqa: F401
from pastebin.services.paste_store import PasteStore


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory SQLite engine for each test function.

    This keeps tests focused on domain behavior while using a real database
    session for repository/store operations.
    """

    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite engine whose connections can be used from threads."""

    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'pastes.db'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def paste_store(session_factory: sessionmaker[Session]) -> PasteStore:
    """Store with a frozen clock; each call gets a new session from the test engine."""
    return PasteStore(session_factory=session_factory, clock=lambda: T0)


@pytest.fixture
def app(tmp_path: Path) -> Generator[Flask, None, None]:
    app = create_app(
        "testing",
        {"SQLALCHEMY_DATABASE_URI": f"sqlite+pysqlite:///{tmp_path / 'api.db'}"},
    )
    try:
        yield app
    finally:
        dispose_db()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
