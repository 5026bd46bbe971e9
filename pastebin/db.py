from __future__ import annotations

import logging

from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker


logger = logging.getLogger(__name__)

Base = declarative_base()

_engine: Engine | None = None
SessionLocal: scoped_session = scoped_session(
    sessionmaker(autocommit=False, autoflush=False)
)


def init_db(app: Flask) -> None:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    When ``AUTO_CREATE_SCHEMA`` is set, tables are created directly from the
    ORM metadata instead of waiting for migrations.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app."
        )

    # Re-initialisation (e.g. several apps in one test run) replaces the engine.
    dispose_db()

    _engine = create_engine(
        database_uri,
        future=app.config.get("SQLALCHEMY_FUTURE", True),
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    SessionLocal.configure(bind=_engine)

    if app.config.get("AUTO_CREATE_SCHEMA", False):
        # Models must be imported so that Base.metadata knows the tables.
        from pastebin.domain import models as _models  # noqa: F401

        Base.metadata.create_all(_engine)

    @app.teardown_appcontext
    def remove_session(_exc: BaseException | None) -> None:  # type: ignore[unused-variable]
        """Remove the scoped session at the end of the request."""

        SessionLocal.remove()


def dispose_db() -> None:
    """Release pooled connections; safe to call when nothing was initialized."""
    global _engine

    SessionLocal.remove()
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed", extra={"event": "db_disposed"})
        _engine = None
