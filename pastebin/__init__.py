from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .api.pastes import api_bp
from .api.schemas import HealthResponse
from .config import get_config
from .db import init_db
from .observability import get_correlation_id, init_observability
from .services.paste_store import StorageFailure
from .worker.expiry_worker import start_expiry_worker


logger = logging.getLogger(__name__)


def create_app(
    env_name: str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Flask:
    """
    Application factory for the Flask backend.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``). ``overrides`` is applied on top of the selected config.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)
    if overrides:
        app.config.update(overrides)

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
    )

    # Initialize infrastructure layers
    init_db(app)
    init_observability(app)

    # Register API blueprints
    app.register_blueprint(api_bp)
    _register_health(app)
    _register_error_handlers(app)

    # Start background expiry worker (disabled in testing)
    if app.config.get("EXPIRY_WORKER_ENABLED", False) and not app.config.get(
        "TESTING", False
    ):
        start_expiry_worker(app)

    return app


def _register_health(app: Flask) -> None:
    @app.route("/health", methods=["GET"])
    def health() -> tuple[dict, int]:  # type: ignore[unused-variable]
        """Simple health check endpoint."""

        body = HealthResponse(timestamp=datetime.now(timezone.utc))
        return body.model_dump(mode="json"), HTTPStatus.OK


def _register_error_handlers(app: Flask) -> None:
    """Render every error as a JSON body with an ``error`` key."""

    @app.errorhandler(StorageFailure)
    def _storage_failure(exc: StorageFailure):  # type: ignore[unused-variable]
        return {"error": "Storage unavailable"}, HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):  # type: ignore[unused-variable]
        if exc.code == HTTPStatus.NOT_FOUND:
            message = "Not found"
        elif exc.code == HTTPStatus.REQUEST_ENTITY_TOO_LARGE:
            message = "Request body too large"
        else:
            message = exc.description or exc.name
        return {"error": message}, exc.code

    @app.errorhandler(Exception)
    def _unexpected_error(exc: Exception):  # type: ignore[unused-variable]
        logger.exception(
            "Unhandled error",
            extra={
                "event": "unhandled_error",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return {"error": "Internal server error"}, HTTPStatus.INTERNAL_SERVER_ERROR
