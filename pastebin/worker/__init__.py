"""
Worker-related setup.

The expiry sweep normally runs as a daemon thread inside the web process.
``run_worker`` runs the same loop in the foreground for deployments that
prefer a dedicated worker process.
"""

from __future__ import annotations

import threading

from flask import Flask

from pastebin.worker.expiry_worker import (
    run_expiry_loop,
    start_expiry_worker,
    stop_expiry_worker,
    sweep_once,
)

__all__ = [
    "create_worker_app",
    "run_expiry_loop",
    "run_worker",
    "start_expiry_worker",
    "stop_expiry_worker",
    "sweep_once",
]


def create_worker_app(env_name: str | None = None) -> Flask:
    """
    Create a Flask application instance suitable for worker processes.

    The in-process worker thread is disabled; the caller drives the loop.
    """
    from pastebin import create_app  # local import to avoid circular dependency

    return create_app(env_name, {"EXPIRY_WORKER_ENABLED": False})


def run_worker(env_name: str | None = None) -> None:
    from pastebin.db import dispose_db

    app = create_worker_app(env_name)
    try:
        run_expiry_loop(app, threading.Event())
    except KeyboardInterrupt:
        pass
    finally:
        dispose_db()
