from __future__ import annotations

import logging
import threading

from flask import Flask
from sqlalchemy import inspect

from pastebin.db import SessionLocal
from pastebin.domain.models import Paste
from pastebin.services.paste_store import PasteStore, StorageFailure


logger = logging.getLogger(__name__)

WORKER_CORRELATION_ID = "expiry-worker"

_worker_thread: threading.Thread | None = None
_stop_event = threading.Event()
_worker_lock = threading.Lock()


def sweep_once(paste_store: PasteStore) -> int:
    """
    Run a single sweep cycle; returns the number of pastes removed.

    Reads never return expired pastes on their own, so a skipped or failed
    cycle only delays storage reclamation.
    """

    session = paste_store.session_factory()
    try:
        # If tables haven't been created yet (no migrations run), skip work
        # instead of spamming errors.
        has_table = inspect(session.get_bind()).has_table(Paste.__tablename__)
    finally:
        session.close()

    if not has_table:
        logger.info(
            "Expiry worker: 'pastes' table not found; skipping cycle",
            extra={
                "event": "expiry_worker_no_table",
                "correlation_id": WORKER_CORRELATION_ID,
            },
        )
        return 0

    try:
        count = paste_store.sweep_expired()
    except StorageFailure:
        logger.warning(
            "Expiry worker: sweep failed; retrying next cycle",
            extra={
                "event": "expiry_worker_error",
                "correlation_id": WORKER_CORRELATION_ID,
            },
        )
        return 0

    if count:
        logger.info(
            "Expiry worker: removed expired pastes",
            extra={
                "event": "expiry_worker_sweep",
                "count": count,
                "correlation_id": WORKER_CORRELATION_ID,
            },
        )
    return count


def run_expiry_loop(app: Flask, stop_event: threading.Event) -> None:
    """Background loop that periodically sweeps expired pastes."""

    interval = float(app.config.get("EXPIRY_SWEEP_INTERVAL_SECONDS", 60.0))
    paste_store = PasteStore(session_factory=SessionLocal)

    with app.app_context():
        while not stop_event.is_set():
            try:
                sweep_once(paste_store)
            except Exception:  # pragma: no cover - keep the thread alive
                logger.exception(
                    "Error in expiry worker loop",
                    extra={
                        "event": "expiry_worker_error",
                        "correlation_id": WORKER_CORRELATION_ID,
                    },
                )
            finally:
                SessionLocal.remove()

            stop_event.wait(interval)


def start_expiry_worker(app: Flask) -> None:
    """
    Start the expiry worker in a background thread.

    This function is idempotent and will only start a single worker thread.
    """

    global _worker_thread
    with _worker_lock:
        if _worker_thread is not None and _worker_thread.is_alive():
            return

        _stop_event.clear()
        thread = threading.Thread(
            target=run_expiry_loop,
            args=(app, _stop_event),
            name="expiry-worker",
            daemon=True,
        )
        thread.start()
        _worker_thread = thread


def stop_expiry_worker(timeout: float | None = 5.0) -> None:
    """Signal the worker thread to exit and wait for it."""

    global _worker_thread
    with _worker_lock:
        thread = _worker_thread
        _worker_thread = None
        _stop_event.set()

    if thread is not None:
        thread.join(timeout)
