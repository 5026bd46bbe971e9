from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pastebin.domain.identifiers import generate_paste_id
from pastebin.domain.lifecycle import (
    MAX_CONTENT_CHARS,
    MAX_TITLE_CHARS,
    MAX_TTL_SECONDS,
    MAX_VIEWS_LIMIT,
    as_utc,
    compute_expires_at,
    remaining_views as _remaining_views,
    utcnow,
)
from pastebin.domain.models import Paste
from pastebin.observability import get_correlation_id
from pastebin.repositories.paste_repository import PasteRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasteSummary:
    """Paste metadata without the content, as shown in listings."""

    id: str
    title: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
    max_views: Optional[int]
    view_count: int

    @property
    def remaining_views(self) -> Optional[int]:
        return _remaining_views(self.view_count, self.max_views)


@dataclass(frozen=True)
class PasteRecord(PasteSummary):
    content: str = ""


def _paste_to_summary(paste: Paste) -> PasteSummary:
    return PasteSummary(
        id=paste.id,
        title=paste.title,
        created_at=as_utc(paste.created_at),
        expires_at=as_utc(paste.expires_at) if paste.expires_at is not None else None,
        max_views=paste.max_views,
        view_count=paste.view_count,
    )


def _paste_to_record(paste: Paste) -> PasteRecord:
    """Convert a Paste ORM entity to a detached, immutable record."""
    return PasteRecord(
        id=paste.id,
        title=paste.title,
        created_at=as_utc(paste.created_at),
        expires_at=as_utc(paste.expires_at) if paste.expires_at is not None else None,
        max_views=paste.max_views,
        view_count=paste.view_count,
        content=paste.content,
    )


class PasteError(Exception):
    """Base class for paste-related errors."""


class InvalidPasteParameters(PasteError):
    """Raised when creating a paste with invalid parameters."""


class PasteIdConflict(PasteError):
    """Raised when a freshly generated id is already taken."""


class StorageFailure(PasteError):
    """Raised when the backing store fails; the transaction was rolled back."""


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class PasteStore:
    """
    Paste persistence and lifecycle operations.

    Owns session lifecycle: creates a session per operation, commits on
    success, rolls back on exception, and closes the session in a finally
    block. Returns frozen records; no ORM entities escape this layer.

    Not-found is reported as ``None``. Expired or exhausted pastes are
    deleted the moment an operation observes them.
    """

    session_factory: Callable[[], Session]
    clock: Callable[[], datetime] = utcnow
    id_factory: Callable[[], str] = generate_paste_id
    max_content_chars: int = MAX_CONTENT_CHARS

    def _now(self, now: Optional[datetime]) -> datetime:
        return as_utc(now if now is not None else self.clock())

    def _reject(self, message: str) -> InvalidPasteParameters:
        logger.warning(
            message,
            extra={
                "event": "paste_create_invalid_parameters",
                "correlation_id": get_correlation_id(),
            },
        )
        return InvalidPasteParameters(message)

    def _storage_failure(self, operation: str, exc: Exception) -> StorageFailure:
        logger.error(
            "Storage failure during %s",
            operation,
            exc_info=exc,
            extra={
                "event": "storage_failure",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return StorageFailure(f"{operation} failed: {type(exc).__name__}")

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create(
        self,
        *,
        content: str,
        title: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> PasteRecord:
        """
        Create a new paste enforcing business rules:

        - ``content`` must be non-blank and at most ``max_content_chars`` long
        - ``title`` (if provided) must be at most 255 characters
        - ``ttl_seconds`` (if provided) must be an integer in
          ``[0, MAX_TTL_SECONDS]``; 0 never expires
        - ``max_views`` (if provided) must be an integer in ``[1, MAX_VIEWS_LIMIT]``
        """
        if not isinstance(content, str) or not content.strip():
            raise self._reject("content must be a non-empty string.")
        if len(content) > self.max_content_chars:
            raise self._reject(
                f"content must be at most {self.max_content_chars} characters."
            )
        if title is not None and len(title) > MAX_TITLE_CHARS:
            raise self._reject(f"title must be at most {MAX_TITLE_CHARS} characters.")
        if ttl_seconds is not None and (
            not _is_int(ttl_seconds) or not 0 <= ttl_seconds <= MAX_TTL_SECONDS
        ):
            raise self._reject(
                f"ttl_seconds must be an integer between 0 and {MAX_TTL_SECONDS}."
            )
        if max_views is not None and (
            not _is_int(max_views) or not 1 <= max_views <= MAX_VIEWS_LIMIT
        ):
            raise self._reject(
                f"max_views must be an integer between 1 and {MAX_VIEWS_LIMIT}."
            )

        created_at = self._now(now)
        paste_id = self.id_factory()

        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)
            paste = paste_repo.create_paste(
                paste_id=paste_id,
                content=content,
                title=title or None,
                created_at=created_at,
                expires_at=compute_expires_at(created_at, ttl_seconds),
                max_views=max_views,
            )
            record = _paste_to_record(paste)
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            logger.warning(
                "Paste id collision",
                extra={
                    "event": "paste_id_conflict",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise PasteIdConflict(f"Paste id {paste_id} is already taken.") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_failure("create", exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(
            "Paste created",
            extra={
                "event": "paste_created",
                "paste_id": record.id,
                "correlation_id": get_correlation_id(),
            },
        )
        return record

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def fetch_and_consume(
        self,
        paste_id: str,
        *,
        now: Optional[datetime] = None,
        should_increment: bool = True,
    ) -> Optional[PasteRecord]:
        """
        Return a live paste, counting the access as a view.

        Rules, evaluated in one transaction:
        - absent → ``None``
        - ``expires_at <= now`` → delete, ``None``
        - ``view_count >= max_views`` → delete, ``None`` (checked before any
          increment, so a ceiling is never exceeded)
        - otherwise increment ``view_count`` by one and return the record,
          or return it unchanged when ``should_increment`` is false
        """
        now_utc = self._now(now)

        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)

            # The write comes first so the row lock is taken before anything
            # is read; a concurrent caller waits here and then sees our count.
            if should_increment:
                paste = paste_repo.consume_view_if_alive(paste_id, now_utc)
                if paste is not None:
                    record = _paste_to_record(paste)
                    session.commit()
                    logger.info(
                        "Paste viewed",
                        extra={
                            "event": "paste_viewed",
                            "paste_id": paste_id,
                            "count": record.view_count,
                            "correlation_id": get_correlation_id(),
                        },
                    )
                    return record

            removed = paste_repo.delete_if_dead(paste_id, now_utc)
            paste = None if should_increment else paste_repo.get_paste_by_id(paste_id)
            record = _paste_to_record(paste) if paste is not None else None
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_failure("fetch_and_consume", exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        if removed:
            logger.info(
                "Paste expired on access",
                extra={
                    "event": "paste_expired_on_access",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
        if record is None:
            logger.info(
                "Paste not found",
                extra={
                    "event": "paste_not_found",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
        return record

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------
    def remove(self, paste_id: str) -> bool:
        """Delete a paste unconditionally. Returns whether it existed."""
        session = self.session_factory()
        try:
            removed = PasteRepository(session=session).delete_paste(paste_id)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_failure("remove", exc) from exc
        finally:
            session.close()

        if removed:
            logger.info(
                "Paste deleted",
                extra={
                    "event": "paste_deleted",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
        return removed

    def remove_all(self) -> int:
        session = self.session_factory()
        try:
            count = PasteRepository(session=session).delete_all()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_failure("remove_all", exc) from exc
        finally:
            session.close()

        logger.info(
            "All pastes deleted",
            extra={
                "event": "pastes_cleared",
                "count": count,
                "correlation_id": get_correlation_id(),
            },
        )
        return count

    # -------------------------------------------------------------------------
    # Listing / sweeping
    # -------------------------------------------------------------------------
    def sweep_expired(self, *, now: Optional[datetime] = None) -> int:
        """Delete every time-expired paste; returns how many were removed."""
        now_utc = self._now(now)

        session = self.session_factory()
        try:
            count = PasteRepository(session=session).delete_time_expired(now_utc)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_failure("sweep_expired", exc) from exc
        finally:
            session.close()
        return count

    def list_live(
        self,
        *,
        now: Optional[datetime] = None,
        limit: int = 50,
    ) -> list[PasteSummary]:
        """
        Sweep time-expired pastes, then return the newest ``limit`` summaries.

        View-exhausted pastes stay listed until an access discovers them.
        """
        if not _is_int(limit) or limit < 1:
            raise InvalidPasteParameters("limit must be an integer >= 1.")
        now_utc = self._now(now)

        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)
            paste_repo.delete_time_expired(now_utc)
            summaries = [_paste_to_summary(p) for p in paste_repo.list_recent(limit)]
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._storage_failure("list_live", exc) from exc
        finally:
            session.close()
        return summaries
