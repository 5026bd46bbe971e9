from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import (
    ColumnElement,
    Delete,
    Select,
    Update,
    and_,
    delete,
    or_,
    select,
    update,
)
from sqlalchemy.orm import Session

from pastebin.domain.models import Paste
from pastebin.observability import get_correlation_id


logger = logging.getLogger(__name__)


def _time_expired(now: datetime) -> ColumnElement[bool]:
    return and_(Paste.expires_at.isnot(None), Paste.expires_at <= now)


def _view_exhausted() -> ColumnElement[bool]:
    return and_(Paste.max_views.isnot(None), Paste.view_count >= Paste.max_views)


def _alive(now: datetime) -> ColumnElement[bool]:
    return and_(
        or_(Paste.expires_at.is_(None), Paste.expires_at > now),
        or_(Paste.max_views.is_(None), Paste.view_count < Paste.max_views),
    )


class PasteRepository:
    """
    Repository for Paste rows.

    All database interaction for Paste should go through this class. Methods
    never commit; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_paste(
        self,
        *,
        paste_id: str,
        content: str,
        created_at: datetime,
        title: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        max_views: Optional[int] = None,
    ) -> Paste:
        """
        Create and persist a new Paste.

        The flush surfaces primary key collisions as ``IntegrityError``.
        """

        paste = Paste(
            id=paste_id,
            content=content,
            title=title,
            created_at=created_at,
            expires_at=expires_at,
            max_views=max_views,
            view_count=0,
        )
        self._session.add(paste)
        self._session.flush()
        return paste

    def get_paste_by_id(self, paste_id: str) -> Optional[Paste]:
        """Return a Paste by its id, or ``None`` if not found."""

        stmt: Select[tuple[Paste]] = select(Paste).where(Paste.id == paste_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def consume_view_if_alive(self, paste_id: str, now: datetime) -> Optional[Paste]:
        """
        Increment ``view_count`` by one if the paste is live at ``now``.

        The liveness check and the increment are one conditional UPDATE, so
        the database serializes concurrent callers on the same row: a waiter
        re-evaluates the condition against the committed count. Returns the
        updated Paste, or ``None`` when nothing matched.
        """

        stmt: Update = (
            update(Paste)
            .where(Paste.id == paste_id, _alive(now))
            .values(view_count=Paste.view_count + 1)
            .returning(Paste)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def delete_if_dead(self, paste_id: str, now: datetime) -> bool:
        """Delete the paste if it is time-expired or view-exhausted at ``now``."""

        stmt: Delete = (
            delete(Paste)
            .where(Paste.id == paste_id, or_(_time_expired(now), _view_exhausted()))
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount > 0

    def delete_paste(self, paste_id: str) -> bool:
        stmt: Delete = (
            delete(Paste)
            .where(Paste.id == paste_id)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount > 0

    def delete_all(self) -> int:
        stmt: Delete = delete(Paste).execution_options(synchronize_session=False)
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)

    def delete_time_expired(self, now: datetime) -> int:
        """
        Delete every paste whose ``expires_at`` has passed.

        View-exhausted rows are left for the next access to discover.
        """

        stmt: Delete = (
            delete(Paste)
            .where(_time_expired(now))
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        count = int(result.rowcount or 0)
        if count:
            logger.info(
                "Expired pastes swept",
                extra={
                    "event": "pastes_swept",
                    "count": count,
                    "correlation_id": get_correlation_id(),
                },
            )
        return count

    def list_recent(self, limit: int) -> Sequence[Paste]:
        """Newest pastes first, at most ``limit`` of them."""

        stmt: Select[tuple[Paste]] = (
            select(Paste)
            .order_by(Paste.created_at.desc(), Paste.id.desc())
            .limit(limit)
        )
        return self._session.execute(stmt).scalars().all()
