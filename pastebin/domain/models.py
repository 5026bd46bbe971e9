from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from pastebin.db import Base
from pastebin.domain.identifiers import PASTE_ID_LENGTH
from pastebin.domain.lifecycle import MAX_TITLE_CHARS


class Paste(Base):
    """Paste entity persisted via SQLAlchemy."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint(
            "max_views IS NULL OR max_views >= 1",
            name="ck_pastes_max_views_min_1",
        ),
        CheckConstraint(
            "view_count >= 0",
            name="ck_pastes_view_count_non_negative",
        ),
        Index("ix_pastes_expires_at", "expires_at"),
        Index("ix_pastes_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(PASTE_ID_LENGTH), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(String(MAX_TITLE_CHARS), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    @validates("content", "title", "created_at", "expires_at")
    def _validate_immutable(self, key: str, value):
        """
        Enforce that creation-time fields are immutable.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error.
        """

        current = getattr(self, key, None)
        if current is not None and current != value:
            raise ValueError(f"Paste {key} is immutable and cannot be modified.")
        return value

    def __repr__(self) -> str:
        return f"<Paste id={self.id!r} views={self.view_count}/{self.max_views}>"
