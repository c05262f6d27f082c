"""SQLAlchemy table mapping for links."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from app.domain.link import Link


class UTCDateTime(TypeDecorator):
    """Store naive UTC in SQLite, hand back timezone-aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetimes are not accepted")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class LinkRecord(Base):
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    short_code: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)

    @classmethod
    def from_link(cls, link: Link) -> "LinkRecord":
        return cls(
            id=link.id,
            short_code=link.short_code,
            target_url=link.target_url,
            created_at=link.created_at,
            expires_at=link.expires_at,
        )

    def to_link(self) -> Link:
        return Link(
            id=self.id,
            short_code=self.short_code,
            target_url=self.target_url,
            created_at=self.created_at,
            expires_at=self.expires_at,
        )
