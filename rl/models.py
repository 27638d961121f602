"""
SQLAlchemy models for rl.

The schema itself is owned by the numbered migrations in rl.migrations;
these mappings describe the same tables so the store can work with ORM
objects. Timestamps are TEXT columns holding canonical UTC strings.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import Integer, String, Text, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from rl import timeutil


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Timestamp(TypeDecorator):
    """
    Datetime stored as canonical text.

    Binds aware or naive datetimes (naive means UTC) and any accepted
    textual form; loads whatever is stored, tolerating legacy formats.
    """
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = timeutil.parse_timestamp(value)
        return timeutil.format_timestamp(value)

    def process_result_value(self, value, dialect):
        return timeutil.parse_timestamp_lenient(value)


def split_tags(tags: Optional[str]) -> List[str]:
    """Split a stored tag string into trimmed, non-empty labels."""
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


def join_tags(tags: List[str]) -> str:
    """Serialize labels back to the stored comma-delimited form."""
    return ",".join(tags)


class Link(Base):
    """
    A saved URL with metadata.

    Attributes:
        id: Short ID, immutable once assigned
        url: The link URL, unique across the store
        title: Optional title
        note: Optional free-text note
        tags: Comma-delimited labels, case-insensitively unique
        created_at: When the URL was first saved
        read_at: When it was marked read; None while unread
    """
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    url: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(Timestamp, nullable=True)

    __table_args__ = (
        Index("idx_links_read_at", "read_at"),
        Index("idx_links_created_at", "created_at"),
        Index("idx_links_tags", "tags"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def tag_list(self) -> List[str]:
        return split_tags(self.tags)

    def to_dict(self) -> Dict[str, Any]:
        """
        Wire form used by export.

        Empty title, note, tags and a null read_at are omitted.
        """
        data: Dict[str, Any] = {"id": self.id, "url": self.url}
        if self.title:
            data["title"] = self.title
        if self.note:
            data["note"] = self.note
        if self.tags:
            data["tags"] = self.tags
        data["created_at"] = timeutil.format_timestamp(self.created_at)
        if self.read_at is not None:
            data["read_at"] = timeutil.format_timestamp(self.read_at)
        return data

    def __repr__(self):
        return f"<Link(id={self.id}, url='{self.url[:50]}')>"


class SchemaMigration(Base):
    """Ledger row: one per applied schema version."""
    __tablename__ = "schema_migrations"

    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    applied_at: Mapped[str] = mapped_column(String, nullable=False)

    def __repr__(self):
        return f"<SchemaMigration(version={self.version}, applied_at='{self.applied_at}')>"


@dataclass
class LinkRecord:
    """
    An incoming link as read from a backup, before it touches the store.

    Every field except url may be missing in the source document.
    """
    url: str
    id: Optional[str] = None
    title: str = ""
    note: str = ""
    tags: str = ""
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
