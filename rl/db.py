"""
Persistent link store for rl.

LinkStore is the single entry point for reading and writing links. It
owns one SQLAlchemy engine on a local SQLite file, runs pending schema
migrations when opened, and keeps the full-text index in step with the
links table: every write touches both inside one transaction.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Generator, Iterable, Tuple, Dict, Any

from sqlalchemy import create_engine, select, update, delete, func, event, literal_column, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from rl import timeutil
from rl.config import MEMORY_DATABASE, RlConfig, get_config
from rl.errors import (
    RlError, NotFoundError, InvalidInputError, StorageError, SearchError,
    ImportAbortedError,
)
from rl.fts import SearchIndex, is_query_error
from rl.ids import new_id, require_valid_id
from rl.merge import MergedFields, merge_for_add, merge_for_import, normalize_tags
from rl.migrate import Migrator
from rl.models import Link, LinkRecord
from rl.utils import require_valid_url

logger = logging.getLogger(__name__)

MEMORY = MEMORY_DATABASE


class ReadStatus(Enum):
    """Which links List returns."""
    UNREAD = "unread"
    READ = "read"
    ALL = "all"


@dataclass
class SkippedRecord:
    """An import record rejected by validation."""
    index: int
    url: str
    reason: str


@dataclass
class ImportReport:
    """Outcome of a bulk import."""
    created: int = 0
    updated: int = 0
    skipped: List[SkippedRecord] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return self.created + self.updated


def _configure_sqlite(dbapi_conn, connection_record):
    """
    Per-connection SQLite setup.

    Turning off the driver's implicit transaction handling lets the
    "begin" listener issue a real BEGIN, so DDL in migrations is
    transactional too.
    """
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.close()


def _begin(conn):
    conn.exec_driver_sql("BEGIN")


def create_store_engine(path: str, busy_timeout: float = 5.0, echo: bool = False) -> Engine:
    """
    Create the SQLite engine backing a store.

    Args:
        path: Database file path, or ":memory:"
        busy_timeout: Seconds to wait for a lock held by another process
        echo: Log every SQL statement

    Returns:
        Configured engine
    """
    if path == MEMORY:
        # One shared connection, otherwise every checkout is a new empty database
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
            poolclass=StaticPool,
            echo=echo,
        )
    else:
        engine = create_engine(
            f"sqlite:///{path}",
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
            poolclass=NullPool,
            echo=echo,
        )
    event.listen(engine, "connect", _configure_sqlite)
    event.listen(engine, "begin", _begin)
    return engine


class LinkStore:
    """
    CRUD, upsert and search over saved links.

    Examples:
        LinkStore()                    # Uses config default path
        LinkStore("links.db")          # Explicit file
        LinkStore(":memory:")          # Throwaway store for tests
    """

    def __init__(self, path: Optional[str] = None, config: Optional[RlConfig] = None):
        """
        Open (creating if needed) and migrate a store.

        Args:
            path: Database file path. Uses config default if not provided.
            config: Configuration; the global one if not provided

        Raises:
            MigrationError: If the schema cannot be brought up to date
            StorageError: If the database cannot be opened
        """
        self.config = config or get_config()

        if path is None:
            path = str(self.config.get_database_path())
        if path == MEMORY:
            self.path = None
        else:
            self.path = Path(path).expanduser()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            path = str(self.path)

        self.engine = create_store_engine(
            path,
            busy_timeout=self.config.busy_timeout,
            echo=self.config.database_echo,
        )
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.index = SearchIndex()
        self.migrator = Migrator(self.engine)

        try:
            applied = self.migrator.migrate()
        except RlError:
            self.engine.dispose()
            raise
        except SQLAlchemyError as e:
            self.engine.dispose()
            raise StorageError(f"cannot open store at {path}: {e}") from e
        if applied:
            logger.debug(f"Store {path} migrated through v{applied[-1]}")

    def __enter__(self) -> "LinkStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        """Release the engine's connections."""
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for one unit of work.

        Yields:
            Session whose changes are committed on success and rolled
            back on any error. Engine errors surface as StorageError.
        """
        session = self.Session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Upserts ──────────────────────────────────────────────────────

    def _apply(self, session: Session, link: Link, merged: MergedFields) -> None:
        link.title = merged.title
        link.note = merged.note
        link.tags = merged.tags
        link.created_at = merged.created_at
        link.read_at = merged.read_at
        session.flush()
        self.index.index_link(session.connection(), link)

    def _insert(self, session: Session, link: Link) -> None:
        session.add(link)
        session.flush()
        self.index.index_link(session.connection(), link)

    def _find_by_url(self, session: Session, url: str) -> Optional[Link]:
        return session.execute(select(Link).where(Link.url == url)).scalar_one_or_none()

    def add(self, url: str, title: str = "", note: str = "", tags: str = "") -> Tuple[Link, bool]:
        """
        Save a link, merging into the existing one for the same URL.

        On a repeat URL the new title and note replace the stored ones
        only when non-empty, tags are unioned case-insensitively, and the
        id, created_at and read_at are kept.

        Args:
            url: Absolute URL
            title: Optional title
            note: Optional note
            tags: Comma-separated tags

        Returns:
            (link, created) where created is False if an existing link
            was updated

        Raises:
            InvalidURLError: If url lacks a scheme or host
        """
        require_valid_url(url)
        title, note, tags = title or "", note or "", tags or ""

        with self.session() as session:
            existing = self._find_by_url(session, url)
            if existing is None:
                link = Link(
                    id=new_id(),
                    url=url,
                    title=title,
                    note=note,
                    tags=normalize_tags(tags),
                    created_at=timeutil.now(),
                    read_at=None,
                )
                self._insert(session, link)
                logger.debug(f"Added link {link.id}: {url}")
                return link, True

            self._apply(session, existing, merge_for_add(existing, title, note, tags))
            logger.debug(f"Updated link {existing.id}: {url}")
            return existing, False

    def _import_one(self, record: LinkRecord) -> bool:
        with self.session() as session:
            existing = self._find_by_url(session, record.url)
            if existing is None:
                link = Link(
                    id=record.id or new_id(),
                    url=record.url,
                    title=record.title or "",
                    note=record.note or "",
                    tags=normalize_tags(record.tags),
                    created_at=record.created_at or timeutil.now(),
                    read_at=record.read_at,
                )
                self._insert(session, link)
                return True

            merged = merge_for_import(existing, record, default_created_at=timeutil.now())
            self._apply(session, existing, merged)
            return False

    def import_links(self, records: Iterable[LinkRecord]) -> ImportReport:
        """
        Restore links from a backup, merging into existing ones.

        Stored non-empty title and note win over incoming ones, tags are
        unioned, created_at is kept when set, and read_at is taken from
        the incoming record. Each record commits on its own: a record
        with a bad URL or id is skipped and reported; a storage failure
        stops the import, leaving earlier records in place.

        Args:
            records: Incoming links

        Returns:
            ImportReport with counts and skipped records

        Raises:
            ImportAbortedError: On the first storage failure
        """
        report = ImportReport()
        for index, record in enumerate(records):
            try:
                require_valid_url(record.url)
                if record.id:
                    require_valid_id(record.id)
            except InvalidInputError as e:
                logger.warning(f"Skipping import record {index}: {e}")
                report.skipped.append(SkippedRecord(index, str(record.url), str(e)))
                continue

            try:
                created = self._import_one(record)
            except StorageError as e:
                raise ImportAbortedError(index, record.url, e, report) from e

            if created:
                report.created += 1
            else:
                report.updated += 1

        logger.info(
            f"Imported {report.imported} link(s): {report.created} new, "
            f"{report.updated} merged, {len(report.skipped)} skipped"
        )
        return report

    # ── Single-link operations ───────────────────────────────────────

    def get(self, link_id: str) -> Link:
        """
        Get a link by id.

        Raises:
            InvalidIDError: If link_id is not a well-formed short ID
            NotFoundError: If no link has that id
        """
        require_valid_id(link_id)
        with self.session() as session:
            link = session.get(Link, link_id)
            if link is None:
                raise NotFoundError(link_id)
            return link

    def delete(self, link_id: str) -> None:
        """
        Permanently delete a link and its index postings.

        Raises:
            InvalidIDError: If link_id is not a well-formed short ID
            NotFoundError: If no link has that id
        """
        require_valid_id(link_id)
        with self.session() as session:
            result = session.execute(delete(Link).where(Link.id == link_id))
            if result.rowcount == 0:
                raise NotFoundError(link_id)
            self.index.remove_link(session.connection(), link_id)
        logger.debug(f"Deleted link {link_id}")

    def _set_read_at(self, link_id: str, read_at) -> None:
        require_valid_id(link_id)
        with self.session() as session:
            result = session.execute(
                update(Link).where(Link.id == link_id).values(read_at=read_at)
            )
            if result.rowcount == 0:
                raise NotFoundError(link_id)

    def mark_read(self, link_id: str) -> None:
        """Stamp a link as read now (re-stamps if already read)."""
        self._set_read_at(link_id, timeutil.now())

    def mark_unread(self, link_id: str) -> None:
        """Clear a link's read state."""
        self._set_read_at(link_id, None)

    # ── Queries ──────────────────────────────────────────────────────

    def list(self, read_status: ReadStatus = ReadStatus.ALL, tag: str = "",
             limit: int = 0) -> List[Link]:
        """
        List links, most recently created first.

        Args:
            read_status: Unread only, read only, or all
            tag: Substring matched against the stored tag string, so
                "py" also matches a "python" tag
            limit: Maximum number of results if positive

        Returns:
            List of links
        """
        stmt = select(Link)
        if read_status is ReadStatus.UNREAD:
            stmt = stmt.where(Link.read_at.is_(None))
        elif read_status is ReadStatus.READ:
            stmt = stmt.where(Link.read_at.is_not(None))
        if tag:
            stmt = stmt.where(Link.tags.contains(tag, autoescape=True))
        stmt = stmt.order_by(Link.created_at.desc(), literal_column("links.rowid").desc())
        if limit and limit > 0:
            stmt = stmt.limit(limit)

        with self.session() as session:
            return list(session.execute(stmt).scalars())

    def export(self) -> List[Link]:
        """All links, any read state, newest first."""
        return self.list(ReadStatus.ALL)

    def search(self, query: str) -> List[Link]:
        """
        Full-text search over url, title, note and tags.

        Args:
            query: FTS5 query; bare terms are ANDed

        Returns:
            Matching links ordered by created_at descending

        Raises:
            SearchError: If the query grammar is rejected
        """
        if not query or not query.strip():
            return []

        stmt = select(Link).from_statement(
            text(self.index.search_sql()).bindparams(query=query)
        )
        with self.session() as session:
            try:
                return list(session.execute(stmt).scalars())
            except OperationalError as e:
                message = is_query_error(e)
                if message is None:
                    raise
                raise SearchError(f"invalid search query {query!r}: {message}") from e

    def stats(self) -> Dict[str, Any]:
        """
        Store statistics.

        Returns:
            Dictionary with link counts, schema version and file info
        """
        with self.session() as session:
            total = session.scalar(select(func.count()).select_from(Link))
            unread = session.scalar(
                select(func.count()).select_from(Link).where(Link.read_at.is_(None))
            )
            stats = {
                "total_links": total,
                "unread_links": unread,
                "read_links": total - unread,
                "indexed_links": self.index.count(session.connection()),
            }

        stats["schema_version"] = max(self.migrator.applied_versions(), default=0)

        if self.path is not None:
            stats["database_path"] = str(self.path)
            if self.path.exists():
                stats["database_size"] = self.path.stat().st_size
        return stats


# Global store instance
_store: Optional[LinkStore] = None


def get_store(path: Optional[str] = None, reload: bool = False) -> LinkStore:
    """
    Get the global store instance.

    Args:
        path: Database file path
        reload: Force a new store

    Returns:
        LinkStore instance
    """
    global _store
    if _store is None or reload or path:
        if _store is not None:
            _store.close()
        _store = LinkStore(path)
    return _store
