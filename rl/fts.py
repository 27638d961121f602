"""
Full-text search index for rl.

An SQLite FTS5 table over (url, title, note, tags), keyed by the logical
link id rather than by rowid. There are no triggers: the link store calls
index_link/remove_link inside the same transaction as the primary write,
so the index and the links table always change together.

Query syntax is FTS5's own: bare terms are ANDed, "quoted phrases",
prefix*, OR and NOT are supported.
"""
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from rl.models import Link

logger = logging.getLogger(__name__)


class SearchIndex:
    """FTS5 index manager. Stateless; every method takes the open connection."""

    FTS_TABLE = "links_fts"

    # Objects from the older trigger-maintained, rowid-keyed index
    LEGACY_TRIGGERS = ("links_ai", "links_ad", "links_au")

    def exists(self, conn: Connection) -> bool:
        """Check whether the FTS table is present."""
        row = conn.execute(text(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"
        ), {"name": self.FTS_TABLE}).first()
        return row is not None

    def create(self, conn: Connection) -> None:
        """Create the FTS5 virtual table if it doesn't exist."""
        conn.execute(text(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS {self.FTS_TABLE} USING fts5(
                link_id UNINDEXED,
                url,
                title,
                note,
                tags
            )
        """))

    def drop(self, conn: Connection) -> None:
        """Drop the FTS table and any legacy maintenance triggers."""
        for trigger in self.LEGACY_TRIGGERS:
            conn.execute(text(f"DROP TRIGGER IF EXISTS {trigger}"))
        conn.execute(text(f"DROP TABLE IF EXISTS {self.FTS_TABLE}"))

    def rebuild(self, conn: Connection) -> int:
        """
        Drop, recreate and repopulate the index from the links table.

        Returns:
            Number of links indexed
        """
        self.drop(conn)
        self.create(conn)
        conn.execute(text(f"""
            INSERT INTO {self.FTS_TABLE} (link_id, url, title, note, tags)
            SELECT id, url, COALESCE(title, ''), COALESCE(note, ''), COALESCE(tags, '')
            FROM links
        """))
        indexed = self.count(conn)
        logger.debug(f"Rebuilt search index with {indexed} link(s)")
        return indexed

    def index_link(self, conn: Connection, link: Link) -> None:
        """
        Add or refresh one link's postings.

        Always delete-then-insert; FTS5 rows are never updated in place.
        """
        self.remove_link(conn, link.id)
        conn.execute(text(f"""
            INSERT INTO {self.FTS_TABLE} (link_id, url, title, note, tags)
            VALUES (:link_id, :url, :title, :note, :tags)
        """), {
            "link_id": link.id,
            "url": link.url,
            "title": link.title or "",
            "note": link.note or "",
            "tags": link.tags or "",
        })

    def remove_link(self, conn: Connection, link_id: str) -> None:
        """Remove a link's postings (no-op if it has none)."""
        conn.execute(text(
            f"DELETE FROM {self.FTS_TABLE} WHERE link_id = :link_id"
        ), {"link_id": link_id})

    def count(self, conn: Connection) -> int:
        """Number of indexed links."""
        return conn.execute(text(f"SELECT COUNT(*) FROM {self.FTS_TABLE}")).scalar_one()

    def search_sql(self) -> str:
        """
        SELECT over links matching :query, newest first.

        Ordering is by created_at, not by text relevance.
        """
        return f"""
            SELECT links.id, links.url, links.title, links.note, links.tags,
                   links.created_at, links.read_at
            FROM links
            JOIN {self.FTS_TABLE} ON {self.FTS_TABLE}.link_id = links.id
            WHERE {self.FTS_TABLE} MATCH :query
            ORDER BY links.created_at DESC, links.rowid DESC
        """


def is_query_error(exc: BaseException) -> Optional[str]:
    """
    Classify an engine error raised while running a MATCH query.

    Returns:
        The engine message if the error is a rejected query grammar,
        else None (e.g. the database was locked)
    """
    message = str(getattr(exc, "orig", exc))
    lowered = message.lower()
    if "fts5" in lowered or "syntax error" in lowered or "no such column" in lowered \
            or "unterminated string" in lowered:
        return message
    return None
