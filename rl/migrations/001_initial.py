"""
Initial schema: the links table and its list indexes.

Idempotent, so it is a no-op against stores created before the ledger
existed (including ones still using INTEGER ids; 003 converts those).
"""
from sqlalchemy import text
from sqlalchemy.engine import Connection


def create_indexes(conn: Connection) -> None:
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_links_read_at ON links(read_at)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_links_created_at ON links(created_at)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_links_tags ON links(tags)"))


def up(conn: Connection) -> None:
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS links (
            id          TEXT PRIMARY KEY,
            url         TEXT NOT NULL UNIQUE,
            title       TEXT,
            note        TEXT,
            tags        TEXT,
            created_at  TEXT NOT NULL,
            read_at     TEXT
        )
    """))
    create_indexes(conn)
