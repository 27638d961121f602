"""
Convert INTEGER link ids to short text ids.

SQLite cannot change a primary key's type in place, so the table is
rebuilt: create links_new, copy every row (assigning a short ID to each
integer id, keeping text ids as they are), drop links, rename. Text-id
stores are left untouched.
"""
import importlib

from sqlalchemy import text
from sqlalchemy.engine import Connection

from rl import timeutil
from rl.fts import SearchIndex
from rl.ids import new_id


def _needs_rebuild(conn: Connection) -> bool:
    columns = conn.execute(text("PRAGMA table_info(links)")).fetchall()
    id_type = next((col[2] for col in columns if col[1] == "id"), "")
    if id_type.upper() != "TEXT":
        return True
    row = conn.execute(text("SELECT 1 FROM links WHERE typeof(id) = 'integer' LIMIT 1")).first()
    return row is not None


def up(conn: Connection) -> None:
    if not _needs_rebuild(conn):
        return

    conn.execute(text("DROP TABLE IF EXISTS links_new"))
    conn.execute(text("""
        CREATE TABLE links_new (
            id          TEXT PRIMARY KEY,
            url         TEXT NOT NULL UNIQUE,
            title       TEXT,
            note        TEXT,
            tags        TEXT,
            created_at  TEXT NOT NULL,
            read_at     TEXT
        )
    """))

    rows = conn.execute(text("""
        SELECT id, typeof(id) AS id_type, url, title, note, tags, created_at, read_at
        FROM links
    """)).mappings().all()

    fallback_created = timeutil.format_timestamp(timeutil.now())
    for row in rows:
        link_id = new_id() if row["id_type"] == "integer" else str(row["id"])
        conn.execute(text("""
            INSERT INTO links_new (id, url, title, note, tags, created_at, read_at)
            VALUES (:id, :url, :title, :note, :tags, :created_at, :read_at)
        """), {
            "id": link_id,
            "url": row["url"],
            "title": row["title"],
            "note": row["note"],
            "tags": row["tags"],
            "created_at": row["created_at"] or fallback_created,
            "read_at": row["read_at"],
        })

    conn.execute(text("DROP TABLE links"))
    conn.execute(text("ALTER TABLE links_new RENAME TO links"))

    initial = importlib.import_module("rl.migrations.001_initial")
    initial.create_indexes(conn)

    # Postings are keyed by id, and every integer id just changed
    SearchIndex().rebuild(conn)
