"""
Rewrite stored timestamps into canonical UTC form.

Older stores wrote created_at/read_at as "YYYY-MM-DD HH:MM:SS" (SQLite's
datetime('now')) or bare dates, which do not sort correctly against
"YYYY-MM-DDTHH:MM:SSZ". Empty read_at values become NULL (unread);
unparseable values are stamped with the migration time.
"""
import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection

from rl import timeutil

logger = logging.getLogger(__name__)


def _canonical(value, fallback: str):
    try:
        parsed = timeutil.parse_timestamp(value)
    except ValueError:
        logger.warning(f"Replacing unparseable timestamp {value!r} with {fallback}")
        return fallback
    return timeutil.format_timestamp(parsed)


def up(conn: Connection) -> None:
    stamp = timeutil.format_timestamp(timeutil.now())

    for column in ("created_at", "read_at"):
        rows = conn.execute(text(
            f"SELECT id, {column} FROM links WHERE {column} IS NOT NULL"
        )).fetchall()
        for link_id, value in rows:
            canonical = _canonical(value, stamp)
            if column == "created_at" and canonical is None:
                canonical = stamp
            if canonical != value:
                conn.execute(text(
                    f"UPDATE links SET {column} = :value WHERE id = :id"
                ), {"value": canonical, "id": link_id})
