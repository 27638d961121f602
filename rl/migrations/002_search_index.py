"""Full-text search index over links (see rl.fts)."""
from sqlalchemy.engine import Connection

from rl.fts import SearchIndex


def up(conn: Connection) -> None:
    SearchIndex().rebuild(conn)
