"""
Re-key the search index by link id.

Stores whose version 2 was applied by the earlier scheme carry a
contentless links_fts keyed by rowid and kept fresh by triggers on links.
Drop those triggers and rebuild the index keyed by id, maintained by the
store itself. On stores already keyed by id this just repopulates.
"""
from sqlalchemy.engine import Connection

from rl.fts import SearchIndex


def up(conn: Connection) -> None:
    SearchIndex().rebuild(conn)
