"""
rl - read it later

Save links now, read them later. A small local link store built on
SQLAlchemy and SQLite.

Design Principles:
- Single database file, schema evolved by numbered migrations
- One link per URL: adding a known URL merges into it
- Full-text search kept in step with every write

Example Usage:
    >>> from rl import LinkStore
    >>> store = LinkStore("links.db")
    >>> link, created = store.add("https://example.com", title="Example", tags="demo")
    >>> store.mark_read(link.id)
    >>> store.search("example")
"""

__version__ = "0.4.0"

# Core store API
from rl.db import LinkStore, ReadStatus, ImportReport, get_store

# Configuration
from rl.config import RlConfig, get_config, init_config

# Models
from rl.models import Link, LinkRecord

# Errors
from rl.errors import (
    RlError,
    NotFoundError,
    InvalidInputError,
    InvalidURLError,
    InvalidIDError,
    StorageError,
    MigrationError,
    SearchError,
    ImportAbortedError,
)

# Identifiers
from rl.ids import new_id, is_valid_id

__all__ = [
    # Store
    "LinkStore",
    "ReadStatus",
    "ImportReport",
    "get_store",
    # Config
    "RlConfig",
    "get_config",
    "init_config",
    # Models
    "Link",
    "LinkRecord",
    # Errors
    "RlError",
    "NotFoundError",
    "InvalidInputError",
    "InvalidURLError",
    "InvalidIDError",
    "StorageError",
    "MigrationError",
    "SearchError",
    "ImportAbortedError",
    # Identifiers
    "new_id",
    "is_valid_id",
]
