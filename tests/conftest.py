import pytest
import json
import os
import sqlite3
import tempfile
import shutil

from rl.config import RlConfig


@pytest.fixture
def sample_export():
    """Sample JSON export data, in the wire format."""
    return [
        {
            "id": "9m1w2z3xk4p5q6r7s8t9u0v1wa",
            "url": "https://docs.python.org",
            "title": "Python Documentation",
            "note": "Official docs",
            "tags": "python,docs",
            "created_at": "2024-01-01T12:00:00Z",
            "read_at": "2024-01-02T10:30:00Z"
        },
        {
            "url": "https://github.com",
            "title": "GitHub",
            "tags": "git,development",
            "created_at": "2024-02-01 08:00:00"
        },
        {
            "url": "https://example.com/article",
            "created_at": "2024-03-01"
        }
    ]


@pytest.fixture
def temp_db():
    """Create a temporary database file path."""
    temp_dir = tempfile.mkdtemp(prefix="rl_test_db_")
    db_path = os.path.join(temp_dir, "links.db")
    yield db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def test_config():
    """Configuration with defaults only, isolated from the user's files."""
    return RlConfig(display_timezone="UTC")


@pytest.fixture
def store(temp_db, test_config):
    """An empty, migrated LinkStore on a temporary file."""
    from rl.db import LinkStore

    s = LinkStore(temp_db, config=test_config)
    yield s
    s.close()


@pytest.fixture
def populated_store(store):
    """A store with a handful of links in mixed read states."""
    store.add("https://docs.python.org", title="Python Documentation",
              note="Official Python docs", tags="python,docs")
    store.add("https://www.rust-lang.org", title="Rust Programming Language",
              tags="rust,programming")
    store.add("https://github.com", title="GitHub", tags="git,development")
    read, _ = store.add("https://stackoverflow.com", title="Stack Overflow",
                        tags="qa,programming")
    store.mark_read(read.id)
    return store


@pytest.fixture
def export_file_path(tmp_path, sample_export):
    """Write sample_export to a JSON file and return its path."""
    path = tmp_path / "export.json"
    path.write_text(json.dumps(sample_export), encoding="utf-8")
    return path


@pytest.fixture
def clean_rl_env(monkeypatch, tmp_path):
    """
    A clean rl environment without affecting real config.

    Removes RL_ environment variables, points HOME at a temp directory
    and resets the global configuration.
    """
    for key in list(os.environ.keys()):
        if key.startswith("RL_"):
            monkeypatch.delenv(key, raising=False)

    mock_home = tmp_path / "home"
    mock_home.mkdir()
    monkeypatch.setenv("HOME", str(mock_home))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("rl.config._config", None)

    return tmp_path


@pytest.fixture
def raw_db():
    """
    Open a raw sqlite3 connection to a store file for inspecting storage.

    Usage:
        def test_something(raw_db, temp_db):
            conn = raw_db(temp_db)
            conn.execute("SELECT ...")
    """
    opened = []

    def _open(path):
        conn = sqlite3.connect(path)
        opened.append(conn)
        return conn

    yield _open

    for conn in opened:
        conn.close()


# ============ Legacy stores ============

def build_legacy_store(path, with_ledger=True):
    """
    Create a store as an earlier version of the tool left it.

    INTEGER ids, timestamps from SQLite's datetime('now'), a
    rowid-keyed external-content links_fts kept fresh by triggers, and a
    ledger recording versions 1 and 2.
    """
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE links (
            id INTEGER PRIMARY KEY,
            url TEXT NOT NULL UNIQUE,
            title TEXT,
            note TEXT,
            tags TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            read_at TEXT
        );
        CREATE VIRTUAL TABLE links_fts USING fts5(
            url, title, note, tags, content='links', content_rowid='rowid'
        );
        CREATE TRIGGER links_ai AFTER INSERT ON links BEGIN
            INSERT INTO links_fts(links_fts) VALUES('rebuild');
        END;
        CREATE TRIGGER links_ad AFTER DELETE ON links BEGIN
            INSERT INTO links_fts(links_fts) VALUES('rebuild');
        END;
        CREATE TRIGGER links_au AFTER UPDATE ON links BEGIN
            INSERT INTO links_fts(links_fts) VALUES('rebuild');
        END;
    """)
    conn.execute(
        "INSERT INTO links (url, title, note, tags, created_at, read_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("https://old.example/one", "Old One", "kept note", "legacy,Archive",
         "2023-05-01 09:15:00", None),
    )
    conn.execute(
        "INSERT INTO links (url, title, note, tags, created_at, read_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("https://old.example/two", "Old Two", None, None,
         "2023-06-01", "2023-06-02 18:00:00"),
    )
    conn.execute(
        "INSERT INTO links (url, title, note, tags, created_at, read_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("https://old.example/three", "Old Three", None, "legacy",
         "2023-07-01T07:00:00-05:00", ""),
    )
    if with_ledger:
        conn.executescript("""
            CREATE TABLE schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            INSERT INTO schema_migrations (version) VALUES (1);
            INSERT INTO schema_migrations (version) VALUES (2);
        """)
    conn.commit()
    conn.close()


@pytest.fixture
def legacy_db(temp_db):
    """Path to a store file created by the earlier integer-id scheme."""
    build_legacy_store(temp_db)
    return temp_db
