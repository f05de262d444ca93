"""Forward-only schema migrations for the board database (WI_0013).

v1  documents keyed by path, JSON body
v2  collection column so child documents (activities, notifications) can be
    listed without scanning every path
"""

from __future__ import annotations

import sqlite3

_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    path        TEXT PRIMARY KEY,
    body        TEXT NOT NULL DEFAULT '{}',
    updated_at  DATETIME NOT NULL DEFAULT (datetime('now'))
);
"""

# collection is the path up to and including its last '/', e.g.
# 'images/a1/activities/' for 'images/a1/activities/x9'.
_V2_SQL = """
ALTER TABLE documents ADD COLUMN collection TEXT NOT NULL DEFAULT '';
UPDATE documents SET collection = rtrim(path, replace(path, '/', ''));
CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection);
"""

# Append-only: never edit a shipped entry, add a new version instead.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def collection_of(path: str) -> str:
    """Collection prefix stored alongside *path* (matches the v2 backfill)."""
    head, sep, _ = path.rpartition("/")
    return head + sep


def current_version(conn: sqlite3.Connection) -> int:
    conn.execute(_CREATE_SCHEMA_VERSION)
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> int:
    """Apply pending migrations in version order and return the resulting version.

    Safe to call on a database at any version.
    """
    current = current_version(conn)
    conn.commit()

    for version, sql in MIGRATIONS:
        if version <= current:
            continue
        # executescript() commits any open transaction before it runs.
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        conn.commit()
        current = version
    return current
