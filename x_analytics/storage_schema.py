from __future__ import annotations

import sqlite3

# Applied in order; the database's PRAGMA user_version counts applied entries.
_MIGRATIONS: tuple[str, ...] = (
    """
CREATE TABLE IF NOT EXISTS kv_entries (
  key TEXT PRIMARY KEY,
  value_json TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS file_imports (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  batch_id TEXT NOT NULL,
  file_name TEXT NOT NULL,
  record_type TEXT,
  status TEXT NOT NULL,
  reason_code TEXT,
  message TEXT,
  rows INTEGER,
  imported_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_file_imports_batch_id ON file_imports(batch_id);
""",
)

SCHEMA_VERSION = len(_MIGRATIONS)


def schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row is not None else 0


def initialize_sqlite(conn: sqlite3.Connection) -> None:
    """
    Bring a connection's schema up to SCHEMA_VERSION.

    Safe to call on every open. Each migration and its version bump run in one
    transaction.
    """
    conn.execute("PRAGMA busy_timeout = 5000")
    conn.execute("PRAGMA foreign_keys = ON")

    current = schema_version(conn)
    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported version {SCHEMA_VERSION}"
        )

    for version, script in enumerate(_MIGRATIONS[current:], start=current + 1):
        conn.executescript(f"BEGIN;\n{script.strip()}\nPRAGMA user_version = {version};\nCOMMIT;")
