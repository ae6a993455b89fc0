from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import StorageError
from .storage_schema import initialize_sqlite


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dumps(value: Any) -> str:
    # allow_nan=False keeps stored payloads strictly JSON.
    return json.dumps(
        value,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        allow_nan=False,
    )


@dataclass(frozen=True)
class FileImportRecord:
    batch_id: str
    file_name: str
    record_type: str | None
    status: str
    reason_code: str | None
    message: str | None
    rows: int | None
    imported_at: str


class SQLiteKeyValueStore:
    """
    Key-value persistence for datasets, plus a small import history.

    Values must be JSON-serializable primitives.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteKeyValueStore":
        """Open (creating if needed) a database file, or ":memory:"."""
        target = str(path)
        if target != ":memory:":
            Path(target).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(target)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open state database {target}: {e}") from e

        try:
            initialize_sqlite(conn)
        except (sqlite3.Error, RuntimeError) as e:
            conn.close()
            raise StorageError(f"Cannot migrate state database {target}: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteKeyValueStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def get(self, key: str, default: Any = None) -> Any:
        row = self._conn.execute(
            "SELECT value_json FROM kv_entries WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return default

        try:
            return json.loads(row["value_json"])
        except ValueError as e:
            raise StorageError(f"Stored value for {key!r} is not valid JSON: {e}") from e

    def set(self, key: str, value: Any) -> None:
        k = (key or "").strip()
        if not k:
            raise ValueError("key must be non-empty")

        try:
            payload = _json_dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {k!r} is not JSON-serializable: {e}") from e

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv_entries(key, value_json, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                      value_json = excluded.value_json,
                      updated_at = excluded.updated_at
                    """.strip(),
                    (k, payload, _utc_now_iso()),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to write key {k!r}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to remove key {key!r}: {e}") from e

    def keys(self) -> list[str]:
        rows = self._conn.execute("SELECT key FROM kv_entries ORDER BY key ASC").fetchall()
        return [str(r["key"]) for r in rows]

    def record_file_import(
        self,
        *,
        batch_id: str,
        file_name: str,
        status: str,
        record_type: str | None = None,
        reason_code: str | None = None,
        message: str | None = None,
        rows: int | None = None,
        imported_at: str | None = None,
    ) -> None:
        bid = (batch_id or "").strip()
        if not bid:
            raise ValueError("batch_id must be non-empty")

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO file_imports(
                      batch_id, file_name, record_type, status, reason_code, message, rows, imported_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """.strip(),
                    (
                        bid,
                        file_name,
                        record_type,
                        status,
                        reason_code,
                        message,
                        rows,
                        (imported_at or _utc_now_iso()).strip(),
                    ),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to record import of {file_name!r}: {e}") from e

    def file_imports(self, *, batch_id: str | None = None) -> list[FileImportRecord]:
        sql = """
        SELECT batch_id, file_name, record_type, status, reason_code, message, rows, imported_at
        FROM file_imports
        """.strip()
        params: tuple[Any, ...] = ()
        if batch_id is not None:
            sql += " WHERE batch_id = ?"
            params = (batch_id,)
        sql += " ORDER BY id ASC"

        rows = self._conn.execute(sql, params).fetchall()
        return [
            FileImportRecord(
                batch_id=str(r["batch_id"]),
                file_name=str(r["file_name"]),
                record_type=r["record_type"],
                status=str(r["status"]),
                reason_code=r["reason_code"],
                message=r["message"],
                rows=int(r["rows"]) if r["rows"] is not None else None,
                imported_at=str(r["imported_at"]),
            )
            for r in rows
        ]
