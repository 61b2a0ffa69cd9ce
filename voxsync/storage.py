"""SQLite backed ledger of uploads voxsync has already written and acknowledged."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from .models import LedgerEntry, Upload

APP_DIR = Path.home() / ".voxsync"
DB_PATH = APP_DIR / "ledger.db"
SCHEMA_VERSION = 1


class StorageError(RuntimeError):
    """Raised when something goes wrong while accessing the ledger."""


class Ledger:
    """Remember which uploads have been materialized and acknowledged.

    The service is expected to drop acknowledged uploads from later listings,
    but nothing on the client enforces that. The ledger lets the sync engine
    recognise an upload it has already written and only acknowledge it again.
    """

    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = db_path
        self._ensure_initialised()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open ledger at {self.db_path}: {exc}") from exc

    def _ensure_initialised(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS uploads (
                    upload_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    materialized_at TEXT NOT NULL,
                    acknowledged_at TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            cur = conn.execute("SELECT value FROM metadata WHERE key = ?", ("schema_version",))
            row = cur.fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO metadata(key, value) VALUES(?, ?)",
                    ("schema_version", str(SCHEMA_VERSION)),
                )

    def mark_materialized(self, upload: Upload) -> None:
        now = datetime.utcnow().isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO uploads(upload_id, title, materialized_at)
                VALUES(?, ?, ?)
                ON CONFLICT(upload_id) DO NOTHING
                """,
                (upload.id, upload.title, now),
            )

    def mark_acknowledged(self, upload_id: str) -> None:
        now = datetime.utcnow().isoformat()
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE uploads SET acknowledged_at = ? WHERE upload_id = ?",
                (now, upload_id),
            )
            if cur.rowcount == 0:
                raise StorageError(f"Upload {upload_id} was never materialized")

    def is_materialized(self, upload_id: str) -> bool:
        return self._get(upload_id) is not None

    def is_acknowledged(self, upload_id: str) -> bool:
        entry = self._get(upload_id)
        return entry is not None and entry.acknowledged_at is not None

    def get_entry(self, upload_id: str) -> LedgerEntry:
        entry = self._get(upload_id)
        if entry is None:
            raise StorageError(f"Upload {upload_id} not found in ledger")
        return entry

    def list_entries(self) -> Iterator[LedgerEntry]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            for row in conn.execute("SELECT * FROM uploads ORDER BY materialized_at DESC"):
                yield _row_to_entry(row)

    def _get(self, upload_id: str) -> Optional[LedgerEntry]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.execute("SELECT * FROM uploads WHERE upload_id = ?", (upload_id,))
            row = cur.fetchone()
            return _row_to_entry(row) if row is not None else None


def _row_to_entry(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        upload_id=row["upload_id"],
        title=row["title"],
        materialized_at=datetime.fromisoformat(row["materialized_at"]),
        acknowledged_at=datetime.fromisoformat(row["acknowledged_at"]) if row["acknowledged_at"] else None,
    )
