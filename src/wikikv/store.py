"""
Key-value store for parsed pages.

Entries are opaque byte keys and values kept in a single SQLite table.
Each batch is written in one transaction, so a batch lands completely or
not at all. Later writes to the same key replace earlier ones.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any, Protocol

from wikikv.errors import PersistenceWriteError
from wikikv.models import ParsedResult, RedirectRecord

logger = logging.getLogger("wikikv.store")

STORE_FILE_NAME = "entries.sqlite3"

SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    key BLOB PRIMARY KEY,
    value BLOB NOT NULL
) WITHOUT ROWID
"""

Entry = tuple[bytes, bytes]


def encode_entry(record: ParsedResult | RedirectRecord) -> Entry:
    """Serialize a record as (utf-8 key, utf-8 JSON value)."""
    value = json.dumps(record.to_value(), ensure_ascii=False, separators=(",", ":"))
    return record.key.encode("utf-8"), value.encode("utf-8")


def decode_value(value: bytes) -> dict[str, Any]:
    return json.loads(value.decode("utf-8"))


class KeyValueStore(Protocol):
    def write_batch(self, entries: Sequence[Entry]) -> None: ...

    def close(self) -> None: ...


class SqliteKeyValueStore:
    """SQLite-backed store living in a directory that is created on demand."""

    def __init__(self, location: str | Path) -> None:
        """
        Open (or create) the store under location.

        Raises:
            PersistenceWriteError: If the directory or database cannot be created.
        """
        self.location = Path(location)
        self.db_path = self.location / STORE_FILE_NAME
        try:
            self.location.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(self.db_path))
        except (OSError, sqlite3.Error) as e:
            raise PersistenceWriteError(f"Cannot open store at {self.location}: {e}") from e
        try:
            self._connection.execute("PRAGMA journal_mode=WAL")
            self._connection.execute("PRAGMA synchronous=NORMAL")
            self._connection.execute(SCHEMA)
            self._connection.commit()
        except sqlite3.Error as e:
            self._connection.close()
            raise PersistenceWriteError(f"Cannot initialize store {self.db_path}: {e}") from e

    def write_batch(self, entries: Sequence[Entry]) -> None:
        """
        Write all entries in one transaction.

        Raises:
            PersistenceWriteError: If SQLite rejects the batch.
        """
        try:
            with self._connection:
                self._connection.executemany(
                    """
                    INSERT INTO entries(key, value) VALUES(?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value
                    """,
                    entries,
                )
        except sqlite3.Error as e:
            raise PersistenceWriteError(
                f"Batch of {len(entries)} entries failed in {self.db_path}: {e}"
            ) from e

    def get(self, key: bytes) -> bytes | None:
        row = self._connection.execute(
            "SELECT value FROM entries WHERE key = ?", (key,)
        ).fetchone()
        return None if row is None else bytes(row[0])

    def items(self) -> Iterator[Entry]:
        for key, value in self._connection.execute(
            "SELECT key, value FROM entries ORDER BY key"
        ):
            yield bytes(key), bytes(value)

    def __len__(self) -> int:
        return self._connection.execute("SELECT COUNT(*) FROM entries").fetchone()[0]

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "SqliteKeyValueStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
