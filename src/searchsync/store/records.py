"""SQLite-backed system of record for syncable records."""

from __future__ import annotations

import sqlite3
import threading
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from searchsync.errors import AdapterUnavailable, DocumentError
from searchsync.store.schemas import SyncableRecord
from searchsync.sync.protocols import ORDER_BY_PRIMARY_KEY

if TYPE_CHECKING:
    from searchsync.sync.registry import SyncRegistry

logger = structlog.get_logger()

_ORDER_COLUMNS: dict[str, str] = {ORDER_BY_PRIMARY_KEY: "id"}


class RecordStore:
    """Record store keyed by (record_class, id) with JSON payloads.

    Record types come from the registry, so the store can hand back
    typed records for every registered class. Thread-safe via a lock;
    the connection is shared with worker threads.
    """

    def __init__(self, registry: SyncRegistry, path: str = ":memory:") -> None:
        """Initialize record store (call initialize() before use).

        Args:
            registry: Registry resolving class tags to record types.
            path: SQLite database path, ":memory:" for a private database.
        """
        self._registry = registry
        self._path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Open the database and create the records table."""
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    record_class TEXT NOT NULL,
                    id INTEGER NOT NULL,
                    payload TEXT NOT NULL,
                    PRIMARY KEY (record_class, id)
                )
                """)
            self._conn.commit()
        except sqlite3.Error as e:
            raise AdapterUnavailable("store", str(e)) from e
        logger.info("record_store_initialized", path=self._path)

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        """Run one statement in its own transaction and return all rows."""
        with self._lock:
            if self._conn is None:
                raise AdapterUnavailable("store", "record store is not initialized")
            try:
                with self._conn:
                    return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise AdapterUnavailable("store", str(e)) from e

    def _load(self, record_class: str, key: int, payload: str) -> SyncableRecord:
        model = self._registry.get(record_class).model
        record = model.model_validate_json(payload)
        record.id = key
        return record

    def create(self, record: SyncableRecord) -> SyncableRecord:
        """Insert a record and assign its primary key.

        Args:
            record: Record without an id.

        Returns:
            A copy of the record carrying its new id.
        """
        record_class = self._registry.get(record.record_class).record_class
        payload = record.model_dump_json(exclude={"id"})
        with self._lock:
            if self._conn is None:
                raise AdapterUnavailable("store", "record store is not initialized")
            try:
                with self._conn:
                    row = self._conn.execute(
                        "SELECT COALESCE(MAX(id), 0) + 1 FROM records WHERE record_class = ?",
                        (record_class,),
                    ).fetchone()
                    key = row[0]
                    self._conn.execute(
                        "INSERT INTO records (record_class, id, payload) VALUES (?, ?, ?)",
                        (record_class, key, payload),
                    )
            except sqlite3.Error as e:
                raise AdapterUnavailable("store", str(e)) from e

        logger.debug("record_created", record_class=record_class, key=key)
        return record.model_copy(update={"id": key})

    def update(self, record: SyncableRecord) -> bool:
        """Replace the payload of an existing record.

        Returns:
            True if the record existed.
        """
        rows = self._execute(
            "UPDATE records SET payload = ? WHERE record_class = ? AND id = ? RETURNING id",
            (record.model_dump_json(exclude={"id"}), record.record_class, record.id),
        )
        return bool(rows)

    def delete(self, record_class: str, key: int) -> bool:
        """Delete a record.

        Returns:
            True if the record existed.
        """
        rows = self._execute(
            "DELETE FROM records WHERE record_class = ? AND id = ? RETURNING id",
            (record_class, key),
        )
        return bool(rows)

    def get(self, record_class: str, key: int) -> SyncableRecord | None:
        """Fetch one record by key, or None if it does not exist.

        Raises:
            DocumentError: If the stored payload no longer validates.
        """
        rows = self._execute(
            "SELECT id, payload FROM records WHERE record_class = ? AND id = ?",
            (record_class, key),
        )
        if not rows:
            return None
        return self._load_row(record_class, rows[0])

    def count(self, record_class: str) -> int:
        """Number of records in a class."""
        rows = self._execute(
            "SELECT COUNT(*) FROM records WHERE record_class = ?", (record_class,)
        )
        return int(rows[0][0])

    def fetch_page(
        self,
        record_class: str,
        offset: int,
        limit: int,
        order_key: str = ORDER_BY_PRIMARY_KEY,
    ) -> list[SyncableRecord]:
        """Fetch one page of records ordered by ``order_key``.

        Raises:
            ValueError: If ``order_key`` is not a supported ordering.
            DocumentError: If a stored payload no longer validates.
        """
        column = _ORDER_COLUMNS.get(order_key)
        if column is None:
            raise ValueError(f"Unsupported order key: {order_key}")
        rows = self._execute(
            f"SELECT id, payload FROM records WHERE record_class = ? "
            f"ORDER BY {column} LIMIT ? OFFSET ?",
            (record_class, limit, offset),
        )
        return [self._load_row(record_class, row) for row in rows]

    def fetch_all(self, record_class: str) -> list[SyncableRecord]:
        """Fetch every record of a class in primary key order."""
        rows = self._execute(
            "SELECT id, payload FROM records WHERE record_class = ? ORDER BY id",
            (record_class,),
        )
        return [self._load_row(record_class, row) for row in rows]

    def fetch_keys(self, record_class: str) -> list[int]:
        """Fetch only the primary keys of a class."""
        rows = self._execute(
            "SELECT id FROM records WHERE record_class = ? ORDER BY id", (record_class,)
        )
        return [row[0] for row in rows]

    def primary_key(self, record: SyncableRecord) -> int | None:
        """Primary key of a record produced by this store."""
        return record.primary_key

    def _load_row(self, record_class: str, row: tuple[Any, ...]) -> SyncableRecord:
        key, payload = row
        try:
            return self._load(record_class, key, payload)
        except ValidationError as e:
            logger.warning("record_payload_invalid", record_class=record_class, key=key)
            raise DocumentError(record_class, key, f"stored payload is invalid: {e}") from e

    def ping(self) -> None:
        """Run a trivial query, raising AdapterUnavailable on failure."""
        self._execute("SELECT 1")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("record_store_closed")
