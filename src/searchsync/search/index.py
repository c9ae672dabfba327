"""FTS5-backed search index with commit-gated visibility."""

import re
import sqlite3
import threading
from collections.abc import Sequence
from typing import Any

import structlog

from searchsync.errors import AdapterUnavailable, DocumentError
from searchsync.search.schemas import SearchDocument
from searchsync.sync.protocols import RecordKey, Syncable

logger = structlog.get_logger()

_MARKDOWN_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^```.*?```$", re.MULTILINE | re.DOTALL), ""),
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),
    (re.compile(r"!?\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"^>\s?", re.MULTILINE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]

# FTS5 query syntax characters, replaced by spaces before MATCH
_FTS5_SPECIAL = re.compile(r"[\"*(){}[\]^~:\-+]")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY,
    record_class TEXT NOT NULL,
    record_key NOT NULL,
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    UNIQUE (record_class, record_key)
);
CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
    title,
    body,
    content='documents',
    content_rowid='id',
    tokenize='porter unicode61'
);
CREATE TRIGGER IF NOT EXISTS documents_ai AFTER INSERT ON documents BEGIN
    INSERT INTO documents_fts (rowid, title, body) VALUES (new.id, new.title, new.body);
END;
CREATE TRIGGER IF NOT EXISTS documents_ad AFTER DELETE ON documents BEGIN
    INSERT INTO documents_fts (documents_fts, rowid, title, body)
    VALUES ('delete', old.id, old.title, old.body);
END;
CREATE TRIGGER IF NOT EXISTS documents_au AFTER UPDATE ON documents BEGIN
    INSERT INTO documents_fts (documents_fts, rowid, title, body)
    VALUES ('delete', old.id, old.title, old.body);
    INSERT INTO documents_fts (rowid, title, body) VALUES (new.id, new.title, new.body);
END;
CREATE TABLE IF NOT EXISTS pending_ops (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    op TEXT NOT NULL,
    record_class TEXT NOT NULL,
    record_key,
    title TEXT,
    body TEXT
);
"""

_UPSERT = "upsert"
_DELETE = "delete"
_DELETE_CLASS = "delete_class"


def _strip_markdown(text: str) -> str:
    """Remove markdown formatting for cleaner indexing."""
    result = text
    for pattern, replacement in _MARKDOWN_PATTERNS:
        result = pattern.sub(replacement, result)
    return result.strip()


def _sanitize_query(raw: str) -> str | None:
    """Turn user input into a safe FTS5 prefix query.

    Args:
        raw: Raw user query string.

    Returns:
        FTS5 query string, or None if nothing searchable remains.
    """
    query = _FTS5_SPECIAL.sub(" ", raw)
    tokens = query.split()
    if not tokens:
        return None
    return " ".join(f'"{t}"*' for t in tokens)


def _to_document(record: Syncable) -> SearchDocument:
    """Extract the indexed fields from a record.

    Raises:
        DocumentError: If the record has no key or its fields are unusable.
    """
    record_class = record.record_class
    key = record.primary_key
    if key is None:
        raise DocumentError(record_class, key, "record has no primary key")
    try:
        fields = record.search_fields()
        return SearchDocument(
            record_class=record_class,
            key=key,
            title=fields["title"],
            body=_strip_markdown(fields.get("body", "")),
        )
    except Exception as e:
        raise DocumentError(record_class, key, str(e)) from e


class SearchIndex:
    """SQLite FTS5 index that stages writes until commit.

    Documents live in a plain table unique on (record_class, key); an
    external-content FTS5 table mirrors it through triggers. Upserts and
    removals are appended to a ``pending_ops`` table and replayed in a
    single transaction by commit(), so queries only ever see committed
    documents and staged work is held by SQLite, not by the process.
    Thread-safe via a lock around the connection.
    """

    def __init__(self, path: str = ":memory:") -> None:
        """Initialize search index (call initialize() before use).

        Args:
            path: SQLite database path, ":memory:" for a private index.
        """
        self._path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._pending_count = 0

    def initialize(self) -> None:
        """Open the database and create tables, dropping stale staged operations.

        Operations staged by a process that exited without committing were
        never visible and are discarded.
        """
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.executescript(_SCHEMA)
            stale = self._conn.execute("SELECT COUNT(*) FROM pending_ops").fetchone()[0]
            if stale:
                logger.warning("search_index_stale_operations_dropped", operations=stale)
                with self._conn:
                    self._conn.execute("DELETE FROM pending_ops")
        except sqlite3.Error as e:
            raise AdapterUnavailable("index", str(e)) from e
        self._pending_count = 0
        logger.info("search_index_initialized", path=self._path)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise AdapterUnavailable("index", "search index is not initialized")
        return self._conn

    @property
    def pending_count(self) -> int:
        """Number of staged operations waiting for commit."""
        with self._lock:
            return self._pending_count

    def _stage(self, rows: list[tuple[str, str, Any, str | None, str | None]]) -> None:
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.executemany(
                        "INSERT INTO pending_ops (op, record_class, record_key, title, body) "
                        "VALUES (?, ?, ?, ?, ?)",
                        rows,
                    )
            except sqlite3.Error as e:
                raise AdapterUnavailable("index", str(e)) from e
            self._pending_count += len(rows)

    def index_one(self, record: Syncable) -> None:
        """Stage an upsert of a single record."""
        self.index_many([record])

    def index_many(self, records: Sequence[Syncable]) -> None:
        """Stage upserts for several records.

        Documents are built before anything is staged, so a record that
        fails extraction leaves the queue untouched.

        Raises:
            DocumentError: If any record cannot be turned into a document.
        """
        documents = [_to_document(record) for record in records]
        self._stage(
            [(_UPSERT, doc.record_class, doc.key, doc.title, doc.body) for doc in documents]
        )

    def remove_one(self, record_class: str, key: RecordKey) -> None:
        """Stage removal of one document."""
        self._stage([(_DELETE, record_class, key, None, None)])

    def remove_all(self, record_class: str) -> None:
        """Stage removal of every document of a class."""
        self._stage([(_DELETE_CLASS, record_class, None, None, None)])

    def commit(self) -> int:
        """Replay all staged operations, in order, in one transaction.

        Each operation is a lookup on the (record_class, key) index, so a
        commit costs O(n log n) in the number of staged operations.

        Returns:
            Number of operations applied.

        Raises:
            AdapterUnavailable: If the transaction fails; staged
                operations are kept for the next commit.
        """
        with self._lock:
            conn = self._require_conn()
            applied = 0
            try:
                with conn:
                    staged = conn.execute(
                        "SELECT op, record_class, record_key, title, body "
                        "FROM pending_ops ORDER BY seq"
                    )
                    for op, record_class, key, title, body in staged:
                        self._apply(conn, op, record_class, key, title, body)
                        applied += 1
                    conn.execute("DELETE FROM pending_ops")
            except sqlite3.Error as e:
                raise AdapterUnavailable("index", str(e)) from e
            self._pending_count = 0

        logger.debug("search_index_committed", operations=applied)
        return applied

    @staticmethod
    def _apply(
        conn: sqlite3.Connection,
        op: str,
        record_class: str,
        key: Any,
        title: str | None,
        body: str | None,
    ) -> None:
        if op == _UPSERT:
            conn.execute(
                "INSERT INTO documents (record_class, record_key, title, body) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT (record_class, record_key) "
                "DO UPDATE SET title = excluded.title, body = excluded.body",
                (record_class, key, title, body),
            )
        elif op == _DELETE:
            conn.execute(
                "DELETE FROM documents WHERE record_class = ? AND record_key = ?",
                (record_class, key),
            )
        elif op == _DELETE_CLASS:
            conn.execute("DELETE FROM documents WHERE record_class = ?", (record_class,))

    def _query(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        with self._lock:
            conn = self._require_conn()
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise AdapterUnavailable("index", str(e)) from e

    def query_all(self, record_class: str) -> list[SearchDocument]:
        """Return every committed document of a class."""
        rows = self._query(
            "SELECT record_class, record_key, title, body FROM documents "
            "WHERE record_class = ? ORDER BY record_key",
            (record_class,),
        )
        return [
            SearchDocument(record_class=rc, key=key, title=title, body=body)
            for rc, key, title, body in rows
        ]

    def query_keys(self, record_class: str, criteria: str | None = None) -> list[RecordKey]:
        """Return keys of committed documents matching a keyword query.

        Args:
            record_class: Class to scope the query to.
            criteria: Keyword query, or None to match every document.

        Returns:
            Matching keys; match-all results are in key order.
        """
        if criteria is None:
            rows = self._query(
                "SELECT record_key FROM documents WHERE record_class = ? ORDER BY record_key",
                (record_class,),
            )
            return [row[0] for row in rows]

        sanitized = _sanitize_query(criteria)
        if sanitized is None:
            return []
        rows = self._query(
            "SELECT d.record_key FROM ("
            "  SELECT rowid, rank FROM documents_fts WHERE documents_fts MATCH ?"
            ") AS hits JOIN documents AS d ON d.id = hits.rowid "
            "WHERE d.record_class = ? ORDER BY hits.rank",
            (sanitized, record_class),
        )
        return [row[0] for row in rows]

    def lookup(self, record_class: str, key: RecordKey) -> list[SearchDocument]:
        """Return committed documents with the given identity (zero or one)."""
        rows = self._query(
            "SELECT record_class, record_key, title, body FROM documents "
            "WHERE record_class = ? AND record_key = ?",
            (record_class, key),
        )
        return [
            SearchDocument(record_class=rc, key=k, title=title, body=body)
            for rc, k, title, body in rows
        ]

    def document_count(self, record_class: str | None = None) -> int:
        """Number of committed documents, optionally for one class."""
        if record_class is None:
            rows = self._query("SELECT COUNT(*) FROM documents", ())
        else:
            rows = self._query(
                "SELECT COUNT(*) FROM documents WHERE record_class = ?",
                (record_class,),
            )
        return int(rows[0][0])

    def close(self) -> None:
        """Close the database connection, dropping uncommitted operations."""
        with self._lock:
            if self._conn:
                if self._pending_count:
                    logger.warning("search_index_uncommitted", operations=self._pending_count)
                    try:
                        with self._conn:
                            self._conn.execute("DELETE FROM pending_ops")
                    except sqlite3.Error as e:
                        logger.warning("search_index_discard_failed", error=str(e))
                self._pending_count = 0
                self._conn.close()
                self._conn = None
                logger.info("search_index_closed")
