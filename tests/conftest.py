"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from searchsync.app import create_app
from searchsync.config import Settings
from searchsync.errors import DocumentError
from searchsync.services import SyncServices
from searchsync.store.schemas import Document, document_type
from searchsync.sync.engine import SyncEngine
from searchsync.sync.protocols import ORDER_BY_PRIMARY_KEY
from searchsync.sync.registry import SyncRegistry

Article = document_type("Article")


class FakeIndex:
    """In-memory index client with commit-gated visibility and call log."""

    def __init__(self) -> None:
        self.committed: dict[tuple[str, Any], Any] = {}
        self.pending: list[tuple[str, Any]] = []
        self.calls: list[str] = []
        self.batch_sizes: list[int] = []
        self.commits = 0
        self.fail_on: dict[str, Exception] = {}

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def index_one(self, record: Any) -> None:
        self._call("index_one")
        self._stage([record])

    def index_many(self, records: Sequence[Any]) -> None:
        self._call("index_many")
        self.batch_sizes.append(len(records))
        self._stage(records)

    def _stage(self, records: Sequence[Any]) -> None:
        for record in records:
            if record.primary_key is None:
                raise DocumentError(record.record_class, None, "record has no primary key")
        self.pending.extend(("upsert", record) for record in records)

    def remove_one(self, record_class: str, key: Any) -> None:
        self._call("remove_one")
        self.pending.append(("delete", (record_class, key)))

    def remove_all(self, record_class: str) -> None:
        self._call("remove_all")
        self.pending.append(("delete_class", record_class))

    def commit(self) -> int:
        self._call("commit")
        for op, arg in self.pending:
            if op == "upsert":
                self.committed[(arg.record_class, arg.primary_key)] = arg
            elif op == "delete":
                self.committed.pop(arg, None)
            else:
                for identity in [i for i in self.committed if i[0] == arg]:
                    del self.committed[identity]
        applied = len(self.pending)
        self.pending = []
        self.commits += 1
        return applied

    def query_keys(self, record_class: str, criteria: str | None = None) -> list[Any]:
        self._call("query_keys")
        return sorted(key for rc, key in self.committed if rc == record_class)

    def keys(self, record_class: str) -> list[Any]:
        """Committed keys of a class, without logging a call."""
        return sorted(key for rc, key in self.committed if rc == record_class)


class FakeSource:
    """In-memory record source with call log and failure injection."""

    def __init__(self) -> None:
        self.records: dict[str, dict[Any, Any]] = {}
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def add(self, record: Any) -> Any:
        self.records.setdefault(record.record_class, {})[record.primary_key] = record
        return record

    def delete(self, record_class: str, key: Any) -> None:
        del self.records[record_class][key]

    def count(self, record_class: str) -> int:
        self._call("count")
        return len(self.records.get(record_class, {}))

    def fetch_page(
        self,
        record_class: str,
        offset: int,
        limit: int,
        order_key: str = ORDER_BY_PRIMARY_KEY,
    ) -> list[Any]:
        self._call("fetch_page")
        assert order_key == ORDER_BY_PRIMARY_KEY
        by_key = self.records.get(record_class, {})
        return [by_key[k] for k in sorted(by_key)[offset : offset + limit]]

    def fetch_all(self, record_class: str) -> list[Any]:
        self._call("fetch_all")
        by_key = self.records.get(record_class, {})
        return [by_key[k] for k in sorted(by_key)]

    def fetch_keys(self, record_class: str) -> list[Any]:
        self._call("fetch_keys")
        return sorted(self.records.get(record_class, {}))

    def primary_key(self, record: Any) -> Any:
        return record.primary_key


def make_article(key: int, title: str | None = None, body: str = "") -> Document:
    """Build an Article record with a fixed key."""
    return Article(id=key, title=title or f"Article {key}", body=body)


@pytest.fixture
def registry() -> SyncRegistry:
    """Registry with the Article class registered."""
    registry = SyncRegistry()
    registry.register(Article)
    return registry


@pytest.fixture
def fake_index() -> FakeIndex:
    """Empty in-memory index client."""
    return FakeIndex()


@pytest.fixture
def fake_source() -> FakeSource:
    """Empty in-memory record source."""
    return FakeSource()


@pytest.fixture
def engine(fake_index: FakeIndex, fake_source: FakeSource, registry: SyncRegistry) -> SyncEngine:
    """Engine wired to the fake adapters."""
    return SyncEngine(fake_index, fake_source, registry)


@pytest.fixture
def settings() -> Settings:
    """Create test settings with private in-memory databases."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        store_path=":memory:",
        index_path=":memory:",
        record_classes_raw="Article,Post",
        commit_interval=0.05,
    )


@pytest.fixture
def services(settings: Settings) -> Iterator[SyncServices]:
    """Real SQLite store and FTS5 index, opened and closed per test."""
    services = SyncServices(settings)
    services.open()
    yield services
    services.close(commit=False)


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with the application lifespan running."""
    app = create_app(settings)
    with TestClient(app) as client:
        yield client
