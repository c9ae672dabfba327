"""Adapter contracts between the sync engine and its collaborators."""

from collections.abc import Hashable, Sequence
from typing import ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

RecordKey = Hashable

# Only ordering the engine ever asks for; stable under concurrent inserts.
ORDER_BY_PRIMARY_KEY = "primary_key"


@runtime_checkable
class Syncable(Protocol):
    """A record type that can be mirrored into the search index.

    Implementations declare their class tag once, expose the primary key
    used for document identity and return the text fields to index.
    """

    record_class: ClassVar[str]

    @property
    def primary_key(self) -> RecordKey | None: ...

    def search_fields(self) -> dict[str, str]: ...


class RecordIdentity(Protocol):
    """Anything that identifies an index entry: a record or a reference."""

    @property
    def record_class(self) -> str: ...

    @property
    def primary_key(self) -> RecordKey | None: ...


class RecordRef(BaseModel):
    """Placeholder carrying only the identity of a record.

    Used to remove index entries whose record no longer exists.

    Attributes:
        record_class: Class tag of the referenced record.
        key: Primary key of the referenced record.
    """

    model_config = ConfigDict(frozen=True)

    record_class: str
    key: int | str

    @property
    def primary_key(self) -> int | str:
        """Primary key of the referenced record."""
        return self.key


class IndexClient(Protocol):
    """Search index operations used by the engine."""

    def index_one(self, record: Syncable) -> None: ...

    def index_many(self, records: Sequence[Syncable]) -> None: ...

    def remove_one(self, record_class: str, key: RecordKey) -> None: ...

    def remove_all(self, record_class: str) -> None: ...

    def commit(self) -> int: ...

    def query_keys(self, record_class: str, criteria: str | None = None) -> list[RecordKey]: ...


class RecordSource(Protocol):
    """Record store operations used by the engine."""

    def count(self, record_class: str) -> int: ...

    def fetch_page(
        self,
        record_class: str,
        offset: int,
        limit: int,
        order_key: str = ORDER_BY_PRIMARY_KEY,
    ) -> list[Syncable]: ...

    def fetch_all(self, record_class: str) -> list[Syncable]: ...

    def fetch_keys(self, record_class: str) -> list[RecordKey]: ...

    def primary_key(self, record: Syncable) -> RecordKey: ...
