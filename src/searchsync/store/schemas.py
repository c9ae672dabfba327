"""Pydantic record types stored in the system of record."""

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import ClassVar

from pydantic import BaseModel, Field


class SyncableRecord(BaseModel, ABC):
    """Abstract base for records mirrored into the search index.

    Subclasses set ``record_class`` and implement ``search_fields``.

    Attributes:
        id: Primary key assigned by the record store on create.
    """

    record_class: ClassVar[str] = ""

    id: int | None = None

    @property
    def primary_key(self) -> int | None:
        """Primary key used for pagination order and document identity."""
        return self.id

    @abstractmethod
    def search_fields(self) -> dict[str, str]:
        """Text fields handed to the index client.

        Returns:
            Mapping with ``title`` and ``body`` entries.
        """


class Document(SyncableRecord):
    """Generic titled text record.

    Attributes:
        title: Short heading.
        body: Free text content (markdown allowed).
    """

    title: str = Field(min_length=1, max_length=500)
    body: str = ""

    def search_fields(self) -> dict[str, str]:
        """Index the title and body as-is."""
        return {"title": self.title, "body": self.body}


@lru_cache(maxsize=None)
def document_type(record_class: str) -> type[Document]:
    """Build (once) a Document subclass tagged with a record class.

    Args:
        record_class: Class tag, e.g. "Article".

    Returns:
        A Document subclass whose ``record_class`` is the tag.
    """
    return type(
        record_class,
        (Document,),
        {"__module__": __name__, "record_class": record_class},
    )
