"""Pydantic schemas for index documents and search responses."""

from pydantic import BaseModel, Field


class SearchDocument(BaseModel):
    """A record as stored in the search index.

    Attributes:
        record_class: Class tag of the backing record.
        key: Primary key of the backing record.
        title: Indexed title text.
        body: Indexed body text with markdown stripped.
    """

    record_class: str
    key: int | str
    title: str
    body: str = ""


class SearchResponse(BaseModel):
    """Keys of documents matching a keyword query.

    Attributes:
        record_class: Class the query was scoped to.
        query: The original query string.
        keys: Matching primary keys.
        total: Number of matching keys.
    """

    record_class: str
    query: str
    keys: list[int | str] = Field(description="Primary keys of matching records")
    total: int
