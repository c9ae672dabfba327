"""Full-text search index client backed by SQLite FTS5."""

from searchsync.search.autocommit import run_auto_commit
from searchsync.search.index import SearchIndex
from searchsync.search.schemas import SearchDocument, SearchResponse

__all__ = [
    "SearchDocument",
    "SearchIndex",
    "SearchResponse",
    "run_auto_commit",
]
