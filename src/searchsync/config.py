"""Service configuration loaded from environment variables."""
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug logging and API documentation.
        key: API key for authenticating non-health requests.
        shutdown_timeout: Seconds to wait for graceful shutdown.
        store_path: SQLite path of the record store.
        index_path: SQLite path of the FTS5 search index.
        record_classes_raw: Comma-separated record class tags to register.
        default_batch_size: Reindex page size when none is given.
        commit_per_batch: Commit after every reindex page by default.
        auto_index_on_save: Default hook option for registered classes.
        auto_remove_on_delete: Default hook option for registered classes.
        commit_interval: Seconds between automatic commits of staged writes.
        reindex_on_startup: Rebuild every registered class at startup.
        event_queue_size: Maximum size of each subscriber queue.
        event_max_subscribers: Maximum number of concurrent subscribers.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEARCHSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    key: str = ""
    shutdown_timeout: float = 30.0

    store_path: str = "records.db"
    index_path: str = "index.db"
    record_classes_raw: str = "Article"

    default_batch_size: int = Field(default=500, gt=0)
    commit_per_batch: bool = True
    auto_index_on_save: bool = True
    auto_remove_on_delete: bool = True
    commit_interval: float = Field(default=1.0, gt=0)
    reindex_on_startup: bool = False

    event_queue_size: int = 1000
    event_max_subscribers: int = 16

    @computed_field
    @property
    def record_classes(self) -> list[str]:
        """Parse record class tags from comma-separated string.

        Returns:
            Class tags in declaration order, duplicates removed.
        """
        tags: list[str] = []
        for tag in self.record_classes_raw.split(","):
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags
