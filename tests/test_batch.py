"""Full rebuild batching, commit boundaries and failure policy."""

import pytest
from conftest import Article, FakeIndex, FakeSource, make_article

from searchsync.errors import (
    AdapterUnavailable,
    DocumentError,
    InvalidBatchSize,
    PartialBatchFailure,
    UnknownRecordClass,
)
from searchsync.services import SyncServices
from searchsync.sync.batch import BatchCursor, validate_batch_size
from searchsync.sync.engine import SyncEngine


def _seed(source: FakeSource, count: int) -> None:
    for key in range(1, count + 1):
        source.add(make_article(key))


def test_article_scenario_commits_per_batch(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """1200 records at batch size 500 give 500/500/200 and four commits."""
    _seed(fake_source, 1200)

    result = engine.reindex_class("Article", batch_size=500, commit_per_batch=True)

    assert fake_index.batch_sizes == [500, 500, 200]
    assert [b.size for b in result.batches] == [500, 500, 200]
    assert [b.offset for b in result.batches] == [0, 500, 1000]
    assert [b.batch_number for b in result.batches] == [1, 2, 3]
    assert fake_index.commits == 4
    assert result.commits == 4
    assert result.records_indexed == 1200
    assert result.record_count == 1200


def test_article_scenario_single_commit_without_batch_commit(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """With commit_per_batch off only the final commit happens."""
    _seed(fake_source, 1200)

    result = engine.reindex_class("Article", batch_size=500, commit_per_batch=False)

    assert fake_index.batch_sizes == [500, 500, 200]
    assert fake_index.commits == 1
    assert result.commits == 1
    assert fake_index.calls[-1] == "commit"


def test_remove_all_precedes_indexing(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """Stale entries are cleared before the first page is indexed."""
    _seed(fake_source, 3)
    fake_index.committed[("Article", 99)] = make_article(99)

    engine.reindex_class("Article", batch_size=2)

    assert fake_index.calls[0] == "remove_all"
    assert fake_index.keys("Article") == [1, 2, 3]


def test_full_coverage_leaves_no_orphans(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """Every batch size up to N indexes every record exactly once."""
    _seed(fake_source, 23)

    for batch_size in (1, 5, 7, 22, 23):
        engine.reindex_class("Article", batch_size=batch_size)
        assert fake_index.keys("Article") == list(range(1, 24))
        assert engine.find_orphans("Article") == []


def test_unbatched_and_batched_give_same_keys(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """Batching does not change final coverage."""
    _seed(fake_source, 120)

    engine.reindex_class("Article", batch_size=None)
    unbatched = fake_index.keys("Article")
    engine.reindex_class("Article", batch_size=50)

    assert fake_index.keys("Article") == unbatched


def test_unbatched_path_indexes_in_one_call(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """batch_size=None fetches everything at once and commits once."""
    _seed(fake_source, 120)

    result = engine.reindex_class("Article", batch_size=None, commit_per_batch=True)

    assert fake_index.batch_sizes == [120]
    assert "fetch_all" in fake_source.calls
    assert "fetch_page" not in fake_source.calls
    assert fake_index.commits == 1
    assert len(result.batches) == 1
    assert result.batch_size is None


def test_empty_class_still_commits(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """An empty class rebuilds to an empty, committed index."""
    fake_index.committed[("Article", 5)] = make_article(5)

    result = engine.reindex_class("Article", batch_size=500)

    assert result.batches == []
    assert result.record_count == 0
    assert fake_index.commits == 1
    assert fake_index.keys("Article") == []
    assert fake_index.pending == []


@pytest.mark.parametrize("batch_size", [0, -1, -500, 2.5, "10", True])
def test_invalid_batch_size_rejected_before_removal(
    engine: SyncEngine,
    fake_index: FakeIndex,
    fake_source: FakeSource,
    batch_size: object,
) -> None:
    """Invalid sizes fail before anything is removed from the index."""
    _seed(fake_source, 3)
    fake_index.committed[("Article", 1)] = make_article(1)

    with pytest.raises(InvalidBatchSize):
        engine.reindex_class("Article", batch_size=batch_size)  # type: ignore[arg-type]

    assert fake_index.calls == []
    assert fake_index.keys("Article") == [1]


def test_validate_batch_size_accepts_none_and_positive() -> None:
    """None and positive integers are valid batch sizes."""
    validate_batch_size(None)
    validate_batch_size(1)
    validate_batch_size(500)


def test_unknown_class_rejected(engine: SyncEngine, fake_index: FakeIndex) -> None:
    """Unregistered classes never reach the index."""
    with pytest.raises(UnknownRecordClass):
        engine.reindex_class("Nope")
    assert fake_index.calls == []


def test_record_failure_aborts_with_partial_batch_failure(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """A bad record aborts the rebuild instead of being skipped."""
    _seed(fake_source, 4)
    fake_source.records["Article"][3] = make_article(3).model_copy(update={"id": None})

    with pytest.raises(PartialBatchFailure) as excinfo:
        engine.reindex_class("Article", batch_size=2)

    assert excinfo.value.batch_number == 2
    assert excinfo.value.offset == 2
    assert isinstance(excinfo.value.__cause__, DocumentError)
    assert fake_index.commits == 1


def test_adapter_unavailable_propagates_unchanged(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """Backend outages are not wrapped or retried."""
    _seed(fake_source, 4)
    fake_index.fail_on["index_many"] = AdapterUnavailable("index", "connection refused")

    with pytest.raises(AdapterUnavailable):
        engine.reindex_class("Article", batch_size=2)

    assert fake_index.calls.count("index_many") == 1


def test_store_outage_during_count_propagates(
    engine: SyncEngine, fake_source: FakeSource
) -> None:
    """A failing count aborts the rebuild."""
    fake_source.fail_on["count"] = AdapterUnavailable("store", "gone")

    with pytest.raises(AdapterUnavailable):
        engine.reindex_class("Article")


def test_records_deleted_mid_scan_end_loop(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """An empty page stops the scan rather than spinning."""
    _seed(fake_source, 5)
    original_fetch = fake_source.fetch_page

    def shrinking_fetch(record_class: str, offset: int, limit: int, order_key: str) -> list:
        if offset >= 2:
            fake_source.records["Article"].clear()
        return original_fetch(record_class, offset, limit, order_key)

    fake_source.fetch_page = shrinking_fetch  # type: ignore[method-assign]

    result = engine.reindex_class("Article", batch_size=2)

    assert result.records_indexed == 2
    assert fake_index.calls[-1] == "commit"


def test_batch_stats_report_throughput(engine: SyncEngine, fake_source: FakeSource) -> None:
    """Each batch carries timing and a cumulative record count."""
    _seed(fake_source, 10)

    result = engine.reindex_class("Article", batch_size=4)

    assert [b.records_indexed for b in result.batches] == [4, 8, 10]
    for stats in result.batches:
        assert stats.elapsed_seconds >= 0
        assert stats.records_per_second is None or stats.records_per_second > 0
        assert stats.started_at.tzinfo is not None


def test_cursor_advances_by_limit() -> None:
    """The cursor is exhausted once the offset passes the count."""
    cursor = BatchCursor(limit=500, record_count=1200)
    offsets = []
    while not cursor.exhausted:
        offsets.append(cursor.offset)
        cursor.advance()
    assert offsets == [0, 500, 1000]


def test_store_read_failure_aborts_with_partial_batch_failure(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """Records the store cannot load abort the rebuild with the failing batch."""
    _seed(fake_source, 4)
    fake_source.fail_on["fetch_page"] = DocumentError("Article", 1, "stored payload is invalid")

    with pytest.raises(PartialBatchFailure) as excinfo:
        engine.reindex_class("Article", batch_size=2)

    assert (excinfo.value.batch_number, excinfo.value.offset) == (1, 0)
    assert isinstance(excinfo.value.__cause__, DocumentError)
    assert "index_many" not in fake_index.calls
    assert fake_index.commits == 0


def test_store_outage_during_fetch_propagates(
    engine: SyncEngine, fake_source: FakeSource
) -> None:
    """An unreachable store is reported as such, not as a batch failure."""
    _seed(fake_source, 4)
    fake_source.fail_on["fetch_all"] = AdapterUnavailable("store", "gone")

    with pytest.raises(AdapterUnavailable):
        engine.reindex_class("Article", batch_size=None)


def test_rebuild_in_progress_is_tracked(
    engine: SyncEngine, fake_index: FakeIndex, fake_source: FakeSource
) -> None:
    """The engine reports running rebuilds, also after a failed one."""
    _seed(fake_source, 3)
    seen: list[bool] = []
    original_fetch = fake_source.fetch_page

    def observing_fetch(record_class: str, offset: int, limit: int, order_key: str) -> list:
        seen.append(engine.rebuild_in_progress)
        return original_fetch(record_class, offset, limit, order_key)

    fake_source.fetch_page = observing_fetch  # type: ignore[method-assign]

    assert not engine.rebuild_in_progress
    engine.reindex_class("Article", batch_size=2)
    assert seen == [True, True]
    assert not engine.rebuild_in_progress

    fake_index.fail_on["index_many"] = RuntimeError("boom")
    with pytest.raises(PartialBatchFailure):
        engine.reindex_class("Article", batch_size=2)
    assert not engine.rebuild_in_progress


def _corrupt(services: SyncServices, key: int) -> None:
    services.store._execute(
        "UPDATE records SET payload = ? WHERE record_class = ? AND id = ?",
        ('{"title": ""}', "Article", key),
    )


@pytest.mark.parametrize(
    ("batch_size", "corrupt_key", "batch_number", "offset"),
    [(2, 2, 1, 0), (2, 3, 2, 2), (None, 3, 1, 0)],
)
def test_corrupt_stored_record_keeps_committed_index(
    services: SyncServices,
    batch_size: int | None,
    corrupt_key: int,
    batch_number: int,
    offset: int,
) -> None:
    """A record that fails to load aborts the rebuild before the old index is replaced."""
    for title in ("one", "two", "three"):
        services.store.create(Article(title=title))
    services.engine.reindex_class("Article", batch_size=2)
    _corrupt(services, corrupt_key)

    with pytest.raises(PartialBatchFailure) as excinfo:
        services.engine.reindex_class("Article", batch_size=batch_size, commit_per_batch=False)

    assert (excinfo.value.batch_number, excinfo.value.offset) == (batch_number, offset)
    assert isinstance(excinfo.value.__cause__, DocumentError)
    assert services.engine.search_keys("Article") == [1, 2, 3]
