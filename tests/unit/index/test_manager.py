"""Tests for the IndexManager lifecycle and its concurrency guarantees."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from quire.context import RequestContext
from quire.db.models import Source
from quire.errors import IngestionError, TransformationCancelled
from quire.index.manager import IndexManager
from quire.ingest.backends import MemoryBackend
from quire.ingest.chunker import TextChunker
from quire.ingest.pipeline import IngestionPipeline


class CountingPipeline(IngestionPipeline):
    """Pipeline that counts ingest calls and can be slowed down or broken per source."""

    def __init__(self, embed_fn, delay: float = 0.0, fail_names: set[str] | None = None):
        super().__init__(MemoryBackend(), TextChunker(100, 10), embed_fn=embed_fn)
        self.delay = delay
        self.fail_names = fail_names or set()
        self.calls: list[tuple[str, str]] = []
        self._calls_lock = threading.Lock()

    def ingest(self, notebook_id, source_name, content, *, source_id=None):
        with self._calls_lock:
            self.calls.append((notebook_id, source_name))
        if self.delay:
            time.sleep(self.delay)
        if source_name in self.fail_names:
            raise IngestionError(f"cannot embed {source_name}")
        return super().ingest(notebook_id, source_name, content, source_id=source_id)


def _add(repo, notebook_id, name, content="some useful text"):
    return repo.create_source(Source(notebook_id=notebook_id, name=name, content=content))


@pytest.fixture
def pipeline(embed_fn):
    return CountingPipeline(embed_fn)


@pytest.fixture
def manager(repo, pipeline):
    return IndexManager(repo, pipeline)


def test_first_load_ingests_every_source_and_writes_counts(repo, notebook, manager, pipeline):
    a = _add(repo, notebook.id, "a.md")
    b = _add(repo, notebook.id, "b.md", "word " * 60)

    report = manager.ensure_loaded(notebook.id)

    assert not report.already_loaded
    assert report.complete
    assert set(report.ingested) == {a.id, b.id}
    assert repo.get_source(b.id).chunk_count == report.ingested[b.id] > 1
    assert manager.is_loaded(notebook.id)
    assert manager.loaded_notebooks() == frozenset({notebook.id})


def test_second_call_is_a_no_op(repo, notebook, manager, pipeline):
    _add(repo, notebook.id, "a.md")
    manager.ensure_loaded(notebook.id)

    report = manager.ensure_loaded(notebook.id)

    assert report.already_loaded
    assert len(pipeline.calls) == 1


def test_empty_sources_are_skipped(repo, notebook, manager, pipeline):
    empty = _add(repo, notebook.id, "empty.md", "   ")
    report = manager.ensure_loaded(notebook.id)
    assert report.skipped == [empty.id]
    assert pipeline.calls == []


def test_concurrent_loads_run_exactly_one_sweep(repo, notebook, embed_fn):
    _add(repo, notebook.id, "a.md")
    _add(repo, notebook.id, "b.md")
    pipeline = CountingPipeline(embed_fn, delay=0.05)
    manager = IndexManager(repo, pipeline)

    with ThreadPoolExecutor(max_workers=8) as pool:
        reports = list(pool.map(lambda _: manager.ensure_loaded(notebook.id), range(8)))

    assert len(pipeline.calls) == 2
    assert sum(1 for r in reports if not r.already_loaded) == 1


def test_loading_one_notebook_does_not_block_another(repo, embed_fn):
    slow_nb = repo.create_notebook("slow")
    fast_nb = repo.create_notebook("fast")
    _add(repo, slow_nb.id, "slow.md")
    _add(repo, fast_nb.id, "fast.md")

    started = threading.Event()
    release = threading.Event()

    class BlockingPipeline(CountingPipeline):
        def ingest(self, notebook_id, source_name, content, *, source_id=None):
            if notebook_id == slow_nb.id:
                started.set()
                release.wait(timeout=5)
            return super().ingest(notebook_id, source_name, content, source_id=source_id)

    manager = IndexManager(repo, BlockingPipeline(embed_fn))
    slow = threading.Thread(target=manager.ensure_loaded, args=(slow_nb.id,))
    slow.start()
    try:
        assert started.wait(timeout=5)
        # Notebook A is mid-sweep and holding its lock; B must still load.
        report = manager.ensure_loaded(fast_nb.id)
        assert manager.is_loaded(fast_nb.id)
        assert not manager.is_loaded(slow_nb.id)
        assert report.complete
    finally:
        release.set()
        slow.join(timeout=5)
    assert manager.is_loaded(slow_nb.id)


def test_failed_source_is_reported_and_notebook_still_loaded(repo, notebook, embed_fn):
    good = _add(repo, notebook.id, "good.md")
    bad = _add(repo, notebook.id, "bad.md")
    manager = IndexManager(repo, CountingPipeline(embed_fn, fail_names={"bad.md"}))

    report = manager.ensure_loaded(notebook.id)

    assert not report.complete
    assert "cannot embed" in report.failed[bad.id]
    assert good.id in report.ingested
    assert manager.is_loaded(notebook.id)
    assert repo.get_source(bad.id).chunk_count == 0


def test_failure_can_leave_notebook_unloaded(repo, notebook, embed_fn):
    _add(repo, notebook.id, "bad.md")
    pipeline = CountingPipeline(embed_fn, fail_names={"bad.md"})
    manager = IndexManager(repo, pipeline, mark_loaded_on_failure=False)

    with pytest.raises(IngestionError, match="1 source"):
        manager.ensure_loaded(notebook.id)
    assert not manager.is_loaded(notebook.id)

    pipeline.fail_names.clear()
    assert manager.ensure_loaded(notebook.id).complete


def test_sources_added_after_load_are_not_seen_until_invalidate(repo, notebook, manager, pipeline):
    _add(repo, notebook.id, "a.md")
    manager.ensure_loaded(notebook.id)

    late = _add(repo, notebook.id, "late.md")
    manager.ensure_loaded(notebook.id)
    assert pipeline.backend.count(notebook.id, late.id) == 0

    assert manager.invalidate(notebook.id) is True
    assert not manager.is_loaded(notebook.id)
    report = manager.ensure_loaded(notebook.id)
    assert late.id in report.ingested
    assert pipeline.backend.count(notebook.id, late.id) == 1


def test_invalidate_drops_chunks_of_removed_sources(repo, notebook, manager, pipeline):
    gone = _add(repo, notebook.id, "gone.md")
    manager.ensure_loaded(notebook.id)
    repo.delete_source(gone.id)

    manager.invalidate(notebook.id)
    manager.ensure_loaded(notebook.id)

    assert pipeline.backend.count(notebook.id) == 0


def test_invalidate_unloaded_notebook_returns_false(manager):
    assert manager.invalidate("never-loaded") is False


def test_cancelled_context_leaves_notebook_unloaded(repo, notebook, manager):
    _add(repo, notebook.id, "a.md")
    context = RequestContext()
    context.cancel()

    with pytest.raises(TransformationCancelled):
        manager.ensure_loaded(notebook.id, context)
    assert not manager.is_loaded(notebook.id)
