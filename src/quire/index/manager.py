"""Index lifecycle: lazily ingest each notebook's sources once per process.

The loaded set is the only cross-request mutable state in the core. It is
guarded by one lock per notebook (created under a small registry lock), so a
long ingestion sweep for one notebook never blocks another notebook.

States are ``not loaded → loaded``. Nothing invalidates a notebook
automatically: sources added to or removed from storage after the first load
are not seen until the caller calls ``invalidate()``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from quire.context import RequestContext
from quire.errors import IngestionError
from quire.ingest.pipeline import IngestionPipeline
from quire.storage import Storage

logger = logging.getLogger(__name__)


@dataclass
class LoadReport:
    """Outcome of one ``ensure_loaded`` call.

    Attributes:
        notebook_id: Notebook the report is about.
        already_loaded: True if no sweep ran because the notebook was loaded.
        ingested: source id → chunk count for sources indexed by this sweep.
        failed: source id → error message for sources that failed to ingest.
        skipped: ids of sources with empty content.
    """

    notebook_id: str
    already_loaded: bool = False
    ingested: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class IndexManager:
    """Ensure each notebook's source set is ingested exactly once.

    Args:
        storage: Collaborator providing ``list_sources`` and
            ``update_source_chunk_count``.
        pipeline: Ingestion pipeline the sources are fed through.
        mark_loaded_on_failure: When True (default) a notebook whose sweep had
            failing sources is still marked loaded and the failures are only
            reported. When False it stays unloaded and IngestionError is raised.
    """

    def __init__(
        self,
        storage: Storage,
        pipeline: IngestionPipeline,
        *,
        mark_loaded_on_failure: bool = True,
    ) -> None:
        self._storage = storage
        self._pipeline = pipeline
        self._mark_loaded_on_failure = mark_loaded_on_failure
        self._loaded: set[str] = set()
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, notebook_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(notebook_id)
            if lock is None:
                lock = self._locks[notebook_id] = threading.Lock()
            return lock

    def is_loaded(self, notebook_id: str) -> bool:
        return notebook_id in self._loaded

    def loaded_notebooks(self) -> frozenset[str]:
        return frozenset(self._loaded)

    def ensure_loaded(
        self, notebook_id: str, context: RequestContext | None = None
    ) -> LoadReport:
        """Ingest every non-empty source of *notebook_id* unless already done.

        Concurrent callers for the same notebook wait for the first sweep and
        then return without ingesting.

        Raises:
            IngestionError: Only when ``mark_loaded_on_failure`` is False and
                at least one source failed.
            TransformationCancelled: If *context* is cancelled mid-sweep; the
                notebook stays unloaded.
        """
        if notebook_id in self._loaded:
            return LoadReport(notebook_id=notebook_id, already_loaded=True)

        with self._lock_for(notebook_id):
            if notebook_id in self._loaded:
                return LoadReport(notebook_id=notebook_id, already_loaded=True)

            logger.info("loading vector index for notebook %s", notebook_id)
            report = LoadReport(notebook_id=notebook_id)

            for source in self._storage.list_sources(notebook_id):
                if context is not None:
                    context.check()
                if not source.content.strip():
                    report.skipped.append(source.id)
                    continue
                try:
                    count = self._pipeline.ingest(
                        notebook_id, source.name, source.content, source_id=source.id
                    )
                except IngestionError as exc:
                    logger.warning("failed to load source %s: %s", source.name, exc)
                    report.failed[source.id] = str(exc)
                    continue
                self._storage.update_source_chunk_count(source.id, count)
                report.ingested[source.id] = count

            if report.failed:
                if not self._mark_loaded_on_failure:
                    raise IngestionError(
                        f"{len(report.failed)} source(s) failed to ingest for notebook {notebook_id}"
                    )
                logger.warning(
                    "notebook %s marked loaded with %d failed source(s); index is incomplete",
                    notebook_id,
                    len(report.failed),
                )

            self._loaded.add(notebook_id)
            logger.info(
                "notebook %s loaded (%d sources, %d chunks)",
                notebook_id,
                len(report.ingested),
                sum(report.ingested.values()),
            )
            return report

    def invalidate(self, notebook_id: str) -> bool:
        """Forget that *notebook_id* is loaded and drop its indexed chunks.

        The next ``ensure_loaded`` call rebuilds the namespace from the
        current source set. Returns True if the notebook was loaded.
        """
        with self._lock_for(notebook_id):
            was_loaded = notebook_id in self._loaded
            self._loaded.discard(notebook_id)
            self._pipeline.purge(notebook_id)
        logger.info("invalidated vector index for notebook %s", notebook_id)
        return was_loaded
