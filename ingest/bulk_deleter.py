#!/usr/bin/env python3
"""
Rate-limited bulk deletion of every document in a collection.

The loop re-reads the first page after each pass because deleted documents
drop out of the listing, so no cursor is kept. Each page is split into
sub-batches of delete_batch_size; all deletions of a sub-batch run at once and
consecutive sub-batches are separated by rate_limit_delay seconds, which is
what keeps the store under its per-minute deletion limit.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from config import DELETE_BATCH_SIZE, DELETE_PAGE_SIZE, RATE_LIMIT_DELAY_SECONDS
from interfaces import DOCUMENT_ID_FIELD, DocumentStore, EventSink
from .utils import ThreadSafeStats, slices


@dataclass
class DeleteReport:
    """Outcome of BulkDeleter.delete_all()."""
    collection_id: str
    pages: int = 0
    deleted: int = 0
    failed: int = 0
    sub_batches: int = 0
    sleeps: int = 0
    page_sizes: list[int] = field(default_factory=list)
    stopped_on_failure: bool = False


class BulkDeleter:
    """Deletes all documents of a collection in paced, concurrent sub-batches."""

    def __init__(
        self,
        store: DocumentStore,
        database_id: str,
        *,
        page_size: int = DELETE_PAGE_SIZE,
        batch_size: int = DELETE_BATCH_SIZE,
        rate_limit_delay_seconds: float = RATE_LIMIT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
        stats: Optional[ThreadSafeStats] = None,
        event_sink: Optional[EventSink] = None,
    ) -> None:
        self._store = store
        self._database_id = database_id
        self._page_size = max(1, page_size)
        self._batch_size = max(1, batch_size)
        self._delay = max(0.0, rate_limit_delay_seconds)
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self._stats = stats or ThreadSafeStats()
        self._event_sink = event_sink

    def delete_all(self, collection_id: str) -> DeleteReport:
        """
        Delete every document in *collection_id*.

        Failed deletions are logged and counted but never retried within a
        page. A page on which every deletion fails ends the run, since the
        same documents would be listed again forever.
        """
        report = DeleteReport(collection_id=collection_id)
        self._logger.info(
            "Deleting all documents from '%s' (page size %d, %d per sub-batch, %.0fs pacing)",
            collection_id, self._page_size, self._batch_size, self._delay,
        )

        with ThreadPoolExecutor(
            max_workers=self._batch_size, thread_name_prefix="npi-delete"
        ) as pool:
            while True:
                page = self._store.list_documents(
                    self._database_id, collection_id, limit=self._page_size)
                if page.is_empty:
                    break

                report.pages += 1
                report.page_sizes.append(len(page.documents))
                page_deleted = 0

                for batch in slices(page.documents, self._batch_size):
                    if report.sub_batches:
                        self._logger.info(
                            "Waiting %.0fs to respect the deletion rate limit...", self._delay)
                        self._sleep(self._delay)
                        report.sleeps += 1
                        self._stats.observe_timing(
                            "pacing_sleep_seconds", self._delay)

                    deleted, failed = self._delete_batch(pool, collection_id, batch)
                    report.sub_batches += 1
                    report.deleted += deleted
                    report.failed += failed
                    page_deleted += deleted
                    self._logger.info(
                        "Deleted %d documents in this sub-batch (%d failed). Total deleted: %d",
                        deleted, failed, report.deleted,
                    )

                if page_deleted == 0:
                    self._logger.error(
                        "No document on page %d of '%s' could be deleted; stopping",
                        report.pages, collection_id,
                    )
                    report.stopped_on_failure = True
                    break

        self._logger.info(
            "Deletion finished for '%s': %d deleted, %d failed across %d page(s)",
            collection_id, report.deleted, report.failed, report.pages,
        )
        return report

    def _delete_batch(
        self,
        pool: ThreadPoolExecutor,
        collection_id: str,
        batch: list[dict[str, Any]],
    ) -> tuple[int, int]:
        futures = [
            pool.submit(self._delete_one, collection_id, document)
            for document in batch
        ]
        outcomes = [future.result() for future in futures]
        deleted = sum(1 for ok in outcomes if ok)
        return deleted, len(outcomes) - deleted

    def _delete_one(self, collection_id: str, document: dict[str, Any]) -> bool:
        document_id = document.get(DOCUMENT_ID_FIELD)
        try:
            self._store.delete_document(
                self._database_id, collection_id, str(document_id))
        except Exception as error:  # pylint: disable=broad-except
            self._logger.error(
                "Error deleting document %s: %s", document_id, error)
            self._stats.increment("documents_delete_failed")
            if self._event_sink is not None:
                try:
                    self._event_sink.emit_event({
                        "event_type": "document_delete_failed",
                        "collection": collection_id,
                        "document_id": document_id,
                        "error": str(error),
                    })
                except OSError as sink_error:
                    self._logger.warning(
                        "Dead-letter write failed for %s: %s", document_id, sink_error)
            return False
        self._stats.increment("documents_deleted")
        return True
