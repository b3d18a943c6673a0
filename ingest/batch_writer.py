#!/usr/bin/env python3
"""
Batched document creation for npi-sync.
This module defines the Batcher and BatchWriter classes:
- Batcher is pure buffering: it accumulates mapped documents and hands back a
  super-batch (max_parallel_batches x batch_size documents) once one is full.
- BatchWriter slices each super-batch into batches, runs the batches in
  parallel, and inside every batch writes chunk_size documents at a time with
  a pacing delay between chunks.

Both thread pools are bounded, and add() only returns once the super-batch it
triggered has finished, so the number of in-flight writes never exceeds
max_parallel_batches x chunk_size and the source is not read ahead of the store.

A failed document write is logged, counted and reported to the event sink;
it is not retried and does not stop the rest of its batch.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Optional

from config import (
    CHUNK_DELAY_SECONDS,
    CHUNK_SIZE,
    CREATE_BATCH_SIZE,
    MAX_PARALLEL_BATCHES,
    NATURAL_KEY_FIELD,
)
from interfaces import DOCUMENT_ID_FIELD, DocumentStore, EventSink
from .utils import ThreadSafeStats, slices


@dataclass(frozen=True)
class WriteResult:
    key: Optional[str]
    document_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WriteReport:
    """Running totals for one BatchWriter."""
    super_batches: int = 0
    batches: int = 0
    chunks: int = 0
    created: int = 0
    failed: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    max_in_flight: int = 0


# ---------------------------------------------------------------------------
# 1. Batcher  (pure buffer/flush decisions)
# ---------------------------------------------------------------------------


class Batcher:
    """Accumulates documents and releases them in super-batches."""

    def __init__(self, *, batch_size: int, max_parallel_batches: int) -> None:
        self._batch_size = max(1, batch_size)
        self._parallel = max(1, max_parallel_batches)
        self._buffer: list[dict[str, Any]] = []

    @property
    def super_batch_size(self) -> int:
        return self._batch_size * self._parallel

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def add(self, document: dict[str, Any]) -> Optional[list[list[dict[str, Any]]]]:
        """Buffer *document*; return the batches of a full super-batch, if any."""
        self._buffer.append(document)
        if len(self._buffer) >= self.super_batch_size:
            return self._take(self.super_batch_size)
        return None

    def flush(self) -> list[list[list[dict[str, Any]]]]:
        """Return every remaining document as a list of super-batches."""
        ready = []
        while self._buffer:
            ready.append(self._take(self.super_batch_size))
        return ready

    def _take(self, count: int) -> list[list[dict[str, Any]]]:
        documents = self._buffer[:count]
        del self._buffer[:count]
        return list(slices(documents, self._batch_size))


# ---------------------------------------------------------------------------
# 2. BatchWriter  (effects: thread pools and pacing)
# ---------------------------------------------------------------------------


class BatchWriter:
    """Writes mapped documents to a collection in paced, parallel batches."""

    def __init__(
        self,
        store: DocumentStore,
        database_id: str,
        collection_id: str,
        *,
        batch_size: int = CREATE_BATCH_SIZE,
        chunk_size: int = CHUNK_SIZE,
        chunk_delay_seconds: float = CHUNK_DELAY_SECONDS,
        max_parallel_batches: int = MAX_PARALLEL_BATCHES,
        key_field: str = NATURAL_KEY_FIELD,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
        stats: Optional[ThreadSafeStats] = None,
        event_sink: Optional[EventSink] = None,
    ) -> None:
        self._store = store
        self._database_id = database_id
        self._collection_id = collection_id
        self._chunk_size = max(1, chunk_size)
        self._chunk_delay = max(0.0, chunk_delay_seconds)
        self._parallel = max(1, max_parallel_batches)
        self._key_field = key_field
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self._stats = stats or ThreadSafeStats()
        self._event_sink = event_sink
        self._batcher = Batcher(
            batch_size=batch_size, max_parallel_batches=self._parallel)
        self._batch_pool: Optional[ThreadPoolExecutor] = None
        self._write_pool: Optional[ThreadPoolExecutor] = None
        self._in_flight = 0
        self._in_flight_lock = Lock()
        self.report = WriteReport()

    # -- lifecycle --

    def __enter__(self) -> "BatchWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.flush()
        elif self._batcher.pending:
            self._logger.warning(
                "Discarding %d buffered document(s) after error: %s",
                self._batcher.pending, exc_val,
            )
        self.close()

    def open(self) -> tuple[ThreadPoolExecutor, ThreadPoolExecutor]:
        """Start both pools if needed and return (batch_pool, write_pool)."""
        if self._batch_pool is None:
            self._batch_pool = ThreadPoolExecutor(
                max_workers=self._parallel, thread_name_prefix="npi-batch")
        if self._write_pool is None:
            self._write_pool = ThreadPoolExecutor(
                max_workers=self._parallel * self._chunk_size,
                thread_name_prefix="npi-write",
            )
        return self._batch_pool, self._write_pool

    def close(self) -> None:
        for pool in (self._batch_pool, self._write_pool):
            if pool is not None:
                pool.shutdown(wait=True)
        self._batch_pool = None
        self._write_pool = None

    # -- public API --

    @property
    def pending(self) -> int:
        return self._batcher.pending

    def add(self, document: dict[str, Any]) -> list[WriteResult]:
        """
        Queue one document. When the buffer reaches a full super-batch it is
        written before this call returns, and its per-document results are returned.
        """
        batches = self._batcher.add(document)
        if batches is None:
            return []
        return self._dispatch(batches)

    def flush(self) -> list[WriteResult]:
        """Write everything still buffered (end of source)."""
        results: list[WriteResult] = []
        for batches in self._batcher.flush():
            results.extend(self._dispatch(batches))
        return results

    # -- private helpers --

    def _dispatch(self, batches: list[list[dict[str, Any]]]) -> list[WriteResult]:
        batch_pool, write_pool = self.open()
        start = time.perf_counter()
        futures = [
            batch_pool.submit(self._send_batch, batch, write_pool)
            for batch in batches
        ]
        wait(futures)

        results: list[WriteResult] = []
        for future in futures:
            results.extend(future.result())

        created = sum(1 for r in results if r.ok)
        failed = len(results) - created
        self.report.super_batches += 1
        self.report.batches += len(batches)
        self.report.batch_sizes.extend(len(batch) for batch in batches)
        self.report.created += created
        self.report.failed += failed
        self._stats.increment("batches_total", len(batches))

        self._logger.info(
            "Processed %d batch(es) concurrently in %.2fs: %d created, %d failed "
            "(total created: %d, failed: %d)",
            len(batches),
            time.perf_counter() - start,
            created,
            failed,
            self.report.created,
            self.report.failed,
        )
        return results

    def _send_batch(
        self, batch: list[dict[str, Any]], write_pool: ThreadPoolExecutor,
    ) -> list[WriteResult]:
        batch_start = time.perf_counter()
        results: list[WriteResult] = []
        chunks = list(slices(batch, self._chunk_size))

        for index, chunk in enumerate(chunks):
            chunk_start = time.perf_counter()
            futures = [write_pool.submit(self._write_one, doc) for doc in chunk]
            wait(futures)
            chunk_results = [future.result() for future in futures]
            results.extend(chunk_results)
            self._stats.increment("chunks_total")
            self._stats.observe_timing(
                "chunk_seconds", time.perf_counter() - chunk_start)
            with self._in_flight_lock:
                self.report.chunks += 1

            failures = sum(1 for r in chunk_results if not r.ok)
            if failures:
                self._logger.warning(
                    "Chunk of %d documents finished with %d failure(s); continuing with next chunk",
                    len(chunk), failures,
                )
            else:
                self._logger.debug(
                    "Chunk of %d documents added successfully.", len(chunk))

            if index < len(chunks) - 1 and self._chunk_delay:
                self._sleep(self._chunk_delay)
                self._stats.observe_timing(
                    "pacing_sleep_seconds", self._chunk_delay)

        self._stats.observe_timing(
            "batch_seconds", time.perf_counter() - batch_start)
        return results

    def _write_one(self, document: dict[str, Any]) -> WriteResult:
        key = document.get(self._key_field)
        with self._in_flight_lock:
            self._in_flight += 1
            self.report.max_in_flight = max(
                self.report.max_in_flight, self._in_flight)
        try:
            created = self._store.create_document(
                self._database_id, self._collection_id, document)
        except Exception as error:  # pylint: disable=broad-except
            self._logger.error(
                "Error adding document %s=%s: %s", self._key_field, key, error)
            self._stats.increment("documents_failed")
            if key:
                self._stats.append_failed(str(key))
            if self._event_sink is not None:
                try:
                    self._event_sink.emit_event({
                        "event_type": "document_create_failed",
                        "collection": self._collection_id,
                        "key_field": self._key_field,
                        "key": key,
                        "error": str(error),
                    })
                except OSError as sink_error:
                    self._logger.warning(
                        "Dead-letter write failed for %s: %s", key, sink_error)
            return WriteResult(key=key, error=str(error))
        finally:
            with self._in_flight_lock:
                self._in_flight -= 1

        self._stats.increment("documents_created")
        document_id = created.get(DOCUMENT_ID_FIELD) if isinstance(created, dict) else None
        return WriteResult(key=key, document_id=document_id)
