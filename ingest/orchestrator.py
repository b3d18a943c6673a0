#!/usr/bin/env python3
"""
Run orchestration for npi-sync.
This module contains two layers:
1. import_records() - Core streaming loop: dedup, map and hand rows to the
   BatchWriter. Independent of provisioning, progress bars and reporting.
2. run_sync() - The full run: database and flag collection, initialised-marker
   check, schema provisioning, cache warm-up, streaming import, completion
   marker. Also emits metrics and logs a summary after completion.

Every step re-detects existing state, so a failed run is recovered by running
it again from the start.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from config import FLAG_ATTRIBUTE, FLAG_SCHEMA, NPI_SCHEMA
from npi_exceptions import NotFoundError, ProvisioningError, StoreError
from .batch_writer import BatchWriter, WriteReport
from .context import SyncContext
from .dedup_cache import DedupCache
from .field_mapper import map_record, natural_key, unmapped_headers
from .record_source import CsvRecordSource, Record
from .schema_provisioner import ProvisionReport, SchemaProvisioner
from .utils import IngestionProgressTracker, MetricsExporter, resolve_source_path

STATUS_COMPLETED = "completed"
STATUS_ALREADY_INITIALIZED = "already_initialized"


# ---------------------------------------------------------------------------
# 1. SyncReport
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    """Value object returned by run_sync()."""
    status: str
    source_path: str = ""
    rows_processed: int = 0
    rows_skipped: int = 0
    rows_invalid: int = 0
    documents_created: int = 0
    documents_failed: int = 0
    existing_keys: int = 0
    marker_written: bool = False
    duration_seconds: float = 0.0
    provision: Optional[ProvisionReport] = None
    write: Optional[WriteReport] = None
    failed_keys: list[str] = field(default_factory=list)

    @property
    def documents_per_second(self) -> float:
        return self.documents_created / self.duration_seconds if self.duration_seconds > 0 else 0.0


# ---------------------------------------------------------------------------
# 2. Database and initialised marker
# ---------------------------------------------------------------------------


def ensure_database(ctx: SyncContext) -> bool:
    """Create the database if it does not exist. Returns True when created."""
    config = ctx.config
    try:
        ctx.store.get_database(config.database_id)
        ctx.logger.info("Database '%s' exists.", config.database_id)
        return False
    except NotFoundError:
        ctx.logger.info(
            "Database '%s' not found, creating...", config.database_id)
    except StoreError as error:
        raise ProvisioningError(
            f"Could not read database '{config.database_id}': {error}") from error

    try:
        ctx.store.create_database(config.database_id, config.database_name)
    except StoreError as error:
        raise ProvisioningError(
            f"Could not create database '{config.database_id}': {error}") from error
    ctx.logger.info("Database '%s' created successfully.", config.database_id)
    return True


def is_initialized(ctx: SyncContext) -> bool:
    """True when the flag collection holds a true marker document."""
    try:
        page = ctx.store.list_documents(
            ctx.config.database_id,
            ctx.config.flag_collection_id,
            limit=1,
            equal={FLAG_ATTRIBUTE: True},
        )
    except NotFoundError:
        return False
    return not page.is_empty


def mark_initialized(ctx: SyncContext) -> bool:
    """
    Write the completion marker unless one already exists.
    The marker is never unset by this package. Returns True when written.
    """
    if is_initialized(ctx):
        ctx.logger.info("Initialised marker already present.")
        return False
    ctx.store.create_document(
        ctx.config.database_id,
        ctx.config.flag_collection_id,
        {FLAG_ATTRIBUTE: True},
    )
    ctx.logger.info("Initialised marker written to '%s'.",
                    ctx.config.flag_collection_id)
    return True


def _provisioner(ctx: SyncContext) -> SchemaProvisioner:
    config = ctx.config
    return SchemaProvisioner(
        ctx.store,
        config.database_id,
        attribute_max_retries=config.attribute_max_retries,
        retry_delay_seconds=config.attribute_retry_delay_seconds,
        create_delay_seconds=config.attribute_create_delay_seconds,
        max_attempts=config.provision_max_attempts,
        sleep=ctx.sleep,
        logger=ctx.logger,
        stats=ctx.stats,
    )


# ---------------------------------------------------------------------------
# 3. import_records()  (core loop, no UI)
# ---------------------------------------------------------------------------


def import_records(
    ctx: SyncContext,
    records: Iterable[Record],
    *,
    cache: DedupCache,
    writer: BatchWriter,
    dictionary: dict[str, str],
    progress: IngestionProgressTracker | None = None,
) -> None:
    """
    Stream *records* into *writer*, skipping keys already in *cache*.

    A key is added to the cache when its row is queued, before the write is
    confirmed, so a key is never queued twice in one run. The caller flushes
    the writer once the source is exhausted.
    """
    key_field = ctx.config.natural_key_field
    stats = ctx.stats

    for row in records:
        stats.increment("rows_processed")
        key = natural_key(row, key_field)

        if key is None:
            stats.increment("rows_invalid")
            if progress:
                progress.update("invalid")
            continue

        if key in cache:
            stats.increment("rows_skipped")
            if progress:
                progress.update("skipped")
            continue

        cache.add(key)
        document = map_record(row, dictionary)
        document[key_field] = key
        if progress:
            progress.update("queued")

        if writer.add(document):
            ctx.logger.info(
                "Progress: %d rows processed | %d added | %d skipped | %d failed",
                stats.get("rows_processed"),
                stats.get("documents_created"),
                stats.get("rows_skipped"),
                stats.get("documents_failed"),
            )


# ---------------------------------------------------------------------------
# 4. run_sync()  (full run)
# ---------------------------------------------------------------------------


def run_sync(
    ctx: SyncContext,
    *,
    records: Iterable[Record] | None = None,
    on_already_initialized: Callable[[SyncContext], None] | None = None,
    on_complete: Callable[[SyncReport], None] | None = None,
    use_progress_bar: bool = True,
) -> SyncReport:
    """
    Run one import into the primary collection.

    Args:
        ctx: Sync context
        records: Row source; the monthly NPPES CSV is resolved when omitted
        on_already_initialized: Called instead of importing when the flag
            collection already holds a true marker
        on_complete: Called with the report after the marker is written
        use_progress_bar: Render a tqdm bar instead of periodic log lines

    Raises:
        ProvisioningError: If the database or a collection schema cannot be provisioned
        SourceError: If the source file cannot be found or read
    """
    config = ctx.config
    t_start = time.time()

    ensure_database(ctx)
    provisioner = _provisioner(ctx)
    provisioner.provision(FLAG_SCHEMA.with_collection_id(config.flag_collection_id))

    if is_initialized(ctx):
        ctx.logger.info(
            "Dataset already initialised; skipping the full import.")
        if on_already_initialized is not None:
            on_already_initialized(ctx)
        return SyncReport(
            status=STATUS_ALREADY_INITIALIZED,
            duration_seconds=time.time() - t_start,
        )

    provision_report = provisioner.provision(
        NPI_SCHEMA.with_collection_id(config.collection_id))

    source_label = "<records>"
    if records is None:
        source_path = resolve_source_path(
            config.source_path or None,
            config.downloads_dir,
            logger=ctx.logger,
        )
        source = CsvRecordSource(source_path)
        missing = unmapped_headers(source.headers(), ctx.attribute_dictionary)
        if missing:
            ctx.logger.warning(
                "%d mapped column(s) absent from %s: %s",
                len(missing), source_path.name, ", ".join(missing),
            )
        records = source
        source_label = str(source_path)
    ctx.logger.info("Importing from %s", source_label)

    cache = DedupCache()
    warm_start = time.perf_counter()
    cache.warm(
        ctx.store,
        config.database_id,
        config.collection_id,
        key_field=config.natural_key_field,
        page_size=config.cache_page_size,
        logger=ctx.logger,
    )
    ctx.stats.observe_timing(
        "cache_warm_seconds", time.perf_counter() - warm_start)
    existing_keys = len(cache)

    writer = BatchWriter(
        ctx.store,
        config.database_id,
        config.collection_id,
        batch_size=config.create_batch_size,
        chunk_size=config.chunk_size,
        chunk_delay_seconds=config.chunk_delay_seconds,
        max_parallel_batches=config.max_parallel_batches,
        key_field=config.natural_key_field,
        sleep=ctx.sleep,
        logger=ctx.logger,
        stats=ctx.stats,
        event_sink=ctx.dead_letters,
    )
    with IngestionProgressTracker(
        use_tqdm=use_progress_bar,
        progress_log_interval=config.progress_log_interval,
        logger=ctx.logger,
    ) as progress:
        with writer:
            import_records(
                ctx,
                records,
                cache=cache,
                writer=writer,
                dictionary=ctx.attribute_dictionary,
                progress=progress,
            )

    marker_written = mark_initialized(ctx)

    stats = ctx.stats.get_stats()
    report = SyncReport(
        status=STATUS_COMPLETED,
        source_path=source_label,
        rows_processed=stats["rows_processed"],
        rows_skipped=stats["rows_skipped"],
        rows_invalid=stats["rows_invalid"],
        documents_created=stats["documents_created"],
        documents_failed=stats["documents_failed"],
        existing_keys=existing_keys,
        marker_written=marker_written,
        duration_seconds=time.time() - t_start,
        provision=provision_report,
        write=writer.report,
        failed_keys=list(stats["failed_keys"]),
    )

    _emit_sync_metrics(ctx, report)
    _log_sync_summary(ctx, report)

    if on_complete is not None:
        on_complete(report)
    return report


# ---------------------------------------------------------------------------
# 5. Metrics and summary
# ---------------------------------------------------------------------------


def _emit_sync_metrics(ctx: SyncContext, report: SyncReport) -> None:
    """Export Prometheus and event-sink metrics after the import."""
    prom_path = (ctx.config.prometheus_metrics_file or "").strip()
    if prom_path:
        try:
            MetricsExporter().export_prometheus(
                stats=ctx.stats.get_stats(),
                output_path=prom_path,
                duration_seconds=report.duration_seconds,
                collection_id=ctx.config.collection_id,
                dry_run=ctx.config.dry_run,
            )
            ctx.logger.info("Exported Prometheus metrics to %s", prom_path)
        except OSError as error:
            ctx.logger.warning(
                "Could not export Prometheus metrics: %s", error)

    try:
        ctx.event_sink.emit_event({
            "event_type": "sync_summary",
            "run_id": ctx.stats.get("run_id", ""),
            "source_path": report.source_path,
            "dry_run": ctx.config.dry_run,
            "duration_seconds": report.duration_seconds,
            "rows_processed": report.rows_processed,
            "rows_skipped": report.rows_skipped,
            "rows_invalid": report.rows_invalid,
            "documents_created": report.documents_created,
            "documents_failed": report.documents_failed,
        })
    except OSError as error:
        ctx.logger.warning("Could not write sync summary event: %s", error)


def _log_sync_summary(ctx: SyncContext, report: SyncReport) -> None:
    ctx.logger.info(
        """========================================
            SYNC SUMMARY
            ========================================
            Source:               %s
            Existing keys:        %d
            Rows processed:       %d
            Rows skipped:         %d
            Rows invalid:         %d
            Documents created:    %d
            Documents failed:     %d
            Duration:             %.2fs
            Avg speed:            %.1f documents/sec
            ========================================
            """,
        report.source_path,
        report.existing_keys,
        report.rows_processed,
        report.rows_skipped,
        report.rows_invalid,
        report.documents_created,
        report.documents_failed,
        report.duration_seconds,
        report.documents_per_second,
    )
    if report.failed_keys:
        ctx.logger.warning(
            "%d document(s) failed to write; see the dead-letter log for keys",
            len(report.failed_keys),
        )
    ctx.logger.info("Sync complete")


__all__ = [
    "STATUS_COMPLETED",
    "STATUS_ALREADY_INITIALIZED",
    "SyncReport",
    "ensure_database",
    "is_initialized",
    "mark_initialized",
    "import_records",
    "run_sync",
]
