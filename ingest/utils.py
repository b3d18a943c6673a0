#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Sync utility functions for npi-sync.
This module provides the helpers shared by the import and wipe paths, including:
- Thread-safe run statistics shared between the control thread and write workers.
- A progress tracker that supports both tqdm and simple periodic logging.
- Slicing helpers for batches and chunks.
- Resolution of the monthly NPPES source file inside the downloads directory.
- A metrics exporter that outputs Prometheus text exposition format for monitoring.
"""

import logging
import uuid
from datetime import date
from pathlib import Path
from threading import Lock
from typing import Any, Iterator, Optional, Sequence, TypeVar

from tqdm import tqdm

from config import SOURCE_DIR_TEMPLATE, SOURCE_FILE_GLOB
from npi_exceptions import SourceError

T = TypeVar("T")


def _get_logger(logger: logging.Logger | None) -> logging.Logger:
    return logger or logging.getLogger(__name__)


def slices(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most *size* items."""
    step = max(1, int(size))
    for start in range(0, len(items), step):
        yield list(items[start: start + step])


# ============================================================================
# THREAD-SAFE STATS
# ============================================================================


class ThreadSafeStats:
    def __init__(self):
        self._lock = Lock()
        self._stats: dict[str, Any] = {
            "run_id": uuid.uuid4().hex,
            "rows_processed": 0,
            "rows_skipped": 0,
            "rows_invalid": 0,
            "documents_created": 0,
            "documents_failed": 0,
            "documents_deleted": 0,
            "failed_keys": [],
        }

    def increment(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._stats[key] = self._stats.get(key, 0) + amount

    def append_failed(self, key: str) -> None:
        with self._lock:
            self._stats["failed_keys"].append(key)

    def get(self, key: str, default: Any = 0) -> Any:
        with self._lock:
            return self._stats.get(key, default)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            snapshot = self._stats.copy()
            snapshot["failed_keys"] = list(self._stats["failed_keys"])
            return snapshot

    def observe_timing(self, key: str, value: float) -> None:
        with self._lock:
            count_key = f"{key}_count"
            sum_key = f"{key}_sum"
            max_key = f"{key}_max"
            self._stats[count_key] = self._stats.get(count_key, 0) + 1
            self._stats[sum_key] = self._stats.get(sum_key, 0.0) + float(value)
            current_max = self._stats.get(max_key, 0.0)
            if float(value) > float(current_max):
                self._stats[max_key] = float(value)


# ============================================================================
# PROGRESS BAR IMPLEMENTATION
# ============================================================================


class IngestionProgressTracker:
    """
    Tracks and displays row-level import progress.
    The total is usually unknown for a streamed source, so the bar counts up.
    """

    def __init__(
        self,
        use_tqdm: bool = True,
        progress_log_interval: int = 10000,
        *,
        logger: logging.Logger | None = None,
    ):
        """
        Initialise progress tracker.

        Args:
            use_tqdm: Whether to render a tqdm progress bar
            progress_log_interval: Rows between log lines when tqdm is off
        """
        self.use_tqdm = use_tqdm
        self.progress_log_interval = max(1, progress_log_interval)
        self.pbar = None

        # Statistics
        self.processed = 0
        self.queued = 0
        self.skipped = 0
        self.invalid = 0

        self.logger = _get_logger(logger)

        if use_tqdm:
            self.pbar = tqdm(
                desc="Importing rows",
                unit="row",
                mininterval=1.0,
            )

    def update(self, status: str = "queued") -> None:
        """
        Update progress for a single row.

        Args:
            status: One of 'queued', 'skipped', 'invalid'
        """
        self.processed += 1
        if status == "queued":
            self.queued += 1
        elif status == "skipped":
            self.skipped += 1
        elif status == "invalid":
            self.invalid += 1

        if self.pbar:
            self.pbar.update(1)
            if self.processed % self.progress_log_interval == 0:
                self.pbar.set_postfix({
                    'Queued': self.queued,
                    'Skip': self.skipped,
                    'Invalid': self.invalid,
                })
        elif self.processed % self.progress_log_interval == 0:
            self.logger.info(
                "Progress: %d rows | Queued: %d | Skipped: %d | Invalid: %d",
                self.processed,
                self.queued,
                self.skipped,
                self.invalid,
            )

    def close(self) -> None:
        if self.pbar:
            self.pbar.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# ============================================================================
# SOURCE FILE RESOLUTION
# ============================================================================


def monthly_source_dir(downloads_dir: str | Path, today: Optional[date] = None) -> Path:
    """Directory the monthly NPPES archive is extracted into."""
    today = today or date.today()
    name = SOURCE_DIR_TEMPLATE.format(
        month=today.strftime("%B"), year=today.year)
    return Path(downloads_dir) / name


def resolve_source_path(
    source_path: str | None,
    downloads_dir: str | Path,
    *,
    today: Optional[date] = None,
    logger: logging.Logger | None = None,
) -> Path:
    """
    Locate the CSV to import.

    An explicit *source_path* wins. Otherwise the current month's extraction
    directory is searched for the main data file; the lexically greatest match
    (newest coverage end date) is used.

    Raises:
        SourceError: If no candidate file exists
    """
    log = _get_logger(logger)
    if source_path:
        path = Path(source_path)
        if not path.is_file():
            raise SourceError(f"CSV file does not exist: {path}")
        return path

    extract_dir = monthly_source_dir(downloads_dir, today)
    if not extract_dir.is_dir():
        raise SourceError(f"Extraction directory not found: {extract_dir}")

    candidates = sorted(
        p for p in extract_dir.glob(SOURCE_FILE_GLOB)
        if p.is_file() and "fileheader" not in p.name.lower()
    )
    if not candidates:
        raise SourceError(
            f"No file matching {SOURCE_FILE_GLOB} in {extract_dir}")
    if len(candidates) > 1:
        log.warning(
            "Found %d candidate source files in %s; using %s",
            len(candidates), extract_dir, candidates[-1].name,
        )
    return candidates[-1]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================


class MetricsExporter:
    """
    Export run metrics in Prometheus text exposition format.

    This format works well with the node_exporter textfile collector, or can be
    scraped directly if you serve the file.
    """

    COUNTERS = (
        "rows_processed",
        "rows_skipped",
        "rows_invalid",
        "documents_created",
        "documents_failed",
        "documents_deleted",
        "documents_delete_failed",
        "batches_total",
        "chunks_total",
        "attributes_created_total",
        "provision_attempts_total",
    )
    TIMINGS = (
        "batch_seconds",
        "chunk_seconds",
        "cache_warm_seconds",
        "pacing_sleep_seconds",
    )

    def export_prometheus(
        self,
        *,
        stats: dict[str, Any],
        output_path: str,
        duration_seconds: float,
        collection_id: str,
        dry_run: bool,
    ) -> None:
        def esc_label(value: object) -> str:
            s = str(value)
            s = s.replace("\\", "\\\\").replace(
                "\n", "\\n").replace('"', '\\"')
            return s

        labels = {
            "run_id": str(stats.get("run_id") or uuid.uuid4().hex),
            "collection": collection_id,
            "dry_run": str(dry_run).lower(),
        }
        label_text = ",".join(
            f'{k}="{esc_label(v)}"' for k, v in labels.items()
        )

        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write so Prometheus never reads a partially written file
        tmp_path = out.with_suffix(out.suffix + ".tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write("# HELP npi_sync_run_info Sync run metadata.\n")
            f.write("# TYPE npi_sync_run_info gauge\n")
            f.write(f"npi_sync_run_info{{{label_text}}} 1\n")

            for key in self.COUNTERS:
                if key not in stats:
                    continue
                f.write(f"# HELP npi_sync_{key} {key.replace('_', ' ')}.\n")
                f.write(f"# TYPE npi_sync_{key} counter\n")
                f.write(
                    f"npi_sync_{key}{{{label_text}}} {int(stats.get(key, 0))}\n")

            for base in self.TIMINGS:
                for suffix, kind in (("count", "counter"), ("sum", "counter"), ("max", "gauge")):
                    key = f"{base}_{suffix}"
                    if key not in stats:
                        continue
                    f.write(f"# TYPE npi_sync_{key} {kind}\n")
                    f.write(
                        f"npi_sync_{key}{{{label_text}}} {float(stats.get(key, 0))}\n")

            f.write("# HELP npi_sync_duration_seconds Run duration in seconds.\n")
            f.write("# TYPE npi_sync_duration_seconds gauge\n")
            f.write(
                f"npi_sync_duration_seconds{{{label_text}}} {float(duration_seconds)}\n")

        tmp_path.replace(out)
