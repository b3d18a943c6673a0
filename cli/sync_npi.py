#!/usr/bin/env python3
"""
CLI entrypoint for the NPPES import into the document store.
"""

from __future__ import annotations
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from npi_exceptions import (
    ConfigError,
    ProvisioningError,
    SourceError,
    SyncError,
    wrap_exception,
)
from config import SyncConfig
from ingest import SyncContext, run_sync
from dotenv import load_dotenv
import argparse
import logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Import the monthly NPPES NPI file into the document store"
    )
    parser.add_argument(
        "--source",
        help="CSV file to import (default: newest npidata_pfile_*.csv of this month)",
    )
    parser.add_argument(
        "--downloads-dir",
        help="Directory holding the extracted NPPES_Data_Dissemination_<Month>_<Year> folder",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Documents per batch",
    )
    parser.add_argument(
        "--parallel-batches",
        type=int,
        help="Batches written concurrently",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        help="Concurrent writes per chunk inside a batch",
    )
    parser.add_argument(
        "--dead-letter-file",
        help="JSONL file receiving one line per failed document write",
    )
    parser.add_argument(
        "--export-events",
        action="store_true",
        help="Write a run summary event to the events JSONL file",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar display",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse, map and deduplicate only. Do NOT write to the store.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SyncConfig:
    config = SyncConfig.from_env()

    if args.source:
        config.source_path = args.source
    if args.downloads_dir:
        config.downloads_dir = args.downloads_dir
    if args.batch_size is not None:
        config.create_batch_size = args.batch_size
    if args.parallel_batches is not None:
        config.max_parallel_batches = args.parallel_batches
    if args.chunk_size is not None:
        config.chunk_size = args.chunk_size
    if args.dead_letter_file:
        config.dead_letter_file = args.dead_letter_file
    if args.export_events:
        config.export_events = True
    if args.dry_run:
        config.dry_run = True
    if args.log_level:
        config.log_level = args.log_level

    config.validate()
    return config


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        config = build_config(args)
    except (ConfigError, ValueError) as error:
        logging.error("Configuration error: %s", error)
        return 1

    ctx = SyncContext(config)

    try:
        report = run_sync(ctx, use_progress_bar=not args.no_progress)
        ctx.logger.info("Run finished with status '%s'", report.status)
        return 0
    except KeyboardInterrupt:
        ctx.logger.warning(
            "Sync interrupted by user. Re-run to resume; existing documents are skipped.")
        return 130
    except ProvisioningError as error:
        ctx.logger.error("Schema provisioning failed: %s", error)
        return 1
    except SourceError as error:
        ctx.logger.error("Source file error: %s", error)
        return 1
    except ConfigError as error:
        ctx.logger.error("Configuration error: %s", error)
        return 1
    except SyncError as error:
        ctx.logger.error("Sync failed: %s", error, exc_info=True)
        return 1
    except Exception as error:  # pylint: disable=broad-except
        mapped_error = wrap_exception(error)
        ctx.logger.error("Sync failed: %s", mapped_error, exc_info=True)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
