#!/usr/bin/env python3
"""
CLI entrypoint for deleting every document in a collection.
"""

from __future__ import annotations
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from npi_exceptions import ConfigError, SyncError, wrap_exception
from config import SyncConfig
from ingest import BulkDeleter, SyncContext
from dotenv import load_dotenv
import argparse
import logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Delete all documents from a collection, respecting the store's rate limit"
    )
    parser.add_argument(
        "--collection",
        help="Collection id (default: COLLECTION_ID)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        help="Documents fetched per page",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Concurrent deletions between pacing delays",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the deletion; nothing is deleted without it",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would be deleted without calling the store",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        config = SyncConfig.from_env()
        if args.collection:
            config.collection_id = args.collection
        if args.page_size is not None:
            config.delete_page_size = args.page_size
        if args.batch_size is not None:
            config.delete_batch_size = args.batch_size
        if args.dry_run:
            config.dry_run = True
        if args.log_level:
            config.log_level = args.log_level
        config.validate()
    except (ConfigError, ValueError) as error:
        logging.error("Configuration error: %s", error)
        return 1

    if not args.yes:
        logging.error(
            "Refusing to delete every document in '%s' without --yes",
            config.collection_id,
        )
        return 1

    ctx = SyncContext(config)

    try:
        deleter = BulkDeleter(
            ctx.store,
            config.database_id,
            page_size=config.delete_page_size,
            batch_size=config.delete_batch_size,
            rate_limit_delay_seconds=config.rate_limit_delay_seconds,
            sleep=ctx.sleep,
            logger=ctx.logger,
            stats=ctx.stats,
            event_sink=ctx.dead_letters,
        )
        report = deleter.delete_all(config.collection_id)
    except KeyboardInterrupt:
        ctx.logger.warning("Deletion interrupted by user.")
        return 130
    except ConfigError as error:
        ctx.logger.error("Configuration error: %s", error)
        return 1
    except SyncError as error:
        ctx.logger.error("Deletion failed: %s", error, exc_info=True)
        return 1
    except Exception as error:  # pylint: disable=broad-except
        mapped_error = wrap_exception(error)
        ctx.logger.error("Deletion failed: %s", mapped_error, exc_info=True)
        return 1

    ctx.logger.info(
        "Total documents deleted: %d (failed: %d)", report.deleted, report.failed)
    return 1 if report.stopped_on_failure else 0


if __name__ == "__main__":
    raise SystemExit(main())
