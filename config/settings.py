#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration settings for npi-sync.
Environment-driven with validation.
"""

from dataclasses import dataclass
import os
import logging

from dotenv import load_dotenv

from npi_exceptions import ConfigError
from .constant import (
    ATTRIBUTE_CREATE_DELAY_SECONDS,
    ATTRIBUTE_MAX_RETRIES,
    ATTRIBUTE_RETRY_DELAY_SECONDS,
    CACHE_PAGE_SIZE,
    CHUNK_DELAY_SECONDS,
    CHUNK_SIZE,
    COLLECTION_ID,
    CREATE_BATCH_SIZE,
    DATABASE_ID,
    DATABASE_NAME,
    DEFAULT_DOWNLOADS_DIR,
    DELETE_BATCH_SIZE,
    DELETE_PAGE_SIZE,
    FLAG_COLLECTION_ID,
    MAX_PARALLEL_BATCHES,
    NATURAL_KEY_FIELD,
    PROGRESS_LOG_INTERVAL,
    PROVISION_MAX_ATTEMPTS,
    RATE_LIMIT_DELAY_SECONDS,
)


# Load a local .env before any environment lookups
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


# ===========================================================================
# SYNC CONFIGURATION
# ===========================================================================


@dataclass
class SyncConfig:
    """Centralised configuration for a sync or wipe run."""

    endpoint: str
    project_id: str
    api_key: str

    database_id: str = DATABASE_ID
    database_name: str = DATABASE_NAME
    collection_id: str = COLLECTION_ID
    flag_collection_id: str = FLAG_COLLECTION_ID
    natural_key_field: str = NATURAL_KEY_FIELD

    source_path: str = ""
    downloads_dir: str = DEFAULT_DOWNLOADS_DIR
    attribute_dictionary_path: str = ""

    create_batch_size: int = CREATE_BATCH_SIZE
    chunk_size: int = CHUNK_SIZE
    chunk_delay_seconds: float = CHUNK_DELAY_SECONDS
    max_parallel_batches: int = MAX_PARALLEL_BATCHES
    cache_page_size: int = CACHE_PAGE_SIZE

    delete_page_size: int = DELETE_PAGE_SIZE
    delete_batch_size: int = DELETE_BATCH_SIZE
    rate_limit_delay_seconds: float = RATE_LIMIT_DELAY_SECONDS

    attribute_max_retries: int = ATTRIBUTE_MAX_RETRIES
    attribute_retry_delay_seconds: float = ATTRIBUTE_RETRY_DELAY_SECONDS
    attribute_create_delay_seconds: float = ATTRIBUTE_CREATE_DELAY_SECONDS
    provision_max_attempts: int = PROVISION_MAX_ATTEMPTS

    progress_log_interval: int = PROGRESS_LOG_INTERVAL
    log_level: str = "INFO"
    dry_run: bool = False

    dead_letter_file: str = ""
    export_events: bool = False
    events_file: str = "npi_sync_events.jsonl"
    prometheus_metrics_file: str = ""

    # -----------------------------------------------------------------------
    # ENVIRONMENT LOADERS
    # -----------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "SyncConfig":
        defaults = SyncConfig(endpoint="", project_id="", api_key="")

        return cls(
            endpoint=os.getenv("APPWRITE_ENDPOINT", ""),
            project_id=os.getenv("APPWRITE_PROJECT_ID", ""),
            api_key=os.getenv("APPWRITE_API_KEY", ""),
            database_id=os.getenv("DATABASE_ID", defaults.database_id),
            database_name=os.getenv("DATABASE_NAME", defaults.database_name),
            collection_id=os.getenv("COLLECTION_ID", defaults.collection_id),
            flag_collection_id=os.getenv(
                "FLAG_COLLECTION_ID", defaults.flag_collection_id),
            source_path=os.getenv("SOURCE_PATH", defaults.source_path),
            downloads_dir=os.getenv("DOWNLOADS_DIR", defaults.downloads_dir),
            attribute_dictionary_path=os.getenv(
                "ATTRIBUTE_DICTIONARY_PATH", defaults.attribute_dictionary_path),
            create_batch_size=int(
                os.getenv("CREATE_BATCH_SIZE", str(defaults.create_batch_size))),
            chunk_size=int(os.getenv("CHUNK_SIZE", str(defaults.chunk_size))),
            chunk_delay_seconds=float(
                os.getenv("CHUNK_DELAY_SECONDS", str(defaults.chunk_delay_seconds))),
            max_parallel_batches=int(
                os.getenv("MAX_PARALLEL_BATCHES", str(defaults.max_parallel_batches))),
            cache_page_size=int(
                os.getenv("CACHE_PAGE_SIZE", str(defaults.cache_page_size))),
            delete_page_size=int(
                os.getenv("DELETE_PAGE_SIZE", str(defaults.delete_page_size))),
            delete_batch_size=int(
                os.getenv("DELETE_BATCH_SIZE", str(defaults.delete_batch_size))),
            rate_limit_delay_seconds=float(
                os.getenv("RATE_LIMIT_DELAY_SECONDS",
                          str(defaults.rate_limit_delay_seconds))),
            attribute_max_retries=int(
                os.getenv("ATTRIBUTE_MAX_RETRIES",
                          str(defaults.attribute_max_retries))),
            attribute_retry_delay_seconds=float(
                os.getenv("ATTRIBUTE_RETRY_DELAY_SECONDS",
                          str(defaults.attribute_retry_delay_seconds))),
            attribute_create_delay_seconds=float(
                os.getenv("ATTRIBUTE_CREATE_DELAY_SECONDS",
                          str(defaults.attribute_create_delay_seconds))),
            provision_max_attempts=int(
                os.getenv("PROVISION_MAX_ATTEMPTS",
                          str(defaults.provision_max_attempts))),
            progress_log_interval=int(
                os.getenv("PROGRESS_LOG_INTERVAL",
                          str(defaults.progress_log_interval))),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            dry_run=_env_bool("DRY_RUN", defaults.dry_run),
            dead_letter_file=os.getenv(
                "DEAD_LETTER_FILE", defaults.dead_letter_file),
            export_events=_env_bool("EXPORT_EVENTS", defaults.export_events),
            events_file=os.getenv("EVENTS_FILE", defaults.events_file),
            prometheus_metrics_file=os.getenv(
                "PROMETHEUS_METRICS_FILE", defaults.prometheus_metrics_file),
        )

    @property
    def super_batch_size(self) -> int:
        return self.create_batch_size * self.max_parallel_batches

    # -----------------------------------------------------------------------
    # VALIDATION
    # -----------------------------------------------------------------------

    def validate(self) -> None:

        if not self.dry_run:
            if not self.endpoint:
                raise ConfigError("APPWRITE_ENDPOINT not set")
            if not self.project_id:
                raise ConfigError("APPWRITE_PROJECT_ID not set")
            if not self.api_key:
                raise ConfigError("APPWRITE_API_KEY not set")

        for name in ("database_id", "collection_id", "flag_collection_id"):
            if not getattr(self, name):
                raise ConfigError(f"{name} must not be empty")
        if self.collection_id == self.flag_collection_id:
            raise ConfigError(
                "collection_id and flag_collection_id must differ")

        if self.create_batch_size < 1 or self.create_batch_size > 1000:
            raise ConfigError("create_batch_size out of range (1-1000)")
        if self.chunk_size < 1 or self.chunk_size > self.create_batch_size:
            raise ConfigError(
                "chunk_size out of range (1-create_batch_size)")
        if self.max_parallel_batches < 1:
            raise ConfigError("max_parallel_batches must be >= 1")
        if self.cache_page_size < 1 or self.cache_page_size > 5000:
            raise ConfigError("cache_page_size out of range (1-5000)")
        if self.chunk_delay_seconds < 0:
            raise ConfigError("chunk_delay_seconds must be >= 0")

        if self.delete_page_size < 1:
            raise ConfigError("delete_page_size must be >= 1")
        if self.delete_batch_size < 1:
            raise ConfigError("delete_batch_size must be >= 1")
        if self.rate_limit_delay_seconds < 0:
            raise ConfigError("rate_limit_delay_seconds must be >= 0")
        if self.rate_limit_delay_seconds < RATE_LIMIT_DELAY_SECONDS:
            logging.warning(
                "rate_limit_delay_seconds (%.1fs) is below the %.1fs store window; "
                "deletions may be throttled.",
                self.rate_limit_delay_seconds,
                RATE_LIMIT_DELAY_SECONDS,
            )

        if self.attribute_max_retries < 1:
            raise ConfigError("attribute_max_retries must be >= 1")
        if self.attribute_retry_delay_seconds < 0:
            raise ConfigError("attribute_retry_delay_seconds must be >= 0")
        if self.attribute_create_delay_seconds < 0:
            raise ConfigError("attribute_create_delay_seconds must be >= 0")
        if self.provision_max_attempts < 1:
            raise ConfigError("provision_max_attempts must be >= 1")
        if self.progress_log_interval < 1:
            raise ConfigError("progress_log_interval must be >= 1")

        in_flight = self.max_parallel_batches * self.chunk_size
        if in_flight > 1000:
            logging.warning(
                "max_parallel_batches x chunk_size allows %d concurrent writes; "
                "consider lowering MAX_PARALLEL_BATCHES or CHUNK_SIZE.",
                in_flight,
            )

        if self.dry_run:
            logging.info("Dry-run enabled: no writes will reach %s",
                         self.endpoint or "the store")
        else:
            logging.info(
                "Store target: %s (project=%s, database=%s)",
                self.endpoint,
                self.project_id,
                self.database_id,
            )


__all__ = [
    "SyncConfig",
]
