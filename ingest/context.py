"""
Sync Context module.
This module defines the SyncContext class, which serves as a container
for all run dependencies. It provides dependency injection for
cleaner, testable code.
"""
import logging
import threading
import time
from typing import Callable, Optional

from clients import get_databases
from config import SyncConfig, load_attribute_dictionary
from interfaces import (
    AppwriteDocumentStore,
    DocumentStore,
    DryRunDocumentStore,
    EventSink,
    JsonlEventSink,
)
from .utils import ThreadSafeStats


def _no_sleep(_seconds: float) -> None:
    return None


# ============================================================================
# SYNC CONTEXT
# ============================================================================


class SyncContext:
    """
    Container for all sync dependencies.
    Provides dependency injection for cleaner, testable code.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        store: Optional[DocumentStore] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialise sync context.

        Args:
            config: Run configuration
            store: Optional document store; built lazily from config when omitted
            sleep: Pacing function; defaults to time.sleep, or a no-op in dry-run
        """
        self.config = config

        # Setup logging
        logging.basicConfig(
            level=config.log_level,
            format="%(asctime)s %(levelname)s %(message)s",
        )
        self.logger = logging.getLogger(__name__)

        if sleep is None:
            sleep = _no_sleep if config.dry_run else time.sleep
        self.sleep = sleep

        self._store: DocumentStore | None = store
        self._event_sink: EventSink | None = None
        self._dead_letters: EventSink | None = None
        self._attribute_dictionary: dict[str, str] | None = None

        # Thread-safe utilities
        self.stats = ThreadSafeStats()
        self.export_events_lock = threading.Lock()

    @property
    def store(self) -> DocumentStore:
        """Get the document store (lazy init)."""
        if self._store is None:
            if self.config.dry_run:
                self._store = DryRunDocumentStore(self.logger)
            else:
                self._store = AppwriteDocumentStore(
                    get_databases(
                        self.config.endpoint,
                        self.config.project_id,
                        self.config.api_key,
                    )
                )
        return self._store

    @property
    def event_sink(self) -> EventSink:
        """Run-level events (summaries); disabled unless export_events is set."""
        if self._event_sink is None:
            path = ""
            if self.config.export_events and not self.config.dry_run:
                path = self.config.events_file
            self._event_sink = JsonlEventSink(
                events_path=path,
                lock=self.export_events_lock,
            )
        return self._event_sink

    @property
    def dead_letters(self) -> EventSink:
        """Per-document failures, for reconciliation after a run."""
        if self._dead_letters is None:
            self._dead_letters = JsonlEventSink(
                events_path=self.config.dead_letter_file,
            )
        return self._dead_letters

    @property
    def attribute_dictionary(self) -> dict[str, str]:
        """CSV-header -> attribute-name dictionary (lazy load)."""
        if self._attribute_dictionary is None:
            self._attribute_dictionary = load_attribute_dictionary(
                self.config.attribute_dictionary_path or None)
        return self._attribute_dictionary
