"""
In-memory natural-key cache used to keep the collection free of duplicates.

One cache is created per run and passed into the pipeline. It is mutated only
by the control thread, never from write workers.
"""
from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from interfaces import DocumentStore


class DedupCache:
    """Set of natural keys already present in, or queued for, the collection."""

    def __init__(self, keys: Optional[Iterable[str]] = None):
        self._keys: set[str] = set(keys or ())

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def contains(self, key: str) -> bool:
        return key in self._keys

    def add(self, key: str) -> None:
        self._keys.add(key)

    def keys(self) -> frozenset[str]:
        return frozenset(self._keys)

    def warm(
        self,
        store: DocumentStore,
        database_id: str,
        collection_id: str,
        *,
        key_field: str,
        page_size: int,
        logger: logging.Logger | None = None,
    ) -> set[str]:
        """
        Page through every existing document and record its natural key.

        Paging uses the last document id as cursor and ends on the first empty page.
        Returns a copy of the key set after warm-up.
        """
        log = logger or logging.getLogger(__name__)
        start = time.perf_counter()
        cursor: Optional[str] = None
        pages = 0
        missing_key = 0

        while True:
            page = store.list_documents(
                database_id,
                collection_id,
                limit=page_size,
                cursor=cursor,
            )
            if page.is_empty:
                break
            pages += 1
            for document in page.documents:
                key = document.get(key_field)
                if key:
                    self._keys.add(str(key))
                else:
                    missing_key += 1
            cursor = page.next_cursor
            log.info("Cached %d existing %s values...", len(self._keys), key_field)
            if cursor is None:
                break

        if missing_key:
            log.warning(
                "%d existing document(s) have no %s value", missing_key, key_field)
        log.info(
            "Dedup cache warmed with %d keys from %d page(s) in %.2fs",
            len(self._keys),
            pages,
            time.perf_counter() - start,
        )
        return set(self._keys)
