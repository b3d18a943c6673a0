#!/usr/bin/env python3
"""
Schema provisioning for npi-sync.
This module defines the ProvisionPolicy and SchemaProvisioner classes, which
together make sure a collection and every declared attribute exist in the store:
- ProvisionPolicy is pure: it decides whether a failed call counts as done,
  is retried, is skipped, or aborts provisioning.
- SchemaProvisioner performs the calls, verifies the live attribute list against
  the declared schema, and recreates the collection when they drift apart.

Recreation is a bounded loop; after max_attempts passes provisioning fails with
ProvisioningError and the run stops.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Optional

from config import (
    ATTRIBUTE_CREATE_DELAY_SECONDS,
    ATTRIBUTE_MAX_RETRIES,
    ATTRIBUTE_RETRY_DELAY_SECONDS,
    PROVISION_MAX_ATTEMPTS,
    CollectionSchema,
)
from interfaces import DocumentStore, live_attribute_names
from npi_exceptions import (
    AlreadyExistsError,
    NotFoundError,
    ProvisioningError,
    RetriableError,
    StoreError,
)
from .utils import ThreadSafeStats


# ---------------------------------------------------------------------------
# 1. ProvisionPolicy  (pure: no I/O, no sleeping)
# ---------------------------------------------------------------------------


class ProvisionAction(Enum):
    DONE = auto()
    RETRY = auto()
    SKIP = auto()
    FAIL = auto()


class ProvisionPolicy:
    """
    Classifies store errors raised while creating schema objects.

    - AlreadyExists: the object is there, count as done.
    - NotFound (collection not yet visible) and retriable faults: retry until
      max_attempts calls have been made, then fail.
    - Anything else: skip this object and carry on with the rest.
    """

    def __init__(self, *, max_attempts: int = ATTRIBUTE_MAX_RETRIES) -> None:
        self.max_attempts = max(1, int(max_attempts))

    @staticmethod
    def is_transient(error: Exception) -> bool:
        return isinstance(error, (NotFoundError, RetriableError, ConnectionError, TimeoutError))

    def next_action(self, error: Exception, attempt: int) -> ProvisionAction:
        """
        Args:
            error: The exception raised by the create call.
            attempt: 1-based number of the call that just failed.
        """
        if isinstance(error, AlreadyExistsError):
            return ProvisionAction.DONE
        if self.is_transient(error):
            if attempt < self.max_attempts:
                return ProvisionAction.RETRY
            return ProvisionAction.FAIL
        return ProvisionAction.SKIP


# ---------------------------------------------------------------------------
# 2. ProvisionReport
# ---------------------------------------------------------------------------


@dataclass
class ProvisionReport:
    """Outcome of SchemaProvisioner.provision()."""
    collection_id: str
    attempts: int = 0
    recreated: int = 0
    attributes_created: list[str] = field(default_factory=list)
    attributes_existing: list[str] = field(default_factory=list)
    # Kept across attempts; a skip is what triggers a recreate.
    attributes_skipped: list[str] = field(default_factory=list)
    indexes_created: list[str] = field(default_factory=list)
    indexes_failed: list[str] = field(default_factory=list)

    @property
    def create_calls(self) -> int:
        return len(self.attributes_created)


# ---------------------------------------------------------------------------
# 3. SchemaProvisioner  (effects)
# ---------------------------------------------------------------------------


class SchemaProvisioner:
    """Ensures a collection and its declared attributes exist and match."""

    def __init__(
        self,
        store: DocumentStore,
        database_id: str,
        *,
        attribute_max_retries: int = ATTRIBUTE_MAX_RETRIES,
        retry_delay_seconds: float = ATTRIBUTE_RETRY_DELAY_SECONDS,
        create_delay_seconds: float = ATTRIBUTE_CREATE_DELAY_SECONDS,
        max_attempts: int = PROVISION_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
        stats: Optional[ThreadSafeStats] = None,
    ) -> None:
        self._store = store
        self._database_id = database_id
        self._policy = ProvisionPolicy(max_attempts=attribute_max_retries)
        self._retry_delay = retry_delay_seconds
        self._create_delay = create_delay_seconds
        self._max_attempts = max(1, int(max_attempts))
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self._stats = stats or ThreadSafeStats()

    # -- public API --

    def provision(self, schema: CollectionSchema) -> ProvisionReport:
        """
        Create the collection and its attributes, then verify them.

        Missing attributes after a pass cause the collection to be deleted and
        the pass to run again, at most max_attempts times.

        Raises:
            ProvisioningError: If an attribute exhausts its retries, the
                collection cannot be created or deleted, or drift persists.
        """
        report = ProvisionReport(collection_id=schema.collection_id)

        for attempt in range(1, self._max_attempts + 1):
            report.attempts = attempt
            report.attributes_created = []
            report.attributes_existing = []
            self._stats.increment("provision_attempts_total")
            self._logger.info(
                "Provisioning collection '%s' (attempt %d/%d)",
                schema.collection_id, attempt, self._max_attempts,
            )

            self.ensure_collection(schema)
            self._add_attributes(schema, report)

            missing = self.verify(schema)
            if not missing:
                self._add_indexes(schema, report)
                self._logger.info(
                    "Collection '%s' verified: %d attributes present "
                    "(%d created, %d already existed)",
                    schema.collection_id,
                    len(schema.attributes),
                    len(report.attributes_created),
                    len(report.attributes_existing),
                )
                return report

            self._logger.warning(
                "Missing attributes detected in '%s': %s. Deleting collection and retrying...",
                schema.collection_id,
                ", ".join(missing),
            )
            self._delete_collection(schema.collection_id)
            report.recreated += 1

        raise ProvisioningError(
            f"Collection '{schema.collection_id}' still drifts from its schema "
            f"after {self._max_attempts} provisioning attempt(s)"
        )

    def ensure_collection(self, schema: CollectionSchema) -> None:
        """Create the collection; an existing collection counts as success."""
        try:
            created = self._call_with_policy(
                f"collection {schema.collection_id}",
                lambda: self._store.create_collection(
                    self._database_id, schema.collection_id, schema.name),
            )
        except _SkippedCall as skipped:
            raise ProvisioningError(
                f"Could not create collection '{schema.collection_id}': {skipped.error}"
            ) from skipped.error
        if created:
            self._logger.info(
                "Collection '%s' created successfully.", schema.collection_id)
        else:
            self._logger.info("Collection '%s' exists.", schema.collection_id)

    def verify(self, schema: CollectionSchema) -> list[str]:
        """Return declared attribute names absent from the live collection."""
        live = self._live_attributes(schema.collection_id)
        return [name for name in schema.attribute_names if name not in live]

    # -- private helpers --

    def _live_attributes(self, collection_id: str) -> set[str]:
        try:
            collection = self._store.get_collection(
                self._database_id, collection_id)
        except NotFoundError:
            return set()
        except StoreError as error:
            raise ProvisioningError(
                f"Could not read collection '{collection_id}': {error}") from error
        return live_attribute_names(collection)

    def _add_attributes(self, schema: CollectionSchema, report: ProvisionReport) -> None:
        live = self._live_attributes(schema.collection_id)
        for definition in schema.attributes:
            if definition.name in live:
                report.attributes_existing.append(definition.name)
                continue
            try:
                created = self._call_with_policy(
                    f"attribute {definition.name}",
                    lambda d=definition: self._store.create_attribute(
                        self._database_id, schema.collection_id, d),
                )
            except _SkippedCall as skipped:
                self._logger.error(
                    "Error adding attribute %s: %s", definition.name, skipped.error)
                report.attributes_skipped.append(definition.name)
            else:
                if created:
                    self._logger.info(
                        "Attribute %s added successfully", definition.name)
                    self._stats.increment("attributes_created_total")
                    report.attributes_created.append(definition.name)
                else:
                    self._logger.info(
                        "Attribute %s already exists, skipping...", definition.name)
                    report.attributes_existing.append(definition.name)
            self._sleep(self._create_delay)

    def _add_indexes(self, schema: CollectionSchema, report: ProvisionReport) -> None:
        for definition in schema.indexes:
            try:
                created = self._call_with_policy(
                    f"index {definition.key}",
                    lambda d=definition: self._store.create_index(
                        self._database_id, schema.collection_id, d),
                )
            except (_SkippedCall, ProvisioningError) as error:
                self._logger.warning(
                    "Could not create index %s on '%s': %s",
                    definition.key, schema.collection_id, error,
                )
                report.indexes_failed.append(definition.key)
                continue
            if created:
                self._logger.info("Index %s created successfully", definition.key)
                report.indexes_created.append(definition.key)
            else:
                self._logger.info("Index %s already exists.", definition.key)

    def _delete_collection(self, collection_id: str) -> None:
        try:
            self._store.delete_collection(self._database_id, collection_id)
        except NotFoundError:
            self._logger.info(
                "Collection '%s' already absent before recreation", collection_id)
        except StoreError as error:
            raise ProvisioningError(
                f"Could not delete drifted collection '{collection_id}': {error}"
            ) from error

    def _call_with_policy(self, label: str, call: Callable[[], object]) -> bool:
        """
        Run *call* under ProvisionPolicy.

        Returns True when the object was created and False when it already
        existed. Raises _SkippedCall for non-retryable errors and
        ProvisioningError once retries are exhausted.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                call()
                return True
            except Exception as error:  # pylint: disable=broad-except
                action = self._policy.next_action(error, attempt)
                if action is ProvisionAction.DONE:
                    return False
                if action is ProvisionAction.SKIP:
                    raise _SkippedCall(error) from error
                if action is ProvisionAction.FAIL:
                    self._logger.error(
                        "Failed to add %s after %d attempts: %s",
                        label, attempt, error,
                    )
                    raise ProvisioningError(
                        f"Failed to add {label} after {attempt} attempts: {error}"
                    ) from error
                self._logger.warning(
                    "Transient error adding %s (attempt %d/%d), retrying in %.1fs: %s",
                    label,
                    attempt,
                    self._policy.max_attempts,
                    self._retry_delay,
                    error,
                )
                self._sleep(self._retry_delay)


class _SkippedCall(Exception):
    """Non-retryable failure of a single schema object."""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error
