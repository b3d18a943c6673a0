"""
Ingest package exports.
"""

from .context import SyncContext
from .batch_writer import Batcher, BatchWriter, WriteReport, WriteResult
from .bulk_deleter import BulkDeleter, DeleteReport
from .dedup_cache import DedupCache
from .field_mapper import map_record, natural_key, unmapped_headers
from .orchestrator import SyncReport, import_records, run_sync
from .record_source import CsvRecordSource
from .schema_provisioner import (
    ProvisionAction,
    ProvisionPolicy,
    ProvisionReport,
    SchemaProvisioner,
)

__all__ = [
    "SyncContext",
    "Batcher",
    "BatchWriter",
    "WriteReport",
    "WriteResult",
    "BulkDeleter",
    "DeleteReport",
    "DedupCache",
    "map_record",
    "natural_key",
    "unmapped_headers",
    "SyncReport",
    "import_records",
    "run_sync",
    "CsvRecordSource",
    "ProvisionAction",
    "ProvisionPolicy",
    "ProvisionReport",
    "SchemaProvisioner",
]
