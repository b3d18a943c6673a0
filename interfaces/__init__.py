"""
Interfaces package exports.
"""

from .document_store import (
    DOCUMENT_ID_FIELD,
    DocumentPage,
    DocumentStore,
    AppwriteDocumentStore,
    DryRunDocumentStore,
    live_attribute_names,
)
from .event_sink import EventSink, JsonlEventSink, utc_timestamp

__all__ = [
    "DOCUMENT_ID_FIELD",
    "DocumentPage",
    "DocumentStore",
    "AppwriteDocumentStore",
    "DryRunDocumentStore",
    "live_attribute_names",
    "EventSink",
    "JsonlEventSink",
    "utc_timestamp",
]
