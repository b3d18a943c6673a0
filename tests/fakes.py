"""In-memory stand-ins for the document store and pacing sleeps."""
from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from typing import Any, Mapping, Optional

from interfaces import DOCUMENT_ID_FIELD, DocumentPage
from npi_exceptions import AlreadyExistsError, FatalStoreError, NotFoundError


class FakeDocumentStore:
    """
    Implements the DocumentStore port in memory.

    Every call is appended to ``events`` as ``(method, argument)``; pass
    ``store.sleep`` as the pacing function so sleeps land in the same log.
    Errors can be scripted per method or per attribute/key.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.databases: dict[str, str] = {}
        self.collections: dict[str, dict[str, Any]] = {}
        self.documents: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.events: list[tuple[str, Any]] = []

        # method name -> exceptions raised (in order) before normal behaviour
        self.scripted_errors: dict[str, list[Exception]] = defaultdict(list)
        # attribute name -> exceptions raised by create_attribute
        self.attribute_errors: dict[str, list[Exception]] = defaultdict(list)
        # attributes that report success but never become visible
        self.phantom_attributes: set[str] = set()
        self.fail_create_keys: set[str] = set()
        self.fail_delete_ids: set[str] = set()
        self.key_field = "NPI"

    # -- helpers --

    def _record(self, method: str, argument: Any = None) -> None:
        with self._lock:
            self.events.append((method, argument))

    def _raise_scripted(self, method: str) -> None:
        with self._lock:
            queue = self.scripted_errors.get(method)
            error = queue.pop(0) if queue else None
        if error is not None:
            raise error

    def _collection(self, collection_id: str) -> dict[str, Any]:
        collection = self.collections.get(collection_id)
        if collection is None:
            raise NotFoundError(f"Collection {collection_id} not found", 404)
        return collection

    def calls(self, method: str) -> list[Any]:
        return [arg for name, arg in self.events if name == method]

    def sleep(self, seconds: float) -> None:
        self._record("sleep", seconds)

    def add_collection(self, collection_id: str, attributes=()) -> None:
        self.collections[collection_id] = {
            "name": collection_id,
            "attributes": list(attributes),
            "indexes": [],
        }

    def seed_documents(self, collection_id: str, count: int, *, prefix: str = "") -> None:
        for number in range(count):
            doc_id = f"seed-{next(self._ids)}"
            self.documents[collection_id].append(
                {DOCUMENT_ID_FIELD: doc_id, self.key_field: f"{prefix}{number}"})

    # -- DocumentStore --

    def get_database(self, database_id: str) -> dict[str, Any]:
        self._record("get_database", database_id)
        self._raise_scripted("get_database")
        if database_id not in self.databases:
            raise NotFoundError(f"Database {database_id} not found", 404)
        return {DOCUMENT_ID_FIELD: database_id, "name": self.databases[database_id]}

    def create_database(self, database_id: str, name: str) -> dict[str, Any]:
        self._record("create_database", database_id)
        self._raise_scripted("create_database")
        if database_id in self.databases:
            raise AlreadyExistsError(f"Database {database_id} exists", 409)
        self.databases[database_id] = name
        return {DOCUMENT_ID_FIELD: database_id, "name": name}

    def get_collection(self, database_id: str, collection_id: str) -> dict[str, Any]:
        self._record("get_collection", collection_id)
        self._raise_scripted("get_collection")
        collection = self._collection(collection_id)
        return {
            DOCUMENT_ID_FIELD: collection_id,
            "attributes": [
                {"key": name, "status": "available"}
                for name in collection["attributes"]
            ],
        }

    def create_collection(self, database_id: str, collection_id: str, name: str) -> dict[str, Any]:
        self._record("create_collection", collection_id)
        self._raise_scripted("create_collection")
        if collection_id in self.collections:
            raise AlreadyExistsError(f"Collection {collection_id} exists", 409)
        self.add_collection(collection_id)
        self.collections[collection_id]["name"] = name
        return {DOCUMENT_ID_FIELD: collection_id, "name": name}

    def delete_collection(self, database_id: str, collection_id: str) -> None:
        self._record("delete_collection", collection_id)
        self._raise_scripted("delete_collection")
        self._collection(collection_id)
        del self.collections[collection_id]
        self.documents.pop(collection_id, None)

    def create_attribute(self, database_id: str, collection_id: str, definition) -> None:
        self._record("create_attribute", definition.name)
        with self._lock:
            queue = self.attribute_errors.get(definition.name)
            error = queue.pop(0) if queue else None
        if error is not None:
            raise error
        collection = self._collection(collection_id)
        if definition.name in collection["attributes"]:
            raise AlreadyExistsError(
                f"Attribute {definition.name} already exists", 409)
        if definition.name not in self.phantom_attributes:
            collection["attributes"].append(definition.name)

    def create_index(self, database_id: str, collection_id: str, definition) -> None:
        self._record("create_index", definition.key)
        self._raise_scripted("create_index")
        collection = self._collection(collection_id)
        if definition.key in collection["indexes"]:
            raise AlreadyExistsError(f"Index {definition.key} exists", 409)
        collection["indexes"].append(definition.key)

    def list_documents(
        self,
        database_id: str,
        collection_id: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        equal: Optional[Mapping[str, Any]] = None,
    ) -> DocumentPage:
        self._record("list_documents", limit)
        self._raise_scripted("list_documents")
        self._collection(collection_id)
        with self._lock:
            documents = list(self.documents[collection_id])
        if cursor is not None:
            ids = [doc[DOCUMENT_ID_FIELD] for doc in documents]
            documents = documents[ids.index(cursor) + 1:]
        for attribute, value in (equal or {}).items():
            documents = [doc for doc in documents if doc.get(attribute) == value]
        page = documents[:limit]
        next_cursor = page[-1][DOCUMENT_ID_FIELD] if page else None
        return DocumentPage(documents=page, next_cursor=next_cursor)

    def create_document(self, database_id: str, collection_id: str, data: dict[str, Any]) -> dict[str, Any]:
        self._record("create_document", data.get(self.key_field))
        self._raise_scripted("create_document")
        self._collection(collection_id)
        if data.get(self.key_field) in self.fail_create_keys:
            raise FatalStoreError(
                f"Invalid document {data.get(self.key_field)}", 400)
        document = {DOCUMENT_ID_FIELD: f"doc-{next(self._ids)}", **data}
        with self._lock:
            self.documents[collection_id].append(document)
        return document

    def delete_document(self, database_id: str, collection_id: str, document_id: str) -> None:
        self._record("delete_document", document_id)
        self._raise_scripted("delete_document")
        if document_id in self.fail_delete_ids:
            raise FatalStoreError(f"Cannot delete {document_id}", 500)
        with self._lock:
            remaining = [
                doc for doc in self.documents[collection_id]
                if doc[DOCUMENT_ID_FIELD] != document_id
            ]
            if len(remaining) == len(self.documents[collection_id]):
                raise NotFoundError(f"Document {document_id} not found", 404)
            self.documents[collection_id] = remaining
