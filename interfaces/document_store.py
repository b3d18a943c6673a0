# DocumentStore port
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from appwrite.enums.index_type import IndexType
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.databases import Databases

from config.schema import AttributeDefinition, AttributeKinds, IndexDefinition
from npi_exceptions import FatalStoreError, classify_store_error

DOCUMENT_ID_FIELD = "$id"


@dataclass
class DocumentPage:
    documents: list[dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.documents


class DocumentStore(Protocol):
    def get_database(self, database_id: str) -> dict[str, Any]: ...
    def create_database(self, database_id: str, name: str) -> dict[str, Any]: ...
    def get_collection(self, database_id: str, collection_id: str) -> dict[str, Any]: ...
    def create_collection(
        self, database_id: str, collection_id: str, name: str) -> dict[str, Any]: ...

    def delete_collection(self, database_id: str, collection_id: str) -> None: ...
    def create_attribute(
        self, database_id: str, collection_id: str, definition: AttributeDefinition) -> None: ...

    def create_index(
        self, database_id: str, collection_id: str, definition: IndexDefinition) -> None: ...

    def list_documents(
        self,
        database_id: str,
        collection_id: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        equal: Optional[Mapping[str, Any]] = None,
    ) -> DocumentPage: ...

    def create_document(
        self, database_id: str, collection_id: str, data: dict[str, Any]) -> dict[str, Any]: ...

    def delete_document(self, database_id: str, collection_id: str, document_id: str) -> None: ...


def live_attribute_names(collection: Mapping[str, Any]) -> set[str]:
    """Attribute keys reported by a get_collection response."""
    return {
        str(attr.get("key"))
        for attr in collection.get("attributes") or []
        if attr.get("key")
    }


def _page_from_documents(documents: list[dict[str, Any]]) -> DocumentPage:
    next_cursor = documents[-1].get(DOCUMENT_ID_FIELD) if documents else None
    return DocumentPage(documents=documents, next_cursor=next_cursor)


class AppwriteDocumentStore:
    """Thin wrapper around the Appwrite Databases service with typed errors."""

    def __init__(self, databases: Databases):
        self._databases = databases

    def _call(self, fn, *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except AppwriteException as error:
            raise classify_store_error(
                getattr(error, "code", None), str(error)) from error

    def get_database(self, database_id: str) -> dict[str, Any]:
        return self._call(self._databases.get, database_id)

    def create_database(self, database_id: str, name: str) -> dict[str, Any]:
        return self._call(self._databases.create, database_id, name)

    def get_collection(self, database_id: str, collection_id: str) -> dict[str, Any]:
        return self._call(self._databases.get_collection, database_id, collection_id)

    def create_collection(self, database_id: str, collection_id: str, name: str) -> dict[str, Any]:
        return self._call(
            self._databases.create_collection, database_id, collection_id, name)

    def delete_collection(self, database_id: str, collection_id: str) -> None:
        self._call(self._databases.delete_collection,
                   database_id, collection_id)

    def create_attribute(
        self,
        database_id: str,
        collection_id: str,
        definition: AttributeDefinition,
    ) -> None:
        if definition.kind == AttributeKinds.STRING:
            self._call(
                self._databases.create_string_attribute,
                database_id,
                collection_id,
                definition.name,
                definition.size,
                definition.required,
                default=definition.default,
            )
        elif definition.kind == AttributeKinds.BOOLEAN:
            self._call(
                self._databases.create_boolean_attribute,
                database_id,
                collection_id,
                definition.name,
                definition.required,
                default=definition.default,
            )
        else:
            raise FatalStoreError(
                f"Unsupported attribute kind '{definition.kind}' for {definition.name}")

    def create_index(
        self,
        database_id: str,
        collection_id: str,
        definition: IndexDefinition,
    ) -> None:
        self._call(
            self._databases.create_index,
            database_id,
            collection_id,
            definition.key,
            IndexType(definition.index_type),
            list(definition.attributes),
            orders=list(definition.orders) or None,
        )

    def list_documents(
        self,
        database_id: str,
        collection_id: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        equal: Optional[Mapping[str, Any]] = None,
    ) -> DocumentPage:
        queries = [Query.limit(limit)]
        if cursor:
            queries.append(Query.cursor_after(cursor))
        for attribute, value in (equal or {}).items():
            queries.append(Query.equal(attribute, value))
        response = self._call(
            self._databases.list_documents,
            database_id,
            collection_id,
            queries=queries,
        )
        return _page_from_documents(list(response.get("documents") or []))

    def create_document(
        self,
        database_id: str,
        collection_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        return self._call(
            self._databases.create_document,
            database_id,
            collection_id,
            ID.unique(),
            data,
        )

    def delete_document(self, database_id: str, collection_id: str, document_id: str) -> None:
        self._call(self._databases.delete_document,
                   database_id, collection_id, document_id)


class DryRunDocumentStore:
    """
    Store stand-in for dry-run mode: logs writes, reads documents as empty.
    Attributes are remembered so schema verification behaves as it would live.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._attributes: dict[str, list[str]] = {}

    def get_database(self, database_id: str) -> dict[str, Any]:
        return {DOCUMENT_ID_FIELD: database_id}

    def create_database(self, database_id: str, name: str) -> dict[str, Any]:
        self.logger.info("[DRY-RUN] Would create database %s", database_id)
        return {DOCUMENT_ID_FIELD: database_id, "name": name}

    def get_collection(self, database_id: str, collection_id: str) -> dict[str, Any]:
        return {
            DOCUMENT_ID_FIELD: collection_id,
            "attributes": [
                {"key": key} for key in self._attributes.get(collection_id, [])
            ],
        }

    def create_collection(self, database_id: str, collection_id: str, name: str) -> dict[str, Any]:
        self.logger.info("[DRY-RUN] Would create collection %s", collection_id)
        self._attributes.setdefault(collection_id, [])
        return {DOCUMENT_ID_FIELD: collection_id, "name": name}

    def delete_collection(self, database_id: str, collection_id: str) -> None:
        self.logger.info("[DRY-RUN] Would delete collection %s", collection_id)
        self._attributes.pop(collection_id, None)

    def create_attribute(
        self,
        database_id: str,
        collection_id: str,
        definition: AttributeDefinition,
    ) -> None:
        self.logger.debug(
            "[DRY-RUN] Would create attribute %s.%s", collection_id, definition.name)
        self._attributes.setdefault(collection_id, []).append(definition.name)

    def create_index(
        self,
        database_id: str,
        collection_id: str,
        definition: IndexDefinition,
    ) -> None:
        self.logger.debug(
            "[DRY-RUN] Would create index %s.%s", collection_id, definition.key)

    def list_documents(
        self,
        database_id: str,
        collection_id: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        equal: Optional[Mapping[str, Any]] = None,
    ) -> DocumentPage:
        return DocumentPage()

    def create_document(
        self,
        database_id: str,
        collection_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        return {DOCUMENT_ID_FIELD: uuid.uuid4().hex, **data}

    def delete_document(self, database_id: str, collection_id: str, document_id: str) -> None:
        self.logger.debug("[DRY-RUN] Would delete document %s", document_id)


__all__ = [
    "DOCUMENT_ID_FIELD",
    "DocumentPage",
    "DocumentStore",
    "AppwriteDocumentStore",
    "DryRunDocumentStore",
    "live_attribute_names",
]
