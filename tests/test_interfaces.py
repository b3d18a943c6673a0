"""Tests for the Appwrite adapter error translation and the JSONL event sink."""
from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock

import pytest
from appwrite.exception import AppwriteException

from config import AttributeDefinition, AttributeKinds
from interfaces import AppwriteDocumentStore, DryRunDocumentStore, JsonlEventSink
from npi_exceptions import (
    AlreadyExistsError,
    FatalStoreError,
    NotFoundError,
    RateLimitError,
    TransientStoreError,
    classify_store_error,
    wrap_exception,
    SourceError,
    UnexpectedError,
)


@pytest.mark.parametrize(
    "code, expected",
    [
        (409, AlreadyExistsError),
        (404, NotFoundError),
        (429, RateLimitError),
        (500, TransientStoreError),
        (503, TransientStoreError),
        (400, FatalStoreError),
        (None, FatalStoreError),
    ],
)
def test_classify_store_error(code, expected):
    error = classify_store_error(code, "message")

    assert type(error) is expected
    assert error.code == code


def test_wrap_exception():
    assert isinstance(wrap_exception(ConnectionError("x")), TransientStoreError)
    assert isinstance(wrap_exception(FileNotFoundError("x")), SourceError)
    assert isinstance(wrap_exception(KeyError("x")), UnexpectedError)


class TestAppwriteDocumentStore:

    def setup_method(self):
        self.databases = MagicMock()
        self.store = AppwriteDocumentStore(self.databases)

    def test_sdk_errors_are_translated(self):
        self.databases.create_collection.side_effect = AppwriteException(
            "Collection already exists", 409)

        with pytest.raises(AlreadyExistsError) as exc_info:
            self.store.create_collection("db", "coll", "coll")

        assert exc_info.value.code == 409

    def test_string_attribute(self):
        definition = AttributeDefinition(name="NPI", size=128, required=True)

        self.store.create_attribute("db", "coll", definition)

        self.databases.create_string_attribute.assert_called_once_with(
            "db", "coll", "NPI", 128, True, default=None)

    def test_boolean_attribute(self):
        definition = AttributeDefinition(
            name="IsInitialized", kind=AttributeKinds.BOOLEAN, size=0)

        self.store.create_attribute("db", "coll", definition)

        self.databases.create_boolean_attribute.assert_called_once_with(
            "db", "coll", "IsInitialized", False, default=None)

    def test_unknown_attribute_kind(self):
        with pytest.raises(FatalStoreError):
            self.store.create_attribute(
                "db", "coll", AttributeDefinition(name="x", kind="float"))

    def test_list_documents_builds_cursor_page(self):
        self.databases.list_documents.return_value = {
            "total": 2,
            "documents": [{"$id": "a", "NPI": "1"}, {"$id": "b", "NPI": "2"}],
        }

        page = self.store.list_documents("db", "coll", limit=2, cursor="z")

        assert page.next_cursor == "b"
        assert len(page.documents) == 2
        _, kwargs = self.databases.list_documents.call_args
        assert len(kwargs["queries"]) == 2

    def test_empty_listing(self):
        self.databases.list_documents.return_value = {"total": 0, "documents": []}

        page = self.store.list_documents("db", "coll", limit=10)

        assert page.is_empty
        assert page.next_cursor is None


class TestDryRunDocumentStore:

    def test_remembers_attributes_for_verification(self):
        store = DryRunDocumentStore(logging.getLogger(__name__))
        store.create_collection("db", "coll", "coll")
        store.create_attribute("db", "coll", AttributeDefinition(name="NPI"))

        collection = store.get_collection("db", "coll")

        assert collection["attributes"] == [{"key": "NPI"}]
        assert store.list_documents("db", "coll", limit=10).is_empty


class TestJsonlEventSink:

    def test_appends_timestamped_lines(self, tmp_path):
        path = tmp_path / "nested" / "events.jsonl"
        sink = JsonlEventSink(events_path=str(path))

        sink.emit_event({"event_type": "a"})
        sink.emit_event({"event_type": "b"})

        lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [line["event_type"] for line in lines] == ["a", "b"]
        assert all("timestamp" in line for line in lines)

    def test_empty_path_disables_sink(self, tmp_path):
        sink = JsonlEventSink(events_path="")

        sink.emit_event({"event_type": "a"})

        assert sink.enabled is False
        assert list(tmp_path.iterdir()) == []
