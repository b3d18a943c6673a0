from __future__ import annotations

import json

import pytest

from config import NPI_SCHEMA, load_attribute_dictionary
from ingest.field_mapper import map_record, natural_key, unmapped_headers
from npi_exceptions import ConfigError

DICTIONARY = {
    "NPI": "NPI",
    "Provider First Name": "Provider_First_Name",
    "Provider Business Practice Location Address City Name": "Practice_Location_City",
}


def test_maps_headers_to_attribute_names():
    row = {
        "NPI": "1234567890",
        "Provider First Name": "ADA",
        "Provider Business Practice Location Address City Name": "BOSTON",
    }

    assert map_record(row, DICTIONARY) == {
        "NPI": "1234567890",
        "Provider_First_Name": "ADA",
        "Practice_Location_City": "BOSTON",
    }


def test_unmapped_columns_are_dropped():
    row = {"NPI": "1", "Entity Type Code": "1", "Replacement NPI": ""}

    assert map_record(row, DICTIONARY) == {"NPI": "1"}


def test_empty_values_become_none():
    row = {"NPI": "1", "Provider First Name": "",
           "Provider Business Practice Location Address City Name": None}

    document = map_record(row, DICTIONARY)

    assert document["Provider_First_Name"] is None
    assert document["Practice_Location_City"] is None


@pytest.mark.parametrize(
    "value, expected",
    [("1234567890", "1234567890"), ("  42 ", "42"), ("", None), ("   ", None), (None, None)],
)
def test_natural_key(value, expected):
    assert natural_key({"NPI": value}, "NPI") == expected


def test_natural_key_missing_column():
    assert natural_key({"Other": "x"}, "NPI") is None


def test_unmapped_headers_lists_dictionary_entries_absent_from_file():
    headers = ["NPI", "Provider First Name"]

    assert unmapped_headers(headers, DICTIONARY) == [
        "Provider Business Practice Location Address City Name"]


class TestAttributeDictionary:

    def test_bundled_dictionary_targets_declared_attributes(self):
        dictionary = load_attribute_dictionary()

        assert dictionary["NPI"] == "NPI"
        assert set(dictionary.values()) <= set(NPI_SCHEMA.attribute_names)

    def test_custom_dictionary_file(self, tmp_path):
        path = tmp_path / "dictionary.json"
        path.write_text(json.dumps({"NPI": "NPI"}), encoding="utf-8")

        assert load_attribute_dictionary(path) == {"NPI": "NPI"}

    def test_missing_dictionary_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_attribute_dictionary(tmp_path / "missing.json")

    def test_dictionary_must_be_flat_string_mapping(self, tmp_path):
        path = tmp_path / "dictionary.json"
        path.write_text(json.dumps({"NPI": ["NPI"]}), encoding="utf-8")

        with pytest.raises(ConfigError, match="map strings to strings"):
            load_attribute_dictionary(path)
