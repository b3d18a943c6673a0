#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Declared collection schemas for npi-sync.

The attribute list of the primary collection and the CSV-header dictionary
are static data: the provisioner creates exactly these attributes and the
field mapper projects source rows onto them.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from npi_exceptions import ConfigError
from .constant import (
    COLLECTION_ID,
    COLLECTION_NAME,
    FLAG_ATTRIBUTE,
    FLAG_COLLECTION_ID,
    FLAG_COLLECTION_NAME,
    NATURAL_KEY_FIELD,
)

DEFAULT_ATTRIBUTE_DICTIONARY_PATH = Path(
    __file__).with_name("attribute_dictionary.json")


class AttributeKinds:
    STRING = "string"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class AttributeDefinition:
    name: str
    kind: str = AttributeKinds.STRING
    size: int = 128
    required: bool = False
    default: Optional[bool | str] = None


@dataclass(frozen=True)
class IndexDefinition:
    key: str
    attributes: tuple[str, ...]
    orders: tuple[str, ...] = ()
    index_type: str = "key"


@dataclass(frozen=True)
class CollectionSchema:
    collection_id: str
    name: str
    attributes: tuple[AttributeDefinition, ...]
    indexes: tuple[IndexDefinition, ...] = field(default_factory=tuple)

    @property
    def attribute_names(self) -> list[str]:
        return [attr.name for attr in self.attributes]

    def with_collection_id(self, collection_id: str) -> "CollectionSchema":
        if collection_id == self.collection_id:
            return self
        return CollectionSchema(
            collection_id=collection_id,
            name=collection_id,
            attributes=self.attributes,
            indexes=self.indexes,
        )


def _text(name: str, size: int, required: bool = False) -> AttributeDefinition:
    return AttributeDefinition(name=name, size=size, required=required)


NPI_ATTRIBUTES: tuple[AttributeDefinition, ...] = (
    _text(NATURAL_KEY_FIELD, 128, required=True),
    _text("Provider_Name_Prefix_Text", 128),
    _text("Provider_First_Name", 128),
    _text("Provider_Last_Name_Legal", 128),
    _text("Endpoint_Type_Description", 128),
    _text("Endpoint_Provider_Credential", 128),
    _text("Mailing_Address_Telephone", 20),
    _text("Mailing_Address_Fax", 20),
    _text("Practice_Location_Telephone", 20),
    _text("Practice_Location_Fax", 20),
    _text("Authorized_Official_Telephone", 20),
    _text("Taxonomy_Code_1", 50),
    _text("License_Number_1", 50),
    _text("License_State_Code_1", 20),
    _text("Taxonomy_Code_2", 50),
    _text("License_Number_2", 50),
    _text("License_State_Code_2", 20),
    _text("Taxonomy_Code_3", 50),
    _text("License_Number_3", 50),
    _text("License_State_Code_3", 20),
    _text("Taxonomy_Code_4", 50),
    _text("License_Number_4", 50),
    _text("License_State_Code_4", 20),
    _text("Taxonomy_Code_5", 50),
    _text("License_Number_5", 50),
    _text("License_State_Code_5", 20),
    _text("Is_Sole_Proprietor", 5),
    _text("Is_Organization_Subpart", 5),
    _text("Last_Update_Date", 10),
    _text("NPI_Deactivation_Date", 10),
    _text("NPI_Reactivation_Date", 10),
    _text("Provider_Gender_Code", 1),
    _text("Organization_Name_Legal", 128),
    _text("First_Line_Mailing_Address", 128),
    _text("Second_Line_Mailing_Address", 128),
    _text("Practice_Location_City", 128),
    _text("Practice_Location_State", 20),
    _text("Practice_Location_Postal", 20),
    _text("Practice_Location_Country", 20),
    _text("First_Line_Practice_Location", 128),
    _text("Second_Line_Practice_Location", 128),
    _text("Mailing_Address_City", 128),
    _text("Mailing_Address_State", 20),
    _text("Mailing_Address_Postal", 20),
    _text("Mailing_Address_Country", 20),
)

NPI_INDEXES: tuple[IndexDefinition, ...] = (
    IndexDefinition(
        key="createdAt_desc",
        attributes=("$createdAt",),
        orders=("desc",),
    ),
)

NPI_SCHEMA = CollectionSchema(
    collection_id=COLLECTION_ID,
    name=COLLECTION_NAME,
    attributes=NPI_ATTRIBUTES,
    indexes=NPI_INDEXES,
)

FLAG_SCHEMA = CollectionSchema(
    collection_id=FLAG_COLLECTION_ID,
    name=FLAG_COLLECTION_NAME,
    attributes=(
        AttributeDefinition(
            name=FLAG_ATTRIBUTE,
            kind=AttributeKinds.BOOLEAN,
            size=0,
            required=False,
        ),
    ),
)


def load_attribute_dictionary(path: str | Path | None = None) -> dict[str, str]:
    """
    Load the CSV-header -> attribute-name dictionary.

    Args:
        path: Optional JSON file; falls back to ATTRIBUTE_DICTIONARY_PATH
              and then to the bundled dictionary.

    Raises:
        ConfigError: If the file is missing or is not a flat string mapping.
    """
    resolved = Path(
        path
        or os.getenv("ATTRIBUTE_DICTIONARY_PATH")
        or DEFAULT_ATTRIBUTE_DICTIONARY_PATH
    )
    try:
        with open(resolved, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(
            f"Attribute dictionary not found: {resolved}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"Attribute dictionary is not valid JSON: {resolved}: {exc}") from exc

    if not isinstance(payload, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in payload.items()
    ):
        raise ConfigError(
            f"Attribute dictionary must map strings to strings: {resolved}")
    return payload


__all__ = [
    "AttributeKinds",
    "AttributeDefinition",
    "IndexDefinition",
    "CollectionSchema",
    "NPI_ATTRIBUTES",
    "NPI_INDEXES",
    "NPI_SCHEMA",
    "FLAG_SCHEMA",
    "DEFAULT_ATTRIBUTE_DICTIONARY_PATH",
    "load_attribute_dictionary",
]
