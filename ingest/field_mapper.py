"""
Projection of source rows onto the collection's attribute names.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional


def map_record(
    row: Mapping[str, Optional[str]],
    dictionary: Mapping[str, str],
) -> dict[str, Any]:
    """
    Map a source row to a document using the CSV-header -> attribute dictionary.

    Headers missing from the row are dropped; present-but-empty values become None.
    Columns not named in the dictionary never reach the document.
    """
    document: dict[str, Any] = {}
    for csv_header, attribute_name in dictionary.items():
        if csv_header in row:
            document[attribute_name] = row[csv_header] or None
    return document


def natural_key(row: Mapping[str, Optional[str]], field: str) -> Optional[str]:
    """Return the stripped natural key of *row*, or None when it is blank."""
    value = row.get(field)
    if value is None:
        return None
    value = value.strip()
    return value or None


def unmapped_headers(headers: list[str], dictionary: Mapping[str, str]) -> list[str]:
    """Dictionary headers absent from the source file (their attributes stay unset)."""
    present = set(headers)
    return [header for header in dictionary if header not in present]
