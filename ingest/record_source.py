"""
Streaming CSV record source.

Rows are read lazily with csv.DictReader; iterating again reopens the file
and starts from the first row.
"""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterator, Optional

from config import SOURCE_FILE_ENCODING
from npi_exceptions import SourceError

Record = dict[str, Optional[str]]


class CsvRecordSource:
    """Restartable, lazily streamed sequence of CSV rows."""

    def __init__(self, path: str | Path, *, encoding: str = SOURCE_FILE_ENCODING):
        self.path = Path(path)
        self.encoding = encoding

    def __iter__(self) -> Iterator[Record]:
        if not self.path.is_file():
            raise SourceError(f"CSV file does not exist: {self.path}")
        try:
            with self.path.open("r", newline="", encoding=self.encoding) as handle:
                reader = csv.DictReader(handle)
                for row in reader:
                    # Short rows leave missing columns as None; extra cells land under None
                    row.pop(None, None)
                    yield row
        except (csv.Error, UnicodeDecodeError) as exc:
            raise SourceError(f"Error reading CSV file {self.path}: {exc}") from exc

    def headers(self) -> list[str]:
        if not self.path.is_file():
            raise SourceError(f"CSV file does not exist: {self.path}")
        with self.path.open("r", newline="", encoding=self.encoding) as handle:
            return list(csv.DictReader(handle).fieldnames or [])

    def __repr__(self) -> str:
        return f"CsvRecordSource({str(self.path)!r})"
