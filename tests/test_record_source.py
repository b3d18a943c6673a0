from __future__ import annotations

from datetime import date

import pytest

from ingest.record_source import CsvRecordSource
from ingest.utils import monthly_source_dir, resolve_source_path
from npi_exceptions import SourceError

CSV_TEXT = (
    '"NPI","Entity Type Code","Provider First Name"\n'
    '"1000000001","1","ADA"\n'
    '"1000000002","2",""\n'
)


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "npidata_pfile_20050523-20240609.csv"
    path.write_text(CSV_TEXT, encoding="utf-8")
    return path


class TestCsvRecordSource:

    def test_streams_rows_as_mappings(self, csv_path):
        rows = list(CsvRecordSource(csv_path))

        assert rows == [
            {"NPI": "1000000001", "Entity Type Code": "1", "Provider First Name": "ADA"},
            {"NPI": "1000000002", "Entity Type Code": "2", "Provider First Name": ""},
        ]

    def test_iterating_again_restarts_from_first_row(self, csv_path):
        source = CsvRecordSource(csv_path)
        first = next(iter(source))

        assert [row["NPI"] for row in source] == ["1000000001", "1000000002"]
        assert first["NPI"] == "1000000001"

    def test_byte_order_mark_is_stripped(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_text(CSV_TEXT, encoding="utf-8-sig")

        assert CsvRecordSource(path).headers()[0] == "NPI"

    def test_short_and_long_rows(self, tmp_path):
        path = tmp_path / "ragged.csv"
        path.write_text("NPI,A,B\n1,x\n2,x,y,z\n", encoding="utf-8")

        rows = list(CsvRecordSource(path))

        assert rows[0] == {"NPI": "1", "A": "x", "B": None}
        assert rows[1] == {"NPI": "2", "A": "x", "B": "y"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="does not exist"):
            list(CsvRecordSource(tmp_path / "absent.csv"))

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "latin.csv"
        path.write_bytes(b"NPI,Name\n1,Jos\xe9\n")

        with pytest.raises(SourceError, match="Error reading CSV"):
            list(CsvRecordSource(path))


class TestResolveSourcePath:

    def test_explicit_path_wins(self, csv_path, tmp_path):
        assert resolve_source_path(str(csv_path), tmp_path) == csv_path

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(SourceError):
            resolve_source_path(str(tmp_path / "nope.csv"), tmp_path)

    def test_monthly_directory_layout(self, tmp_path):
        today = date(2024, 6, 14)
        extract_dir = monthly_source_dir(tmp_path, today)

        assert extract_dir.name == "NPPES_Data_Dissemination_June_2024"

    def test_picks_newest_data_file_and_ignores_header_file(self, tmp_path):
        today = date(2024, 6, 14)
        extract_dir = monthly_source_dir(tmp_path, today)
        extract_dir.mkdir()
        for name in (
            "npidata_pfile_20050523-20240512.csv",
            "npidata_pfile_20050523-20240609.csv",
            "npidata_pfile_20050523-20240609_fileheader.csv",
            "othername_pfile_20050523-20240609.csv",
        ):
            (extract_dir / name).write_text("NPI\n", encoding="utf-8")

        path = resolve_source_path(None, tmp_path, today=today)

        assert path.name == "npidata_pfile_20050523-20240609.csv"

    def test_missing_extraction_directory(self, tmp_path):
        with pytest.raises(SourceError, match="Extraction directory not found"):
            resolve_source_path(None, tmp_path, today=date(2024, 6, 14))

    def test_directory_without_data_file(self, tmp_path):
        today = date(2024, 6, 14)
        monthly_source_dir(tmp_path, today).mkdir()

        with pytest.raises(SourceError, match="No file matching"):
            resolve_source_path(None, tmp_path, today=today)
