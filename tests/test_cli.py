from __future__ import annotations

import pytest

from cli import sync_npi, wipe_collection
from npi_exceptions import ConfigError


@pytest.fixture
def no_credentials(monkeypatch):
    for key in ("APPWRITE_ENDPOINT", "APPWRITE_PROJECT_ID", "APPWRITE_API_KEY", "DRY_RUN"):
        monkeypatch.setenv(key, "")
    return monkeypatch


def test_sync_parse_args():
    args = sync_npi.parse_args(
        ["--source", "x.csv", "--batch-size", "100", "--dry-run", "--no-progress"])

    assert args.source == "x.csv"
    assert args.batch_size == 100
    assert args.dry_run is True
    assert args.no_progress is True


def test_sync_overrides_are_applied(no_credentials):
    args = sync_npi.parse_args(
        ["--dry-run", "--batch-size", "100", "--chunk-size", "10", "--parallel-batches", "2"])

    config = sync_npi.build_config(args)

    assert config.dry_run is True
    assert config.create_batch_size == 100
    assert config.chunk_size == 10
    assert config.max_parallel_batches == 2


def test_sync_without_credentials_fails(no_credentials):
    assert sync_npi.main([]) == 1


def test_sync_rejects_invalid_sizes(no_credentials):
    assert sync_npi.main(["--dry-run", "--batch-size", "5000"]) == 1


def test_sync_missing_source_fails(no_credentials, tmp_path):
    assert sync_npi.main(
        ["--dry-run", "--no-progress", "--source", str(tmp_path / "absent.csv")]) == 1


def test_sync_dry_run_end_to_end(no_credentials, tmp_path):
    path = tmp_path / "npidata_pfile_20050523-20240609.csv"
    path.write_text('"NPI","Provider First Name"\n"1","ADA"\n', encoding="utf-8")

    assert sync_npi.main(["--dry-run", "--no-progress", "--source", str(path)]) == 0


def test_wipe_requires_confirmation(no_credentials):
    assert wipe_collection.main(["--dry-run"]) == 1


def test_wipe_dry_run(no_credentials):
    assert wipe_collection.main(["--dry-run", "--yes"]) == 0


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("APPWRITE_ENDPOINT", "http://localhost/v1")
    monkeypatch.setenv("APPWRITE_PROJECT_ID", "test-project")
    monkeypatch.setenv("APPWRITE_API_KEY", "test-key")
    monkeypatch.setenv("DRY_RUN", "")
    return monkeypatch


def test_sync_unexpected_error_exits_with_diagnostic(no_credentials, caplog):
    def explode(ctx, **kwargs):
        raise KeyError("boom")

    no_credentials.setattr(sync_npi, "run_sync", explode)

    assert sync_npi.main(["--dry-run", "--no-progress"]) == 1
    assert "Sync failed" in caplog.text
    assert "boom" in caplog.text


def test_wipe_client_setup_error_exits_cleanly(credentials, caplog):
    def no_client(*args, **kwargs):
        raise ConfigError("APPWRITE_ENDPOINT is not set")

    credentials.setattr("ingest.context.get_databases", no_client)

    assert wipe_collection.main(["--yes"]) == 1
    assert "Configuration error" in caplog.text


def test_wipe_unexpected_error_exits_with_diagnostic(credentials, caplog):
    def broken_client(*args, **kwargs):
        raise ConnectionError("connection refused")

    credentials.setattr("ingest.context.get_databases", broken_client)

    assert wipe_collection.main(["--yes"]) == 1
    assert "Deletion failed" in caplog.text
    assert "connection refused" in caplog.text
