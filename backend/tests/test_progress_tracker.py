"""Tests for queued-import progress snapshots in Redis."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from sheetstore.models.documents import ImportMetadata
from sheetstore.services import progress_tracker
from sheetstore.services.progress_tracker import (
    MAX_REPORTED_ERRORS,
    PROGRESS_TTL,
    ImportProgress,
    fetch_progress,
    publish_progress,
)


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.expiry: dict[str, int] = {}

    def set(self, key, value, ex=None):
        self.values[key] = value
        self.expiry[key] = ex

    def get(self, key):
        return self.values.get(key)


def test_snapshot_round_trip() -> None:
    redis = FakeRedis()
    snapshot = ImportProgress(job_id="job-1", file_name="products.csv", status="pending", message="Queued")

    with patch.object(progress_tracker, "get_redis", return_value=redis):
        publish_progress(snapshot)
        fetched = fetch_progress("job-1")

    assert fetched == snapshot
    assert redis.expiry["imports:progress:job-1"] == int(PROGRESS_TTL.total_seconds())
    assert json.loads(redis.values["imports:progress:job-1"])["jobId"] == "job-1"


def test_unknown_job() -> None:
    with patch.object(progress_tracker, "get_redis", return_value=FakeRedis()):
        assert fetch_progress("nope") is None


def test_unreadable_snapshot_is_ignored() -> None:
    redis = FakeRedis()
    redis.values["imports:progress:job-1"] = '{"jobId": "job-1", "status": "exploded"}'

    with patch.object(progress_tracker, "get_redis", return_value=redis):
        assert fetch_progress("job-1") is None


def test_redis_outage_does_not_raise() -> None:
    redis = MagicMock()
    redis.set.side_effect = RedisConnectionError("refused")
    redis.get.side_effect = RedisConnectionError("refused")
    snapshot = ImportProgress(job_id="job-1", file_name="products.csv", status="running")

    with patch.object(progress_tracker, "get_redis", return_value=redis):
        publish_progress(snapshot)
        assert fetch_progress("job-1") is None


class TestFromMetadata:
    def test_completed_import(self) -> None:
        metadata = ImportMetadata(
            file_name="products.csv",
            file_type="text/csv",
            status="completed",
            total_rows=3,
            valid_rows=2,
            error_rows=1,
            errors=[{"row": 2, "error": "Row has 3 columns, expected 2"}],
        )

        snapshot = ImportProgress.from_metadata("job-1", metadata)

        assert snapshot.status == "completed"
        assert snapshot.progress == 1.0
        assert snapshot.message == "Import complete"
        assert snapshot.import_id == metadata.id
        assert (snapshot.total_rows, snapshot.valid_rows, snapshot.error_rows) == (3, 2, 1)
        assert snapshot.error is None

    def test_failed_import_reports_last_error(self) -> None:
        metadata = ImportMetadata(file_name="products.csv", file_type="text/csv", status="failed")
        for row in range(MAX_REPORTED_ERRORS + 5):
            metadata.add_error("Failed to save row: throttled", row=row + 1)
        metadata.add_error("Import aborted after row write failure; 0 rows not written")

        snapshot = ImportProgress.from_metadata("job-1", metadata)

        assert snapshot.status == "failed"
        assert snapshot.message == "Import failed"
        assert len(snapshot.errors) == MAX_REPORTED_ERRORS
        assert snapshot.error == "Import aborted after row write failure; 0 rows not written"

    def test_camel_case_payload(self) -> None:
        snapshot = ImportProgress(job_id="job-1", file_name="products.csv", status="pending")

        payload = snapshot.model_dump(by_alias=True)

        assert payload["jobId"] == "job-1"
        assert payload["fileName"] == "products.csv"
        assert payload["totalRows"] == 0
