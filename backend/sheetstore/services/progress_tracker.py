"""Queued-import progress snapshots kept in Redis for polling clients."""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from redis import Redis
from redis.exceptions import RedisError

from sheetstore.core.config import get_settings
from sheetstore.models.documents import ImportMetadata, ImportStatus
from sheetstore.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "imports:progress:"
PROGRESS_TTL = timedelta(hours=24)
# snapshots carry the first few row errors only; the full list is on the import document
MAX_REPORTED_ERRORS = 20

JobStatus = Literal["pending", "running", "completed", "failed"]


class ImportProgress(BaseModel):
    """State of one queued import; row counts are filled in once it finishes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    file_name: str
    status: JobStatus
    progress: float = Field(0.0, ge=0.0, le=1.0)
    message: str | None = None
    import_id: str | None = None
    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_metadata(cls, job_id: str, metadata: ImportMetadata) -> "ImportProgress":
        completed = metadata.status == ImportStatus.COMPLETED
        return cls(
            job_id=job_id,
            file_name=metadata.file_name,
            status="completed" if completed else "failed",
            progress=1.0,
            message="Import complete" if completed else "Import failed",
            import_id=metadata.id,
            total_rows=metadata.total_rows,
            valid_rows=metadata.valid_rows,
            error_rows=metadata.error_rows,
            errors=metadata.errors[:MAX_REPORTED_ERRORS],
            error=None if completed or not metadata.errors else metadata.errors[-1]["error"],
        )


@lru_cache
def get_redis() -> Redis:
    return create_redis_client(get_settings().redis_url, decode_responses=True)


def _key(job_id: str) -> str:
    return f"{PROGRESS_PREFIX}{job_id}"


def publish_progress(snapshot: ImportProgress) -> None:
    """Store the latest snapshot for a job; Redis outages are logged, not raised."""
    try:
        get_redis().set(
            _key(snapshot.job_id),
            snapshot.model_dump_json(by_alias=True),
            ex=int(PROGRESS_TTL.total_seconds()),
        )
    except RedisError as e:
        logger.warning(f"Could not publish progress for job {snapshot.job_id}: {e}")


def fetch_progress(job_id: str) -> ImportProgress | None:
    try:
        raw = get_redis().get(_key(job_id))
    except RedisError as e:
        logger.warning(f"Could not read progress for job {job_id}: {e}")
        return None
    if not raw:
        return None
    try:
        return ImportProgress.model_validate_json(raw)
    except ValidationError:
        logger.warning(f"Discarding unreadable progress snapshot for job {job_id}")
        return None
