"""Celery task running a staged upload through the ingestion pipeline."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from sheetstore.core.config import get_settings
from sheetstore.core.errors import MetadataWriteError
from sheetstore.models.documents import ImportMetadata
from sheetstore.services.ingestion import IngestionService
from sheetstore.services.progress_tracker import ImportProgress, publish_progress
from sheetstore.storage.blob_storage import create_blob_storage
from sheetstore.storage.document_store import create_document_store
from sheetstore.storage.staging import discard_staged
from sheetstore.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def run_import(file_path: Path, file_name: str, file_type: str, user_id: str) -> ImportMetadata:
    settings = get_settings()
    store = create_document_store(settings)
    try:
        service = IngestionService(
            store,
            create_blob_storage(settings),
            row_failure_policy=settings.row_failure_policy,
        )
        return await service.import_file(file_path, file_name, file_type, user_id)
    finally:
        await store.close()


def _failed(job_id: str, file_name: str, exc: Exception) -> ImportProgress:
    return ImportProgress(
        job_id=job_id, file_name=file_name, status="failed", message="Import failed", error=str(exc)
    )


@celery_app.task(bind=True, name="sheetstore.workers.tasks.import_file")
def import_file_task(self, job_id: str, file_path: str, file_name: str, file_type: str, user_id: str):
    """Import the staged file, publish progress, and always remove the staged copy."""
    path = Path(file_path)
    publish_progress(
        ImportProgress(job_id=job_id, file_name=file_name, status="running", message=f"Importing {file_name}")
    )

    try:
        metadata = asyncio.run(run_import(path, file_name, file_type, user_id))
        snapshot = ImportProgress.from_metadata(job_id, metadata)
        publish_progress(snapshot)
        return snapshot.model_dump(by_alias=True)
    except MetadataWriteError as exc:
        logger.error(f"Queued import {job_id} could not start: {exc}", exc_info=True)
        publish_progress(_failed(job_id, file_name, exc))
        raise
    except Exception as exc:
        logger.error(f"Queued import {job_id} crashed: {exc}", exc_info=True)
        publish_progress(_failed(job_id, file_name, exc))
        raise
    finally:
        discard_staged(path)
