"""Endpoints for file upload and queued import tracking."""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)

from sheetstore.api.dependencies import get_ingestion_service, get_user_id
from sheetstore.api.schemas.imports import UploadData, UploadResponse
from sheetstore.core.config import Settings, get_settings
from sheetstore.core.errors import FileTooLargeError, MetadataWriteError
from sheetstore.services.file_parser import ALLOWED_MIME_TYPES, resolve_mime_type
from sheetstore.services.ingestion import IngestionService
from sheetstore.services.progress_tracker import ImportProgress, fetch_progress, publish_progress
from sheetstore.storage.staging import discard_staged, stage_upload
from sheetstore.workers.tasks.import_file import import_file_task

logger = logging.getLogger(__name__)

router = APIRouter()


def _validated_mime_type(file: UploadFile) -> str:
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )
    mime_type = resolve_mime_type(file.filename, file.content_type)
    if mime_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported file type: {file.content_type}. "
                "Only Excel (.xlsx, .xls, .xlsm) and CSV files are allowed."
            ),
        )
    return mime_type


async def _stage(file: UploadFile, settings: Settings):
    try:
        return await stage_upload(file, settings.uploads_dir, settings.max_upload_size_bytes)
    except FileTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc),
        ) from exc
    except OSError as exc:
        logger.error(f"OS error staging file: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save uploaded file",
        ) from exc


@router.post(
    "",
    summary="Upload and import a file",
    response_model=UploadResponse,
)
async def upload_file(
    file: UploadFile = File(...),
    service: IngestionService = Depends(get_ingestion_service),
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
) -> UploadResponse:
    """Import synchronously; partial failures still return 200 with the import status."""
    mime_type = _validated_mime_type(file)
    started = time.monotonic()
    logger.info(f"File upload started: {file.filename} ({mime_type}) by {user_id}")

    staged_path = await _stage(file, settings)
    try:
        metadata = await service.import_file(staged_path, file.filename, mime_type, user_id)
    except MetadataWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process file: {exc}",
        ) from exc
    finally:
        discard_staged(staged_path)

    logger.info(
        f"File import {metadata.id} finished with status {metadata.status} "
        f"in {time.monotonic() - started:.2f}s"
    )

    succeeded = metadata.status == "completed"
    return UploadResponse(
        success=succeeded,
        message="File processed successfully" if succeeded else "File processing failed",
        data=UploadData.from_metadata(metadata),
        error=None if succeeded else (metadata.errors[-1]["error"] if metadata.errors else "Import failed"),
    )


@router.post(
    "/queue",
    summary="Stage a file and import it in the background",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportProgress,
)
async def enqueue_upload(
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
) -> ImportProgress:
    """Accept the file, persist it for the worker, and return a job id to poll."""
    mime_type = _validated_mime_type(file)
    staged_path = await _stage(file, settings)
    snapshot = ImportProgress(
        job_id=str(uuid.uuid4()), file_name=file.filename, status="pending", message="Queued"
    )

    try:
        publish_progress(snapshot)
        import_file_task.apply_async(
            args=(snapshot.job_id, str(staged_path), file.filename, mime_type, user_id),
            queue="imports",
        )
    except Exception as exc:
        logger.error(f"Error enqueueing import task: {exc}", exc_info=True)
        discard_staged(staged_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start import process",
        ) from exc

    logger.info(f"Queued import job {snapshot.job_id} for file {file.filename}")
    return snapshot


@router.get(
    "/queue/{job_id}",
    summary="Check queued import progress",
    response_model=ImportProgress,
)
async def get_queued_upload(job_id: str) -> ImportProgress:
    snapshot = fetch_progress(job_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return snapshot
