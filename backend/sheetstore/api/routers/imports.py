"""Import history: list, inspect, delete, download, and browse rows of one import."""

from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from sheetstore.api.dependencies import get_document_store, get_ingestion_service
from sheetstore.api.routers.row_helpers import parse_fields, parse_filters, run_row_query
from sheetstore.api.schemas.imports import (
    DeletedImport,
    DeleteImportResponse,
    ImportDetailResponse,
    ImportListResponse,
    Pagination,
)
from sheetstore.api.schemas.query import RowQueryRequest, RowQueryResponse
from sheetstore.core.errors import (
    BlobStorageError,
    DocumentStoreError,
    ImportNotFoundError,
    RawFileNotFoundError,
)
from sheetstore.services.ingestion import IngestionService
from sheetstore.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _store_failure(action: str, exc: DocumentStoreError) -> HTTPException:
    logger.error(f"Failed to {action}: {exc}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get(
    "/imports",
    summary="List imports, newest first",
    response_model=ImportListResponse,
)
async def list_imports(
    response: Response,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    status_filter: str | None = Query(
        None, alias="status", description="processing, completed or failed"
    ),
    service: IngestionService = Depends(get_ingestion_service),
) -> ImportListResponse:
    try:
        imports, total = await service.list_imports(limit=limit, offset=offset, status=status_filter)
    except DocumentStoreError as exc:
        raise _store_failure("list imports", exc) from exc

    response.headers.update(NO_CACHE_HEADERS)
    return ImportListResponse(
        data=[metadata.to_document() for metadata in imports],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(imports) < total,
        ),
    )


@router.get(
    "/imports/{import_id}",
    summary="Fetch one import's metadata",
    response_model=ImportDetailResponse,
)
async def get_import(
    import_id: str,
    response: Response,
    service: IngestionService = Depends(get_ingestion_service),
) -> ImportDetailResponse:
    try:
        metadata = await service.get_import(import_id)
    except DocumentStoreError as exc:
        raise _store_failure("fetch import", exc) from exc
    if metadata is None:
        raise HTTPException(status_code=404, detail="Import not found")

    response.headers.update(NO_CACHE_HEADERS)
    return ImportDetailResponse(data=metadata.to_document())


@router.delete(
    "/imports/{import_id}",
    summary="Delete an import with its rows and raw file",
    response_model=DeleteImportResponse,
)
async def delete_import(
    import_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> DeleteImportResponse:
    """Rows are removed before the metadata so a partial failure can be retried."""
    try:
        deleted_rows = await service.delete_import(import_id)
    except ImportNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Import not found") from exc
    except DocumentStoreError as exc:
        raise _store_failure("delete import", exc) from exc

    return DeleteImportResponse(
        message=f"Import {import_id} deleted successfully",
        data=DeletedImport(import_id=import_id, deleted_rows=deleted_rows),
    )


@router.get(
    "/imports/{import_id}/rows",
    summary="Browse the rows of one import",
    response_model=RowQueryResponse,
    response_model_by_alias=True,
)
async def list_import_rows(
    import_id: str,
    fields: str | None = Query(None, description="Comma-separated column names"),
    filters: str | None = Query(None, alias="filter", description="JSON array of filter conditions"),
    sort: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: IngestionService = Depends(get_ingestion_service),
    store: DocumentStore = Depends(get_document_store),
) -> RowQueryResponse:
    try:
        metadata = await service.get_import(import_id)
    except DocumentStoreError as exc:
        raise _store_failure("fetch import", exc) from exc
    if metadata is None:
        raise HTTPException(status_code=404, detail="Import not found")

    request = RowQueryRequest(
        fields=parse_fields(fields),
        filters=parse_filters(filters),
        import_id=import_id,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return await run_row_query(store, request)


def content_disposition(file_name: str) -> str:
    quoted = quote(file_name)
    if quoted != file_name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{file_name}"'


@router.get(
    "/imports/{import_id}/download",
    summary="Download the raw file of an import",
    response_class=Response,
)
async def download_import(
    import_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> Response:
    try:
        metadata, data = await service.download_import(import_id)
    except ImportNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Import not found") from exc
    except RawFileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found") from exc
    except DocumentStoreError as exc:
        raise _store_failure("fetch import", exc) from exc
    except BlobStorageError as exc:
        logger.error(f"Failed to read raw file for import {import_id}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read file from storage",
        ) from exc

    logger.info(f"Serving raw file of import {import_id} ({len(data)} bytes)")
    return Response(
        content=data,
        media_type=metadata.file_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(metadata.file_name)},
    )
