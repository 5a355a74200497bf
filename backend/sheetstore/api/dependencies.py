"""FastAPI dependencies resolving the storage adapters held on app state."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from sheetstore.core.config import Settings, get_settings
from sheetstore.services.ingestion import IngestionService
from sheetstore.storage.blob_storage import BlobStorage
from sheetstore.storage.document_store import DocumentStore


def get_document_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "document_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document store is not configured",
        )
    return store


def get_blob_storage(request: Request) -> BlobStorage:
    storage = getattr(request.app.state, "blob_storage", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Blob storage is not configured",
        )
    return storage


def get_ingestion_service(
    document_store: DocumentStore = Depends(get_document_store),
    blob_storage: BlobStorage = Depends(get_blob_storage),
    settings: Settings = Depends(get_settings),
) -> IngestionService:
    return IngestionService(
        document_store,
        blob_storage,
        row_failure_policy=settings.row_failure_policy,
    )


def get_user_id(x_user_id: str | None = Header(None)) -> str:
    """Identity of the caller; authentication happens upstream of this API."""
    return (x_user_id or "").strip() or "anonymous"
