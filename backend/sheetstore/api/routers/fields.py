"""Column discovery for building queries in the UI."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from sheetstore.api.dependencies import get_document_store
from sheetstore.core.errors import DocumentStoreError
from sheetstore.services import query_builder
from sheetstore.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", summary="List column names across completed imports")
async def list_fields(store: DocumentStore = Depends(get_document_store)) -> dict:
    """Distinct headers in first-seen order, newest imports not prioritised."""
    spec = query_builder.build_headers_query()
    try:
        documents = await store.query(spec.query, spec.parameters)
    except DocumentStoreError as exc:
        logger.error(f"Failed to load fields: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load fields",
        ) from exc

    fields: dict[str, None] = {}
    for document in documents:
        for header in document.get("headers") or []:
            fields.setdefault(header, None)
    return {"success": True, "fields": list(fields), "count": len(fields)}
