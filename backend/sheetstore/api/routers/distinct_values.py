"""Distinct column values, used to populate filter pickers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sheetstore.api.dependencies import get_document_store
from sheetstore.api.routers.row_helpers import parse_fields
from sheetstore.core.errors import DocumentStoreError
from sheetstore.services import query_builder
from sheetstore.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _present(value: Any) -> bool:
    if value is None:
        return False
    return not (isinstance(value, str) and not value.strip())


@router.get("", summary="Distinct values of the requested columns")
async def distinct_values(
    fields: str | None = Query(None, description="Comma-separated column names"),
    import_id: str | None = Query(None, alias="importId"),
    store: DocumentStore = Depends(get_document_store),
) -> dict:
    names = parse_fields(fields)
    if not names:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Fields parameter is required",
        )

    values: dict[str, list[Any]] = {}
    for name in names:
        spec = query_builder.build_distinct_values_query(name, import_id)
        try:
            found = await store.query(spec.query, spec.parameters)
        except DocumentStoreError as exc:
            logger.error(f"Failed to load distinct values for {name}: {exc}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to load distinct values",
            ) from exc
        values[name] = [value for value in found if _present(value)]
    return {"success": True, "values": values}
