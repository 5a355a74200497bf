"""Shared helpers for parsing row query parameters and running row queries."""
from __future__ import annotations

import json
import logging

from fastapi import HTTPException, status
from pydantic import TypeAdapter, ValidationError

from sheetstore.api.schemas.query import FilterCondition, RowQueryRequest, RowQueryResponse
from sheetstore.core.errors import DocumentStoreError
from sheetstore.services import query_builder
from sheetstore.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

_filters_adapter = TypeAdapter(list[FilterCondition])


def parse_fields(raw: str | None) -> list[str]:
    """Comma-separated column names; blanks are dropped."""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


def parse_filters(raw: str | None) -> list[FilterCondition]:
    """Decode the ``filters`` query parameter, a JSON array of conditions."""
    if not raw:
        return []
    try:
        return _filters_adapter.validate_python(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid filters parameter: {exc.msg}",
        ) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid filter condition: {exc.errors()[0]['msg']}",
        ) from exc


async def run_row_query(store: DocumentStore, request: RowQueryRequest) -> RowQueryResponse:
    """Execute the page query and the matching count query."""
    try:
        spec = query_builder.build_rows_query(
            request.fields,
            request.filters,
            request.import_id,
            limit=request.limit,
            offset=request.offset,
            sort=request.sort,
        )
        count_spec = query_builder.build_count_query(request.fields, request.filters, request.import_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        items = await store.query(spec.query, spec.parameters)
        counts = await store.query(count_spec.query, count_spec.parameters)
    except DocumentStoreError as exc:
        logger.error(f"Row query failed: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to query rows",
        ) from exc

    total = int(counts[0]) if counts else 0
    return RowQueryResponse(
        items=items,
        total=total,
        limit=request.limit,
        offset=request.offset,
        has_more=request.offset + len(items) < total,
    )
