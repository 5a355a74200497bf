"""Row queries across every import."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sheetstore.api.dependencies import get_document_store
from sheetstore.api.routers.row_helpers import parse_fields, parse_filters, run_row_query
from sheetstore.api.schemas.query import RowQueryRequest, RowQueryResponse
from sheetstore.storage.document_store import DocumentStore

router = APIRouter()


@router.get(
    "/rows",
    summary="Query rows with filters passed as query parameters",
    response_model=RowQueryResponse,
    response_model_by_alias=True,
)
async def query_rows(
    fields: str | None = Query(None, description="Comma-separated column names"),
    filters: str | None = Query(None, description="JSON array of filter conditions"),
    import_id: str | None = Query(None, alias="importId"),
    sort: str | None = Query(None, description="Column name, '-' prefix for descending"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    store: DocumentStore = Depends(get_document_store),
) -> RowQueryResponse:
    request = RowQueryRequest(
        fields=parse_fields(fields),
        filters=parse_filters(filters),
        import_id=import_id,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return await run_row_query(store, request)


@router.post(
    "/rows",
    summary="Query rows with a JSON body",
    response_model=RowQueryResponse,
    response_model_by_alias=True,
)
async def query_rows_body(
    payload: RowQueryRequest,
    store: DocumentStore = Depends(get_document_store),
) -> RowQueryResponse:
    """Same as the GET variant; easier for clients building many filters."""
    return await run_row_query(store, payload)
