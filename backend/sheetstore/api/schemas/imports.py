"""Upload and import payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sheetstore.models.documents import ImportMetadata


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadData(CamelModel):
    file_id: str
    file_name: str
    row_count: int
    column_count: int
    blob_url: str | None = None
    status: str
    total_rows: int
    valid_rows: int
    error_rows: int
    errors: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_metadata(cls, metadata: ImportMetadata) -> "UploadData":
        return cls(
            file_id=metadata.id,
            file_name=metadata.file_name,
            row_count=metadata.valid_rows,
            column_count=len(metadata.headers),
            blob_url=metadata.blob_url,
            status=metadata.status,
            total_rows=metadata.total_rows,
            valid_rows=metadata.valid_rows,
            error_rows=metadata.error_rows,
            errors=metadata.errors,
        )


class UploadResponse(CamelModel):
    """Always returned once an import has started; check ``data.status`` and ``data.errorRows``."""

    success: bool
    message: str
    data: UploadData
    error: str | None = None


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ImportListResponse(CamelModel):
    success: bool = True
    data: list[dict[str, Any]]
    pagination: Pagination


class ImportDetailResponse(CamelModel):
    success: bool = True
    data: dict[str, Any]


class DeletedImport(CamelModel):
    import_id: str
    deleted_rows: int


class DeleteImportResponse(CamelModel):
    success: bool = True
    message: str
    data: DeletedImport
