"""Pydantic models describing row query payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from sheetstore.models.filters import FilterCondition, FilterOperator

__all__ = ["FilterCondition", "FilterOperator", "RowQueryRequest", "RowQueryResponse"]


class RowQueryRequest(BaseModel):
    fields: list[str] = Field(default_factory=list, description="Columns to return; empty means all")
    filters: list[FilterCondition] = Field(default_factory=list)
    import_id: str | None = Field(None, alias="importId")
    sort: str | None = Field(None, description="Column name, prefix with '-' for descending")
    limit: int = Field(100, ge=1, le=1000)
    offset: int = Field(0, ge=0)

    model_config = {"populate_by_name": True}

    @field_validator("fields")
    @classmethod
    def clean_fields(cls, v: list[str]) -> list[str]:
        cleaned = [f.strip() for f in v]
        if any(not f for f in cleaned):
            raise ValueError("All fields must be non-empty strings")
        return cleaned


class RowQueryResponse(BaseModel):
    success: bool = True
    items: list[dict[str, Any]]
    total: int
    limit: int
    offset: int
    has_more: bool = Field(..., serialization_alias="hasMore")
