"""Documents persisted in the records container."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

IMPORTS_PARTITION_KEY = "imports"
IMPORT_DOCUMENT_TYPE = "excel-import"
ROW_DOCUMENT_TYPE = "excel-row"


class ImportStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def new_import_id() -> str:
    return f"import_{uuid4()}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ImportMetadata(BaseModel):
    """One upload and its processing outcome; mutated in place until terminal."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        validate_assignment=True,
        extra="ignore",
    )

    id: str = Field(default_factory=new_import_id)
    file_name: str
    file_type: str
    file_size: int = 0
    status: ImportStatus = ImportStatus.PROCESSING
    processed_at: str = Field(default_factory=utc_now_iso)
    processed_by: str = "anonymous"
    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0
    headers: list[str] = Field(default_factory=list)
    errors: list[dict[str, Any]] = Field(default_factory=list)
    blob_url: str | None = None
    document_type: str = IMPORT_DOCUMENT_TYPE
    partition_key: str = Field(default=IMPORTS_PARTITION_KEY, alias="_partitionKey")

    @property
    def is_terminal(self) -> bool:
        return self.status in (ImportStatus.COMPLETED, ImportStatus.FAILED)

    def add_error(self, error: str, **context: Any) -> None:
        self.errors.append({"error": error, **context})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "ImportMetadata":
        return cls.model_validate(document)


def row_document_id(import_id: str, row_number: str | int) -> str:
    """Deterministic so that re-importing the same row overwrites it."""
    return f"row_{import_id}_{row_number}"


def build_row_document(
    row: dict[str, Any], import_id: str, index: int, user_id: str
) -> dict[str, Any]:
    """Stamp a parsed row with the system fields of a RowRecord."""
    row_number = str(index + 1)
    return {
        **row,
        "id": row_document_id(import_id, row_number),
        "_importId": import_id,
        "_rowNumber": row_number,
        "_importedAt": utc_now_iso(),
        "_importedBy": user_id,
        "_partitionKey": import_id,
        "documentType": ROW_DOCUMENT_TYPE,
    }
