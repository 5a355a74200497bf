"""Domain exceptions raised by storage adapters and the ingestion pipeline."""

from __future__ import annotations


class SheetStoreError(Exception):
    """Base class for all application errors."""


class BlobStorageError(SheetStoreError):
    """Raw file upload or deletion failed (network, quota, permissions)."""


class DocumentStoreError(SheetStoreError):
    """A document store read, write or query failed."""


class MetadataWriteError(DocumentStoreError):
    """The initial import metadata document could not be written."""


class ParseError(SheetStoreError, ValueError):
    """The uploaded file could not be turned into rows."""


class UnsupportedFileTypeError(ParseError):
    """No parser is registered for the declared MIME type."""


class FileTooLargeError(SheetStoreError):
    """The upload exceeds the configured size limit."""

    def __init__(self, max_bytes: int):
        super().__init__(f"File size exceeds the limit of {max_bytes // (1024 * 1024)}MB")
        self.max_bytes = max_bytes


class ImportNotFoundError(SheetStoreError, LookupError):
    """No import metadata exists for the requested id."""

    def __init__(self, import_id: str):
        super().__init__(f"Import not found: {import_id}")
        self.import_id = import_id


class RawFileNotFoundError(SheetStoreError, LookupError):
    """The import exists but its raw file is not in blob storage."""

    def __init__(self, import_id: str):
        super().__init__(f"Raw file not found for import: {import_id}")
        self.import_id = import_id
