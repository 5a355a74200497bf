"""Import orchestration: metadata, raw blob, parsed rows, final status."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from sheetstore.core.errors import (
    BlobStorageError,
    DocumentStoreError,
    ImportNotFoundError,
    MetadataWriteError,
    ParseError,
    RawFileNotFoundError,
)
from sheetstore.models.documents import (
    IMPORTS_PARTITION_KEY,
    ImportMetadata,
    ImportStatus,
    build_row_document,
)
from sheetstore.services import query_builder
from sheetstore.services.file_parser import ParseResult, parse_file
from sheetstore.storage.blob_storage import BlobStorage, sanitize_blob_name
from sheetstore.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

ROW_FAILURE_POLICIES = ("continue", "abort")

Parser = Callable[..., ParseResult]


def blob_name_for(import_id: str, file_name: str) -> str:
    """``<importId>/<base name>``; any client-supplied directories are dropped."""
    return f"{import_id}/{sanitize_blob_name(file_name).rpartition('/')[2]}"


class IngestionService:
    """Runs one import end to end.

    ``import_file`` never raises for upload, parse or row-write problems; those
    end up in the returned metadata (``status``, ``errors``, ``errorRows``).
    Only a failure to write the initial ``processing`` document propagates, as
    :class:`MetadataWriteError`.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        blob_storage: BlobStorage,
        parser: Parser = parse_file,
        row_failure_policy: str = "continue",
        container: str | None = None,
    ):
        if row_failure_policy not in ROW_FAILURE_POLICIES:
            raise ValueError(f"Unknown row failure policy: {row_failure_policy}")
        self.document_store = document_store
        self.blob_storage = blob_storage
        self.parser = parser
        self.row_failure_policy = row_failure_policy
        self.container = container

    async def _save_metadata(self, metadata: ImportMetadata) -> None:
        result = await self.document_store.upsert_record(metadata.to_document(), self.container)
        logger.debug(f"Saved metadata for {metadata.id} (status={metadata.status}, etag={result.get('etag')})")

    async def _finish(self, metadata: ImportMetadata) -> ImportMetadata:
        try:
            await self._save_metadata(metadata)
        except DocumentStoreError as e:
            logger.error(
                f"Failed to save final metadata for import {metadata.id} "
                f"(status={metadata.status}): {e}",
                exc_info=True,
            )
        return metadata

    async def _fail(self, metadata: ImportMetadata, error: str, **context: Any) -> ImportMetadata:
        metadata.status = ImportStatus.FAILED
        metadata.add_error(error, **context)
        logger.error(f"Import {metadata.id} ({metadata.file_name}) failed: {error}")
        return await self._finish(metadata)

    async def import_file(
        self,
        file_path: str | Path,
        file_name: str,
        file_type: str,
        user_id: str = "anonymous",
    ) -> ImportMetadata:
        """Import a staged file and return the metadata state it reached."""
        path = Path(file_path)
        metadata = ImportMetadata(
            file_name=file_name,
            file_type=file_type,
            file_size=path.stat().st_size,
            processed_by=user_id,
        )

        # 1. processing document first, so a crash leaves a discoverable record
        try:
            await self._save_metadata(metadata)
        except DocumentStoreError as e:
            logger.error(f"Could not create import metadata for {file_name}: {e}", exc_info=True)
            raise MetadataWriteError(f"Failed to save import metadata: {e}") from e

        logger.info(f"Import {metadata.id} started for {file_name} ({metadata.file_size} bytes)")

        # 2. raw file
        try:
            data = await asyncio.to_thread(path.read_bytes)
            metadata.blob_url = await self.blob_storage.upload(
                data, blob_name_for(metadata.id, file_name), file_type
            )
        except (BlobStorageError, OSError) as e:
            return await self._fail(metadata, f"Blob upload failed: {e}")

        # 3. parse
        def stamp(row: dict[str, Any], index: int) -> dict[str, Any]:
            return build_row_document(row, metadata.id, index, user_id)

        try:
            parsed = await asyncio.to_thread(self.parser, path, file_type, transform_row=stamp)
        except ParseError as e:
            return await self._fail(metadata, str(e))
        except Exception as e:
            logger.error(f"Unexpected error parsing {file_name}: {e}", exc_info=True)
            return await self._fail(metadata, f"Unexpected error during parsing: {e}")

        metadata.headers = parsed.headers
        metadata.total_rows = parsed.total_rows
        metadata.errors.extend(parsed.errors)
        metadata.error_rows = parsed.error_rows

        # 4. rows, one upsert each
        written = 0
        for position, row in enumerate(parsed.rows):
            try:
                await self.document_store.upsert_record(row, self.container)
                written += 1
            except Exception as e:
                logger.warning(f"Failed to save row {row.get('_rowNumber')} of import {metadata.id}: {e}")
                metadata.error_rows += 1
                metadata.add_error(f"Failed to save row: {e}", row=int(row.get("_rowNumber", 0)))
                if self.row_failure_policy == "abort":
                    skipped = len(parsed.rows) - position - 1
                    metadata.valid_rows = written
                    return await self._fail(
                        metadata, f"Import aborted after row write failure; {skipped} rows not written"
                    )

        metadata.valid_rows = written

        # 5. terminal state
        metadata.status = ImportStatus.COMPLETED
        logger.info(
            f"Import {metadata.id} completed: total={metadata.total_rows} "
            f"valid={metadata.valid_rows} errors={metadata.error_rows}"
        )
        return await self._finish(metadata)

    async def get_import(self, import_id: str) -> ImportMetadata | None:
        document = await self.document_store.get_by_id(import_id, IMPORTS_PARTITION_KEY, self.container)
        return ImportMetadata.from_document(document) if document else None

    async def download_import(self, import_id: str) -> tuple[ImportMetadata, bytes]:
        """Metadata plus the raw uploaded bytes, read back from blob storage."""
        metadata = await self.get_import(import_id)
        if metadata is None:
            raise ImportNotFoundError(import_id)
        if not metadata.blob_url:
            raise RawFileNotFoundError(import_id)

        data = await self.blob_storage.download(blob_name_for(import_id, metadata.file_name))
        if data is None:
            logger.warning(f"Blob for import {import_id} is missing from storage")
            raise RawFileNotFoundError(import_id)
        return metadata, data

    async def list_imports(
        self, limit: int = 50, offset: int = 0, status: str | None = None
    ) -> tuple[list[ImportMetadata], int]:
        """Newest first, with the total number of matching imports."""
        spec = query_builder.build_imports_query(limit=limit, offset=offset, status=status)
        documents = await self.document_store.query(spec.query, spec.parameters, self.container)
        count_spec = query_builder.build_imports_count_query(status=status)
        counts = await self.document_store.query(count_spec.query, count_spec.parameters, self.container)
        total = counts[0] if counts else 0
        return [ImportMetadata.from_document(doc) for doc in documents], int(total)

    async def delete_import(self, import_id: str) -> int:
        """Remove rows, raw blob and metadata; returns the number of rows deleted."""
        metadata = await self.get_import(import_id)
        if metadata is None:
            raise ImportNotFoundError(import_id)

        spec = query_builder.build_import_row_ids_query(import_id)
        rows = await self.document_store.query(spec.query, spec.parameters, self.container)
        for row in rows:
            await self.document_store.delete_record(
                row["id"], row.get("_partitionKey", import_id), self.container
            )

        if metadata.blob_url:
            try:
                await self.blob_storage.delete(blob_name_for(import_id, metadata.file_name))
            except BlobStorageError as e:
                logger.warning(f"Could not delete raw file for import {import_id}: {e}")

        await self.document_store.delete_record(import_id, IMPORTS_PARTITION_KEY, self.container)
        logger.info(f"Deleted import {import_id} and {len(rows)} rows")
        return len(rows)
