"""Object storage for raw uploads (Azure Blob Storage, local fs for development)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, ContentSettings, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient

from sheetstore.core.config import Settings
from sheetstore.core.errors import BlobStorageError

logger = logging.getLogger(__name__)

SAS_TTL = timedelta(hours=1)


def sanitize_blob_name(name: str) -> str:
    """Keep an optional single-level prefix but strip any client-supplied path."""
    prefix, _, base = name.replace("\\", "/").rpartition("/")
    if base in ("", ".", ".."):
        base = "upload"
    prefix = prefix.split("/")[-1]
    if prefix in (".", ".."):
        prefix = ""
    return f"{prefix}/{base}" if prefix else base


class BlobStorage(Protocol):
    async def upload(self, data: bytes, destination_name: str, content_type: str) -> str: ...

    async def download(self, name: str) -> bytes | None: ...

    async def delete(self, name: str) -> bool: ...


class AzureBlobStorage:
    """Thin wrapper over the async Azure Blob SDK."""

    def __init__(self, connection_string: str, container_name: str):
        if not connection_string:
            raise BlobStorageError("Azure Storage connection string is not configured")
        if not container_name:
            raise BlobStorageError("Azure Storage container name is not configured")
        self.connection_string = connection_string
        self.container_name = container_name
        self._container_ready = False

    def _service(self) -> BlobServiceClient:
        return BlobServiceClient.from_connection_string(self.connection_string)

    async def _ensure_container(self, service: BlobServiceClient) -> None:
        if self._container_ready:
            return
        try:
            await service.get_container_client(self.container_name).create_container()
            logger.info(f"Created blob container {self.container_name}")
        except ResourceExistsError:
            pass
        self._container_ready = True

    def _signed_url(self, service: BlobServiceClient, blob_name: str, url: str) -> str:
        account_key = getattr(service.credential, "account_key", None)
        if not account_key:
            return url
        token = generate_blob_sas(
            account_name=service.account_name,
            container_name=self.container_name,
            blob_name=blob_name,
            account_key=account_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + SAS_TTL,
        )
        return f"{url}?{token}"

    async def upload(self, data: bytes, destination_name: str, content_type: str) -> str:
        """Upload bytes and return a read-only SAS URL (plain URL without an account key)."""
        blob_name = sanitize_blob_name(destination_name)
        try:
            async with self._service() as service:
                await self._ensure_container(service)
                blob = service.get_blob_client(container=self.container_name, blob=blob_name)
                await blob.upload_blob(
                    data,
                    overwrite=True,
                    content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
                )
                logger.info(
                    f"Uploaded {blob_name} ({len(data)} bytes) to container {self.container_name}"
                )
                return self._signed_url(service, blob_name, blob.url)
        except (AzureError, ValueError) as e:
            logger.error(f"Error uploading {blob_name} to blob storage: {e}", exc_info=True)
            raise BlobStorageError(f"Failed to upload file to blob storage: {e}") from e

    async def download(self, name: str) -> bytes | None:
        """Whole blob content, or ``None`` when the blob does not exist."""
        blob_name = sanitize_blob_name(name)
        try:
            async with self._service() as service:
                blob = service.get_blob_client(container=self.container_name, blob=blob_name)
                downloader = await blob.download_blob()
                return await downloader.readall()
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            logger.error(f"Error downloading {blob_name} from blob storage: {e}", exc_info=True)
            raise BlobStorageError(f"Failed to download blob {blob_name}: {e}") from e

    async def delete(self, name: str) -> bool:
        blob_name = sanitize_blob_name(name)
        try:
            async with self._service() as service:
                blob = service.get_blob_client(container=self.container_name, blob=blob_name)
                await blob.delete_blob()
                return True
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise BlobStorageError(f"Failed to delete blob {blob_name}: {e}") from e


class LocalBlobStorage:
    """Filesystem-backed stand-in used when no storage account is configured."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _target(self, name: str) -> Path:
        target = (self.root / sanitize_blob_name(name)).resolve()
        if self.root not in target.parents:
            raise BlobStorageError(f"Refusing to write outside blob root: {name}")
        return target

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(self, data: bytes, destination_name: str, content_type: str) -> str:
        target = self._target(destination_name)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            logger.error(f"OS error saving blob {target}: {e}", exc_info=True)
            raise BlobStorageError(f"Failed to save file: {e}") from e
        logger.info(f"Stored {destination_name} ({len(data)} bytes) at {target}")
        return target.as_uri()

    async def download(self, name: str) -> bytes | None:
        target = self._target(name)
        if not target.is_file():
            return None
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise BlobStorageError(f"Failed to read {target}: {e}") from e

    async def delete(self, name: str) -> bool:
        target = self._target(name)
        if not target.exists():
            return False
        try:
            target.unlink()
        except OSError as e:
            raise BlobStorageError(f"Failed to delete {target}: {e}") from e
        return True


def create_blob_storage(settings: Settings) -> BlobStorage:
    if settings.azure_storage_connection_string:
        return AzureBlobStorage(
            settings.azure_storage_connection_string, settings.azure_storage_container
        )
    logger.warning("AZURE_STORAGE_CONNECTION_STRING not set, storing uploads on local disk")
    return LocalBlobStorage(Path(settings.uploads_dir) / "blobs")
