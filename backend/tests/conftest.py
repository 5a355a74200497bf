"""Shared fixtures: in-memory storage adapters and an app wired to them."""

from __future__ import annotations

import copy
import json
import re
from typing import Any

import pytest
from fastapi.testclient import TestClient

from sheetstore.core.config import Settings, get_settings
from sheetstore.core.errors import BlobStorageError, DocumentStoreError
from sheetstore.main import create_app
from sheetstore.services.ingestion import IngestionService

# Parameters the fake store knows how to match on, mapped to document fields
PARAMETER_FIELDS = {
    "@documentType": "documentType",
    "@importId": "_importId",
    "@partitionKey": "_partitionKey",
    "@status": "status",
}

DISTINCT_VALUE = re.compile(r'SELECT DISTINCT VALUE c\[("(?:[^"\\]|\\.)*")\]')


class FakeDocumentStore:
    """Dict-backed document store.

    ``query`` only understands equality on the parameters in
    :data:`PARAMETER_FIELDS`, plus COUNT, DISTINCT VALUE of one field and
    OFFSET/LIMIT; every query is recorded in ``queries`` so tests can inspect
    the SQL text.
    """

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], dict[str, Any]] = {}
        self.queries: list[tuple[str, list[dict[str, Any]]]] = []
        self.upserts = 0
        self.fail_upsert_when = None
        self.closed = False

    async def upsert_record(self, document: dict[str, Any], container: str | None = None) -> dict[str, Any]:
        self.upserts += 1
        if self.fail_upsert_when is not None and self.fail_upsert_when(document):
            raise DocumentStoreError(f"Failed to upsert record {document.get('id')}: simulated outage")
        key = (document.get("_partitionKey"), document["id"])
        self.documents[key] = copy.deepcopy(document)
        return {"etag": f"etag-{self.upserts}", "statusCode": 200}

    async def query(
        self, query: str, parameters: list[dict[str, Any]] | None = None, container: str | None = None
    ) -> list[Any]:
        parameters = parameters or []
        self.queries.append((query, parameters))
        values = {p["name"]: p["value"] for p in parameters}

        matches = [
            copy.deepcopy(doc)
            for doc in self.documents.values()
            if all(
                doc.get(field) == values[name]
                for name, field in PARAMETER_FIELDS.items()
                if name in values
            )
        ]
        if "COUNT(1)" in query:
            return [len(matches)]
        distinct = DISTINCT_VALUE.match(query)
        if distinct:
            name = json.loads(distinct.group(1))
            found = []
            for doc in matches:
                if name in doc and doc[name] not in found:
                    found.append(doc[name])
            return found
        if "ORDER BY c.processedAt DESC" in query:
            matches.sort(key=lambda doc: doc.get("processedAt", ""), reverse=True)
        if "@offset" in values:
            matches = matches[values["@offset"]: values["@offset"] + values["@limit"]]
        return matches

    async def get_by_id(
        self, item_id: str, partition_key: str, container: str | None = None
    ) -> dict[str, Any] | None:
        document = self.documents.get((partition_key, item_id))
        return copy.deepcopy(document) if document else None

    async def delete_record(self, item_id: str, partition_key: str, container: str | None = None) -> None:
        self.documents.pop((partition_key, item_id), None)

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True

    def rows(self, import_id: str | None = None) -> list[dict[str, Any]]:
        return [
            doc
            for doc in self.documents.values()
            if doc.get("documentType") == "excel-row"
            and (import_id is None or doc.get("_importId") == import_id)
        ]


class FakeBlobStorage:
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_with: str | None = None

    async def upload(self, data: bytes, destination_name: str, content_type: str) -> str:
        if self.fail_with:
            raise BlobStorageError(f"Failed to upload file to blob storage: {self.fail_with}")
        self.blobs[destination_name] = data
        self.content_types[destination_name] = content_type
        return f"https://blobs.test/excel-uploads/{destination_name}"

    async def download(self, name: str) -> bytes | None:
        return self.blobs.get(name)

    async def delete(self, name: str) -> bool:
        return self.blobs.pop(name, None) is not None


@pytest.fixture
def document_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def blob_storage() -> FakeBlobStorage:
    return FakeBlobStorage()


@pytest.fixture
def service(document_store: FakeDocumentStore, blob_storage: FakeBlobStorage) -> IngestionService:
    return IngestionService(document_store, blob_storage)


@pytest.fixture
def write_file(tmp_path):
    """Write ``content`` to ``tmp_path/name`` and return the path."""

    def _write(name: str, content: str | bytes):
        path = tmp_path / name
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(uploads_dir=str(tmp_path / "uploads"), max_upload_size_mb=1)


@pytest.fixture
def client(document_store, blob_storage, settings):
    """TestClient without lifespan; adapters are placed on app state directly."""
    app = create_app()
    app.state.document_store = document_store
    app.state.blob_storage = blob_storage
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)
