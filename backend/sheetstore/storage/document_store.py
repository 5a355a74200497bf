"""Document store access (Azure Cosmos DB) for import metadata and row documents."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from azure.core.exceptions import AzureError
from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient
from azure.cosmos.exceptions import CosmosResourceNotFoundError

from sheetstore.core.config import Settings
from sheetstore.core.errors import DocumentStoreError

logger = logging.getLogger(__name__)

PARTITION_KEY_PATH = "/_partitionKey"

QueryParameters = list[dict[str, Any]]


class DocumentStore(Protocol):
    async def upsert_record(self, document: dict[str, Any], container: str | None = None) -> dict[str, Any]: ...

    async def query(
        self, query: str, parameters: QueryParameters | None = None, container: str | None = None
    ) -> list[dict[str, Any]]: ...

    async def get_by_id(
        self, item_id: str, partition_key: str, container: str | None = None
    ) -> dict[str, Any] | None: ...

    async def delete_record(self, item_id: str, partition_key: str, container: str | None = None) -> None: ...


class CosmosDocumentStore:
    """Async Cosmos DB wrapper; containers are created on first use."""

    def __init__(
        self,
        endpoint: str,
        key: str,
        database_name: str,
        default_container: str,
    ):
        if not endpoint or not key:
            raise DocumentStoreError(
                "Azure Cosmos DB endpoint and key must be configured. "
                f"Endpoint: {'provided' if endpoint else 'missing'}, "
                f"Key: {'provided' if key else 'missing'}"
            )
        self.endpoint = endpoint
        self.key = key
        self.database_name = database_name
        self.default_container = default_container
        self._client: CosmosClient | None = None
        self._containers: dict[str, ContainerProxy] = {}
        self._lock = asyncio.Lock()

    async def _container(self, name: str | None) -> ContainerProxy:
        name = name or self.default_container
        if name in self._containers:
            return self._containers[name]

        async with self._lock:
            if name not in self._containers:
                try:
                    if self._client is None:
                        self._client = CosmosClient(self.endpoint, credential=self.key)
                    database = await self._client.create_database_if_not_exists(id=self.database_name)
                    self._containers[name] = await database.create_container_if_not_exists(
                        id=name, partition_key=PartitionKey(path=PARTITION_KEY_PATH)
                    )
                    logger.info(f"Cosmos container {self.database_name}/{name} is ready")
                except AzureError as e:
                    logger.error(f"Failed to initialise Cosmos container {name}: {e}", exc_info=True)
                    raise DocumentStoreError(f"Failed to initialise container {name}: {e.message}") from e
        return self._containers[name]

    async def upsert_record(self, document: dict[str, Any], container: str | None = None) -> dict[str, Any]:
        """Insert or replace by ``id``; returns the new etag."""
        target = await self._container(container)
        try:
            item = await target.upsert_item(body=document)
        except AzureError as e:
            logger.error(f"Cosmos upsert failed for {document.get('id')}: {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to upsert record {document.get('id')}: {e.message}") from e
        return {"etag": item.get("_etag"), "statusCode": 200}

    async def query(
        self, query: str, parameters: QueryParameters | None = None, container: str | None = None
    ) -> list[dict[str, Any]]:
        target = await self._container(container)
        try:
            return [item async for item in target.query_items(query=query, parameters=parameters or [])]
        except AzureError as e:
            logger.error(f"Cosmos query failed: {query} ({e})", exc_info=True)
            raise DocumentStoreError(f"Query failed: {e.message}") from e

    async def query_page(
        self,
        query: str,
        parameters: QueryParameters | None = None,
        *,
        max_items: int = 100,
        continuation_token: str | None = None,
        container: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Fetch one page of results plus the token for the next page."""
        target = await self._container(container)
        try:
            pager = target.query_items(
                query=query, parameters=parameters or [], max_item_count=max_items
            ).by_page(continuation_token)
            async for page in pager:
                items = [item async for item in page]
                return items, pager.continuation_token
        except AzureError as e:
            logger.error(f"Cosmos paged query failed: {query} ({e})", exc_info=True)
            raise DocumentStoreError(f"Query failed: {e.message}") from e
        return [], None

    async def get_by_id(
        self, item_id: str, partition_key: str, container: str | None = None
    ) -> dict[str, Any] | None:
        target = await self._container(container)
        try:
            return await target.read_item(item=item_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            return None
        except AzureError as e:
            raise DocumentStoreError(f"Failed to read record {item_id}: {e.message}") from e

    async def delete_record(self, item_id: str, partition_key: str, container: str | None = None) -> None:
        target = await self._container(container)
        try:
            await target.delete_item(item=item_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            logger.debug(f"Record {item_id} already deleted")
        except AzureError as e:
            raise DocumentStoreError(f"Failed to delete record {item_id}: {e.message}") from e

    async def ping(self) -> None:
        """Round-trip to the database; used by readiness checks."""
        await self._container(None)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._containers.clear()


def create_document_store(settings: Settings) -> CosmosDocumentStore:
    return CosmosDocumentStore(
        endpoint=settings.azure_cosmosdb_endpoint or "",
        key=settings.azure_cosmosdb_key or "",
        database_name=settings.azure_cosmosdb_database,
        default_container=settings.azure_cosmosdb_container,
    )
