"""FastAPI application bootstrap: storage adapters, CORS and router wiring."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sheetstore.api.routers import distinct_values, fields, health, imports, query, uploads
from sheetstore.core.config import get_settings
from sheetstore.core.errors import DocumentStoreError
from sheetstore.core.logging import configure_logging
from sheetstore.storage.blob_storage import create_blob_storage
from sheetstore.storage.document_store import create_document_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the storage adapters once per process and close them on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app.state.document_store = None
    if settings.cosmos_configured:
        try:
            app.state.document_store = create_document_store(settings)
        except DocumentStoreError as e:
            logger.error(f"Document store unavailable: {e}")
    else:
        logger.error(
            "AZURE_COSMOSDB_ENDPOINT and AZURE_COSMOSDB_KEY are not set; "
            "upload and query endpoints will return 503"
        )

    app.state.blob_storage = create_blob_storage(settings)
    logger.info(f"{settings.app_name} started")

    try:
        yield
    finally:
        if app.state.document_store is not None:
            await app.state.document_store.close()


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers."""
    settings = get_settings()
    app = FastAPI(title=settings.app_name, version="2.0.0", lifespan=lifespan)

    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(uploads.router, prefix="/api/v2/upload", tags=["uploads"])
    app.include_router(imports.router, prefix="/api/v2/query", tags=["imports"])
    app.include_router(query.router, prefix="/api/v2/query", tags=["query"])
    app.include_router(fields.router, prefix="/api/fields", tags=["fields"])
    app.include_router(distinct_values.router, prefix="/api/distinct-values", tags=["fields"])

    return app


app = create_app()
