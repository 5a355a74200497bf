"""Liveness and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from redis.exceptions import RedisError

from sheetstore.core.config import get_settings
from sheetstore.core.errors import DocumentStoreError
from sheetstore.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "sheetstore-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates the API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/ready", summary="Readiness probe")
async def ready(request: Request) -> dict[str, Any]:
    """Check the document store (required) and Redis (optional, queued imports only)."""
    checks: dict[str, Any] = {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {},
    }
    all_healthy = True

    store = getattr(request.app.state, "document_store", None)
    if store is None:
        checks["checks"]["document_store"] = {
            "status": "unhealthy",
            "message": "Document store is not configured",
        }
        all_healthy = False
    else:
        try:
            await store.ping()
            checks["checks"]["document_store"] = {
                "status": "healthy",
                "message": "Document store connection successful",
            }
        except DocumentStoreError as e:
            logger.error(f"Document store health check failed: {e}", exc_info=True)
            checks["checks"]["document_store"] = {
                "status": "unhealthy",
                "message": f"Document store connection failed: {e}",
            }
            all_healthy = False

    # Redis only backs queued imports; the synchronous path keeps working without it
    try:
        settings = get_settings()
        redis_client = create_redis_client(
            settings.redis_url, decode_responses=True, socket_connect_timeout=2
        )
        redis_client.ping()
        checks["checks"]["redis"] = {
            "status": "healthy",
            "message": "Redis connection successful",
        }
        redis_client.close()
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        checks["checks"]["redis"] = {
            "status": "unhealthy",
            "message": f"Redis connection failed: {e}",
        }

    if not all_healthy:
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    return checks
