"""Helper function to create Redis clients with SSL support for hosted providers."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis


def to_tls_url(url: str) -> str:
    """Hosted Redis (Upstash, Azure Cache) only accepts TLS connections."""
    if url.startswith("redis://") and (".upstash.io" in url or ".redis.cache.windows.net" in url):
        return url.replace("redis://", "rediss://", 1)
    return url


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client with proper SSL configuration.

    Args:
        url: Redis connection URL (redis:// or rediss://)
        **kwargs: Additional arguments (decode_responses, socket_connect_timeout, etc.)

    Returns:
        Configured Redis client
    """
    url = to_tls_url(url)
    client = Redis.from_url(url, **kwargs)

    if url.startswith("rediss://"):
        if hasattr(client, "connection_pool") and hasattr(
            client.connection_pool, "connection_kwargs"
        ):
            client.connection_pool.connection_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE

    return client
