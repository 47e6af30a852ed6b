"""Connection factory for the backing key-value store.

Works against Redis and Valkey alike; both speak the same protocol, so the
redis-py async client serves either. The client owns a connection pool and
is meant to be created once per process and shared by every primitive.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import redis.asyncio as redis

from warden.config import Settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6379


def build_store_url(settings: Settings) -> str:
    """Resolve the connection URL from settings.

    An explicit host list wins over ``redis_url``; only the first host is
    used since the coordination layer talks to a single primary.
    """
    if not settings.store_hosts:
        url = settings.redis_url
        if settings.store_tls_enabled and url.startswith("redis://"):
            url = "rediss://" + url[len("redis://") :]
        return url

    host = settings.store_hosts[0]
    if ":" not in host:
        host = f"{host}:{DEFAULT_PORT}"
    scheme = "rediss" if settings.store_tls_enabled else "redis"
    return f"{scheme}://{host}/0"


def create_redis(settings: Settings) -> Redis:
    """Create the shared async client for the configured store."""
    url = build_store_url(settings)
    client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        password=settings.store_password,
        decode_responses=True,
        socket_timeout=settings.command_timeout,
        socket_connect_timeout=settings.command_timeout,
    )
    logger.info(f"Created {settings.store_type} client for {url.split('@')[-1]}")
    return client


async def close_redis(client: Redis) -> None:
    """Close the client and its connection pool."""
    await client.aclose()
