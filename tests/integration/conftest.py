"""Integration test fixtures using Docker.

Runs every integration test against both Redis and Valkey.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from tests.integration.docker_utils import StoreContainer, get_docker_client, run_store
from warden.store.facade import AtomicStore

STORE_IMAGES = ["redis:7-alpine", "valkey/valkey:8-alpine"]


@pytest.fixture(scope="session")
def docker_client():
    """Create a Docker client or skip if Docker is unavailable."""
    try:
        client = get_docker_client()
        client.ping()
    except Exception as exc:
        pytest.skip(f"Docker not available: {exc}")
    yield client
    client.close()


@pytest.fixture(scope="session", params=STORE_IMAGES)
def store_container(request, docker_client) -> Iterator[StoreContainer]:
    """Start one store container per image for the test session."""
    with run_store(docker_client, request.param) as container:
        yield container


@pytest.fixture(scope="session")
def redis_url(store_container: StoreContainer) -> str:
    return store_container.url


@pytest_asyncio.fixture
async def redis_client(redis_url: str) -> AsyncIterator[redis.Redis]:
    """Create a client for one test and flush the database afterwards."""
    client = redis.from_url(redis_url, decode_responses=True)
    await _wait_for_redis(client)
    yield client
    await client.flushdb()
    await client.aclose()


@pytest_asyncio.fixture
async def store(redis_client: redis.Redis) -> AtomicStore:
    return AtomicStore(redis_client)


async def _wait_for_redis(client: redis.Redis, timeout: float = 30.0) -> None:
    """Wait for the store to accept connections."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            await client.ping()
            return
        except RedisConnectionError:
            if time.monotonic() >= deadline:
                raise
            await asyncio.sleep(0.5)
