"""Store layer for warden.

Provides access to the shared expiring key-value store:
- Connection factory for Redis/Valkey
- Atomic command facade used by every coordination primitive
- Key schema for leases, presence, rate limits, replay markers, lockouts
"""

from warden.store.client import build_store_url, close_redis, create_redis
from warden.store.facade import AtomicStore
from warden.store.keys import CoordinationKeys

__all__ = [
    "AtomicStore",
    "CoordinationKeys",
    "build_store_url",
    "close_redis",
    "create_redis",
]
