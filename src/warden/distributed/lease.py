"""Lease locks for singleton background workers.

A lease is a store key holding the holder's instance ID with a TTL:
1. Holders acquire the key with SET NX EX
2. Holders refresh the TTL periodically, well before it runs out
3. If a holder dies, the key expires and another instance can claim it

There is no release call. A lease is only reclaimed by expiry, so a
holder that stops refreshing blocks the role for at most one TTL.

There is no fencing token either: a holder stalled past its TTL (GC pause,
network partition) can still believe it owns the lease while a new holder
runs. Treat this as best-effort leader election, not strict mutual
exclusion for correctness-critical work.

Example:
    lease = LeaseLock(store)

    if await lease.try_acquire("trash_cleanup", instance_id, ttl=60):
        ...
    # every 55s while working
    if not await lease.refresh("trash_cleanup", instance_id, ttl=60):
        # lost the lease, stop working
        ...
"""

from __future__ import annotations

import logging

from warden.store.facade import AtomicStore
from warden.store.keys import CoordinationKeys

logger = logging.getLogger(__name__)

# Lease configuration
DEFAULT_LEASE_TTL = 60  # Seconds
REFRESH_INTERVAL = 55  # Refresh every 55 seconds (before the 60s TTL)


class LeaseLock:
    """Store-backed lease lock keyed by role name.

    Args:
        store: Atomic store facade
        keys: Key schema (defaults to ``app:worker:lock:{name}``)
        strict: Refresh with a single atomic compare-and-expire instead of
            the read-then-expire sequence
    """

    def __init__(
        self,
        store: AtomicStore,
        keys: CoordinationKeys | None = None,
        strict: bool = False,
    ):
        self.store = store
        self.keys = keys or CoordinationKeys()
        self.strict = strict

    def lock_key(self, lock_name: str) -> str:
        """The store key used for ``lock_name``."""
        return self.keys.lock(lock_name)

    async def try_acquire(
        self, lock_name: str, holder_id: str, ttl: int = DEFAULT_LEASE_TTL
    ) -> bool:
        """Try to take the lease.

        Returns:
            True if the lease was free and now belongs to ``holder_id``.
            False if anyone holds it, ``holder_id`` included.
        """
        acquired = await self.store.set_if_absent(self.lock_key(lock_name), holder_id, ttl)
        if acquired:
            logger.info(f"Acquired lease '{lock_name}' as {holder_id}")
        return acquired

    async def refresh(self, lock_name: str, holder_id: str, ttl: int = DEFAULT_LEASE_TTL) -> bool:
        """Extend the lease if ``holder_id`` still owns it.

        The default sequence reads the holder with GETEX, which already bumps
        the TTL even when another instance owns the key, then re-applies the
        intended TTL with EXPIRE. A lease can be reclaimed in the gap between
        the two commands; with ``strict`` both steps run as one script.

        Returns:
            True if the lease was extended, False if it is absent or held by
            someone else.
        """
        key = self.lock_key(lock_name)

        if self.strict:
            refreshed = await self.store.expire_if_value(key, holder_id, ttl)
            if refreshed:
                logger.debug(f"Refreshed lease '{lock_name}'")
            return refreshed

        current_holder = await self.store.get_and_refresh_expiry(key, ttl)
        if current_holder is None:
            return False

        if current_holder != holder_id:
            logger.warning(f"Lease '{lock_name}' held by {current_holder}, not {holder_id}")
            return False

        refreshed = await self.store.set_expiry(key, ttl)
        if refreshed:
            logger.debug(f"Refreshed lease '{lock_name}'")
        return refreshed

    async def current_holder(self, lock_name: str) -> str | None:
        """Get the instance ID currently holding ``lock_name``."""
        return await self.store.get(self.lock_key(lock_name))
