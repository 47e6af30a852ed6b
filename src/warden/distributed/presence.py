"""Presence registry of running instances.

Every instance reports itself into one sorted set:
- member: instance ID
- score: Unix timestamp of its last heartbeat

Any instance's heartbeat cycle prunes records older than the maximum
lifetime, so crashed instances disappear without cleaning up after
themselves.

Example:
    registry = PresenceRegistry(store)
    heartbeat = PresenceHeartbeat(registry, settings.instance_id)
    asyncio.create_task(heartbeat.run())

    for record in await registry.live_instances(max_lifetime=60):
        print(record.instance_id, record.last_seen)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from warden.config import FailurePolicy
from warden.errors import StoreUnavailableError
from warden.observability.logging import LogContext
from warden.store.facade import AtomicStore

logger = logging.getLogger(__name__)

REGISTRY_KEY = "app:identity"
HEARTBEAT_INTERVAL = 60  # Seconds
MAX_LIFETIME = 60  # Seconds without a heartbeat before a record is stale


@dataclass(frozen=True)
class PresenceRecord:
    """A registered instance and its last heartbeat."""

    instance_id: str
    last_heartbeat: float

    @property
    def last_seen(self) -> datetime:
        return datetime.fromtimestamp(self.last_heartbeat, tz=UTC)


class PresenceRegistry:
    """Heartbeat-based membership of running instances.

    Args:
        store: Atomic store facade
        registry_key: Sorted set holding the records
        clock: Returns the current Unix time in seconds
    """

    def __init__(
        self,
        store: AtomicStore,
        registry_key: str = REGISTRY_KEY,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.registry_key = registry_key
        self.clock = clock

    def _now(self) -> float:
        # Whole seconds, matching the resolution of the stored scores
        return float(int(self.clock()))

    async def heartbeat(self, instance_id: str) -> None:
        """Record that ``instance_id`` is alive now."""
        await self.store.add_to_sorted_set(self.registry_key, self._now(), instance_id)

    async def prune_stale(self, max_lifetime: int = MAX_LIFETIME) -> int:
        """Remove every record older than ``max_lifetime`` seconds.

        Returns:
            Number of records removed.
        """
        cutoff = self._now() - max_lifetime
        removed = await self.store.remove_sorted_set_range(
            self.registry_key, float("-inf"), cutoff
        )
        if removed:
            logger.info(f"Pruned {removed} stale instance(s) from presence registry")
        return removed

    async def live_instances(self, max_lifetime: int = MAX_LIFETIME) -> list[PresenceRecord]:
        """List instances that sent a heartbeat within ``max_lifetime`` seconds."""
        cutoff = self._now() - max_lifetime
        members = await self.store.sorted_set_range(self.registry_key, cutoff, float("inf"))
        return [
            PresenceRecord(instance_id=member, last_heartbeat=score) for member, score in members
        ]


class PresenceHeartbeat:
    """Periodic register-then-prune loop for one instance.

    The first cycle runs immediately so the instance is visible from
    startup. Under FAIL_FAST the first store failure ends ``run`` with the
    error; the process should exit rather than keep running without a
    presence record. Under RETRY the failure is logged and the next cycle
    runs on schedule.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        instance_id: str,
        interval: int = HEARTBEAT_INTERVAL,
        max_lifetime: int = MAX_LIFETIME,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    ):
        self.registry = registry
        self.instance_id = instance_id
        self.interval = interval
        self.max_lifetime = max_lifetime
        self.failure_policy = failure_policy

    async def beat(self) -> None:
        """Run one register-then-prune cycle."""
        try:
            await self.registry.heartbeat(self.instance_id)
            await self.registry.prune_stale(self.max_lifetime)
        except StoreUnavailableError as e:
            if self.failure_policy is FailurePolicy.FAIL_FAST:
                logger.critical(f"Presence heartbeat crashed: {e}")
                raise
            logger.error(f"Presence heartbeat failed, retrying in {self.interval}s: {e}")

    async def run(self) -> None:
        """Beat forever. Never returns under normal operation."""
        with LogContext(instance_id=self.instance_id):
            logger.info(f"Starting presence heartbeat every {self.interval}s")
            while True:
                await self.beat()
                await asyncio.sleep(self.interval)
