"""Process-wide coordination context.

Built once at startup and passed to whatever needs coordination: the
HTTP layer gets the rate limiter, replay guard and lockout counter, the
worker bootstrap gets the lease and the heartbeat. All primitives share
one store client.

Example:
    async with CoordinationContext.from_settings(settings) as ctx:
        asyncio.create_task(ctx.heartbeat().run())
        ctx.start_worker(WorkerMode.SINGLETON, "trash_cleanup", trash_cleanup)

        retry_after = await ctx.rate_limiter.check_and_consume(user_id, limit=100)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from warden.config import Settings
from warden.distributed.lease import LeaseLock
from warden.distributed.presence import PresenceHeartbeat, PresenceRegistry
from warden.distributed.supervisor import WorkerFunc, WorkerMode, start_worker
from warden.security.lockout import AttemptLockout
from warden.security.rate_limit import FixedWindowRateLimiter
from warden.security.replay import ReplayGuard
from warden.store.client import close_redis, create_redis
from warden.store.facade import AtomicStore
from warden.store.keys import CoordinationKeys


@dataclass
class CoordinationContext:
    """One instance of every coordination primitive over a shared store."""

    settings: Settings
    store: AtomicStore
    keys: CoordinationKeys = field(init=False)
    lease: LeaseLock = field(init=False)
    presence: PresenceRegistry = field(init=False)
    rate_limiter: FixedWindowRateLimiter = field(init=False)
    replay_guard: ReplayGuard = field(init=False)
    lockout: AttemptLockout = field(init=False)

    def __post_init__(self) -> None:
        settings = self.settings
        self.keys = CoordinationKeys.from_settings(settings)
        self.lease = LeaseLock(self.store, self.keys, strict=settings.lease_strict_refresh)
        self.presence = PresenceRegistry(self.store, settings.registry_key)
        self.rate_limiter = FixedWindowRateLimiter(
            self.store, self.keys, window_seconds=settings.rate_limit_window
        )
        self.replay_guard = ReplayGuard(self.store, self.keys, ttl=settings.replay_ttl)
        self.lockout = AttemptLockout(
            self.store,
            self.keys,
            ttl=settings.lockout_ttl,
            max_attempts=settings.lockout_max_attempts,
        )

    @property
    def instance_id(self) -> str:
        return self.settings.instance_id

    @classmethod
    @asynccontextmanager
    async def from_settings(cls, settings: Settings) -> AsyncIterator[CoordinationContext]:
        """Create the shared store client, yield a context, close the client on exit."""
        client = create_redis(settings)
        try:
            yield cls(settings, AtomicStore(client, settings.command_timeout))
        finally:
            await close_redis(client)

    def heartbeat(self) -> PresenceHeartbeat:
        """Heartbeat loop for this instance, configured from settings."""
        return PresenceHeartbeat(
            self.presence,
            self.instance_id,
            interval=self.settings.heartbeat_interval,
            max_lifetime=self.settings.presence_max_lifetime,
            failure_policy=self.settings.loop_failure_policy,
        )

    def start_worker(
        self, mode: WorkerMode, worker_name: str, run_worker: WorkerFunc
    ) -> asyncio.Task[None] | None:
        """Start a worker with this instance's lease settings."""
        return start_worker(
            mode,
            worker_name,
            run_worker,
            lease=self.lease,
            instance_id=self.instance_id,
            ttl=self.settings.lease_ttl,
            refresh_interval=self.settings.lease_refresh_interval,
            failure_policy=self.settings.loop_failure_policy,
        )
