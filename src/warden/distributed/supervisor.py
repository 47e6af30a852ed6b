"""Run background workers once per cluster or on every instance.

Workers are started according to their WorkerMode:
- disabled: never started
- all: started on every instance
- singleton: started only on the instance holding the worker's lease

The singleton loop tries to acquire the lease until it succeeds, starts
the worker, then refreshes the lease every ``refresh_interval`` seconds.
If a refresh fails the worker task is cancelled and the loop goes back to
acquiring.

Example:
    async def trash_cleanup() -> None:
        while True:
            await purge_expired_files()
            await asyncio.sleep(3600)

    task = start_worker(
        WorkerMode.SINGLETON,
        "trash_cleanup",
        trash_cleanup,
        lease=LeaseLock(store),
        instance_id=settings.instance_id,
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from warden.config import FailurePolicy
from warden.distributed.lease import DEFAULT_LEASE_TTL, REFRESH_INTERVAL, LeaseLock
from warden.errors import ConfigurationError, StoreUnavailableError
from warden.observability.logging import LogContext

logger = logging.getLogger(__name__)

WorkerFunc = Callable[[], Awaitable[None]]


def _watch_worker(task: asyncio.Task[None], worker_name: str) -> None:
    """Log how a worker task ended; cancellation is not logged."""

    def _on_done(done: asyncio.Task[None]) -> None:
        if done.cancelled():
            return
        error = done.exception()
        if error is not None:
            logger.error(f"Worker '{worker_name}' crashed: {error!r}")
        else:
            logger.info(f"Worker '{worker_name}' finished")

    task.add_done_callback(_on_done)


class WorkerMode(str, Enum):
    """How many instances run a worker."""

    DISABLED = "disabled"
    SINGLETON = "singleton"
    ALL = "all"


class SingletonWorker:
    """Keeps a worker running on exactly one instance at a time.

    Args:
        lease: Lease lock used to elect the running instance
        worker_name: Role name, also the lease name
        instance_id: This instance's holder ID
        run_worker: Coroutine function with the worker body
        ttl: Lease TTL in seconds
        refresh_interval: Seconds between acquire/refresh attempts; must be
            shorter than ``ttl``
        failure_policy: FAIL_FAST propagates store errors out of ``run``;
            RETRY logs them and treats a running worker's lease as lost
    """

    def __init__(
        self,
        lease: LeaseLock,
        worker_name: str,
        instance_id: str,
        run_worker: WorkerFunc,
        ttl: int = DEFAULT_LEASE_TTL,
        refresh_interval: int = REFRESH_INTERVAL,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    ):
        if refresh_interval >= ttl:
            raise ConfigurationError(
                f"refresh_interval ({refresh_interval}s) must be shorter than ttl ({ttl}s)"
            )

        self.lease = lease
        self.worker_name = worker_name
        self.instance_id = instance_id
        self.run_worker = run_worker
        self.ttl = ttl
        self.refresh_interval = refresh_interval
        self.failure_policy = failure_policy

        self._worker_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Check if this instance is currently running the worker."""
        return self._worker_task is not None

    async def tick(self) -> None:
        """Run one acquire-or-refresh step."""
        if self._worker_task is None:
            try:
                acquired = await self.lease.try_acquire(
                    self.worker_name, self.instance_id, self.ttl
                )
            except StoreUnavailableError as e:
                if self.failure_policy is FailurePolicy.FAIL_FAST:
                    raise
                logger.error(f"Failed to acquire worker lease: {e}")
                return

            if acquired:
                logger.info(f"Acquired lease, starting worker '{self.worker_name}'")
                self._start_worker()
            return

        try:
            refreshed = await self.lease.refresh(self.worker_name, self.instance_id, self.ttl)
        except StoreUnavailableError as e:
            if self.failure_policy is FailurePolicy.FAIL_FAST:
                raise
            logger.error(f"Failed to refresh worker lease: {e}")
            refreshed = False

        if not refreshed:
            logger.warning(f"Lost lease, stopping worker '{self.worker_name}'")
            await self._stop_worker()

    async def run(self) -> None:
        """Acquire or refresh forever. Never returns under normal operation."""
        with LogContext(instance_id=self.instance_id, worker=self.worker_name):
            try:
                while True:
                    await self.tick()
                    await asyncio.sleep(self.refresh_interval)
            finally:
                await self._stop_worker()

    def _start_worker(self) -> None:
        self._worker_task = asyncio.create_task(
            self.run_worker(), name=f"worker:{self.worker_name}"
        )
        _watch_worker(self._worker_task, self.worker_name)

    async def _stop_worker(self) -> None:
        task = self._worker_task
        self._worker_task = None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def start_worker(
    mode: WorkerMode,
    worker_name: str,
    run_worker: WorkerFunc,
    *,
    lease: LeaseLock,
    instance_id: str,
    ttl: int = DEFAULT_LEASE_TTL,
    refresh_interval: int = REFRESH_INTERVAL,
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
) -> asyncio.Task[None] | None:
    """Start a worker according to ``mode``.

    Returns:
        The task driving the worker (or its singleton loop), or None when
        the worker is disabled.
    """
    if mode is WorkerMode.DISABLED:
        return None

    if mode is WorkerMode.SINGLETON:
        supervisor = SingletonWorker(
            lease,
            worker_name,
            instance_id,
            run_worker,
            ttl=ttl,
            refresh_interval=refresh_interval,
            failure_policy=failure_policy,
        )
        return asyncio.create_task(supervisor.run(), name=f"singleton:{worker_name}")

    logger.info(f"Started worker '{worker_name}'")
    task = asyncio.create_task(run_worker(), name=f"worker:{worker_name}")
    _watch_worker(task, worker_name)
    return task
