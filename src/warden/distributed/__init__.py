"""Distributed coordination primitives for warden.

Provides infrastructure for horizontal scaling:
- Lease locks for singleton workers
- Singleton worker supervision (acquire, refresh, cancel on loss)
- Presence registry of running instances

Example:
    from warden.distributed import LeaseLock, WorkerMode, start_worker

    lease = LeaseLock(store)
    start_worker(WorkerMode.SINGLETON, "gc", run_gc, lease=lease, instance_id=iid)
"""

from warden.distributed.lease import DEFAULT_LEASE_TTL, REFRESH_INTERVAL, LeaseLock
from warden.distributed.presence import (
    PresenceHeartbeat,
    PresenceRecord,
    PresenceRegistry,
)
from warden.distributed.supervisor import SingletonWorker, WorkerMode, start_worker

__all__ = [
    # Leases
    "DEFAULT_LEASE_TTL",
    "REFRESH_INTERVAL",
    "LeaseLock",
    # Workers
    "SingletonWorker",
    "WorkerMode",
    "start_worker",
    # Presence
    "PresenceHeartbeat",
    "PresenceRecord",
    "PresenceRegistry",
]
