"""Tests for the presence registry and heartbeat loop."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from warden.config import FailurePolicy
from warden.distributed.presence import PresenceHeartbeat, PresenceRecord, PresenceRegistry
from warden.errors import StoreUnavailableError
from warden.store.facade import AtomicStore


@pytest.fixture
def registry(store: AtomicStore, clock) -> PresenceRegistry:
    return PresenceRegistry(store, clock=clock)


class TestPresenceRegistry:
    """Tests for heartbeat, prune and listing."""

    @pytest.mark.asyncio
    async def test_heartbeat_records_current_time(
        self, registry: PresenceRegistry, store: AtomicStore, clock
    ) -> None:
        """A heartbeat stores the instance with the current timestamp."""
        await registry.heartbeat("node-a")

        members = await store.sorted_set_range("app:identity", float("-inf"), float("inf"))
        assert len(members) == 1
        member, score = members[0]
        assert member == "node-a"
        assert abs(score - clock()) < 1

    @pytest.mark.asyncio
    async def test_heartbeat_updates_existing_record(
        self, registry: PresenceRegistry, store: AtomicStore, clock
    ) -> None:
        """Repeated heartbeats refresh the score instead of duplicating."""
        await registry.heartbeat("node-a")
        clock.advance(30)
        await registry.heartbeat("node-a")

        members = await store.sorted_set_range("app:identity", float("-inf"), float("inf"))
        assert members == [("node-a", float(int(clock())))]

    @pytest.mark.asyncio
    async def test_prune_removes_stale_records(self, registry: PresenceRegistry, clock) -> None:
        """Records older than the max lifetime are pruned."""
        await registry.heartbeat("node-a")
        clock.advance(61)

        removed = await registry.prune_stale(max_lifetime=60)

        assert removed == 1
        assert await registry.live_instances(max_lifetime=3600) == []

    @pytest.mark.asyncio
    async def test_prune_keeps_fresh_records(self, registry: PresenceRegistry, clock) -> None:
        """Records within the max lifetime survive a prune."""
        await registry.heartbeat("node-a")
        clock.advance(30)
        await registry.heartbeat("node-b")
        clock.advance(40)

        removed = await registry.prune_stale(max_lifetime=60)

        assert removed == 1
        live = await registry.live_instances(max_lifetime=60)
        assert [r.instance_id for r in live] == ["node-b"]

    @pytest.mark.asyncio
    async def test_any_instance_prunes_others(self, store: AtomicStore, clock) -> None:
        """Pruning is done by whoever runs it, not only the record's owner."""
        crashed = PresenceRegistry(store, clock=clock)
        survivor = PresenceRegistry(store, clock=clock)
        await crashed.heartbeat("node-a")
        clock.advance(120)

        await survivor.heartbeat("node-b")
        await survivor.prune_stale(max_lifetime=60)

        live = await survivor.live_instances(max_lifetime=60)
        assert [r.instance_id for r in live] == ["node-b"]

    @pytest.mark.asyncio
    async def test_live_instances_ordered_by_heartbeat(
        self, registry: PresenceRegistry, clock
    ) -> None:
        """Live instances are listed oldest heartbeat first."""
        await registry.heartbeat("node-b")
        clock.advance(5)
        await registry.heartbeat("node-a")

        live = await registry.live_instances(max_lifetime=60)

        assert [r.instance_id for r in live] == ["node-b", "node-a"]

    def test_record_last_seen(self) -> None:
        """Records expose their heartbeat as an aware datetime."""
        record = PresenceRecord(instance_id="node-a", last_heartbeat=0.0)
        assert record.last_seen == datetime(1970, 1, 1, tzinfo=UTC)


class TestPresenceHeartbeat:
    """Tests for the heartbeat loop."""

    @pytest.mark.asyncio
    async def test_beat_registers_then_prunes(self) -> None:
        """One cycle registers this instance then prunes stale ones."""
        registry = AsyncMock(spec=PresenceRegistry)
        calls: list[str] = []
        registry.heartbeat.side_effect = lambda *a: calls.append("heartbeat")
        registry.prune_stale.side_effect = lambda *a: calls.append("prune")

        heartbeat = PresenceHeartbeat(registry, "node-a", max_lifetime=90)
        await heartbeat.beat()

        assert calls == ["heartbeat", "prune"]
        registry.heartbeat.assert_awaited_once_with("node-a")
        registry.prune_stale.assert_awaited_once_with(90)

    @pytest.mark.asyncio
    async def test_run_registers_immediately(
        self, registry: PresenceRegistry, clock
    ) -> None:
        """The instance is visible before the first interval elapses."""
        heartbeat = PresenceHeartbeat(registry, "node-a", interval=3600)

        task = asyncio.create_task(heartbeat.run())
        await asyncio.sleep(0.01)
        try:
            live = await registry.live_instances()
            assert [r.instance_id for r in live] == ["node-a"]
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    @pytest.mark.asyncio
    async def test_run_repeats_every_interval(self) -> None:
        """The loop keeps beating on its interval."""
        registry = AsyncMock(spec=PresenceRegistry)
        heartbeat = PresenceHeartbeat(registry, "node-a", interval=0)

        task = asyncio.create_task(heartbeat.run())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert registry.heartbeat.await_count > 1

    @pytest.mark.asyncio
    async def test_fail_fast_stops_loop(self) -> None:
        """Under fail-fast the first store error ends the loop."""
        registry = AsyncMock(spec=PresenceRegistry)
        registry.heartbeat.side_effect = StoreUnavailableError("ZADD", "connection refused")
        heartbeat = PresenceHeartbeat(registry, "node-a", interval=0)

        with pytest.raises(StoreUnavailableError):
            await asyncio.wait_for(heartbeat.run(), timeout=1)

        registry.prune_stale.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prune_failure_is_fatal(self) -> None:
        """A failing prune is as fatal as a failing heartbeat."""
        registry = AsyncMock(spec=PresenceRegistry)
        registry.prune_stale.side_effect = StoreUnavailableError(
            "ZREMRANGEBYSCORE", "connection refused"
        )
        heartbeat = PresenceHeartbeat(registry, "node-a")

        with pytest.raises(StoreUnavailableError):
            await heartbeat.beat()

    @pytest.mark.asyncio
    async def test_retry_policy_keeps_running(self) -> None:
        """Under retry a failed cycle is logged and the next one runs."""
        registry = AsyncMock(spec=PresenceRegistry)
        registry.heartbeat.side_effect = [
            StoreUnavailableError("ZADD", "connection refused"),
            None,
            None,
        ]
        heartbeat = PresenceHeartbeat(
            registry, "node-a", interval=0, failure_policy=FailurePolicy.RETRY
        )

        await heartbeat.beat()
        await heartbeat.beat()

        assert registry.heartbeat.await_count == 2
        registry.prune_stale.assert_awaited_once()
