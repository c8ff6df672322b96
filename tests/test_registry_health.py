#!/usr/bin/env python3
"""
Tests for the container registry and the health monitor
"""

import asyncio

import pytest

from conftest import EventRecorder
from infrascaler.core.exceptions import HealthProbeFailed
from infrascaler.core.health import HealthMonitor
from infrascaler.core.registry import ContainerRegistry
from infrascaler.events import EventBus, EventType
from infrascaler.models.containers import ContainerStatus, HealthState, LifecycleState


def container(cid: str, state: LifecycleState = LifecycleState.RUNNING,
              health: HealthState = HealthState.UNKNOWN) -> ContainerStatus:
    return ContainerStatus(id=cid, name=f"worker-{cid}", lifecycle_state=state, health=health)


class TestContainerRegistry:
    """Test registry refresh and queries"""

    def test_refresh_adds_and_removes(self):
        """Test refresh reports added and removed ids"""
        registry = ContainerRegistry()

        added, removed = registry.refresh([container("a"), container("b")])
        assert sorted(added) == ["a", "b"]
        assert removed == []

        added, removed = registry.refresh([container("b"), container("c")])
        assert added == ["c"]
        assert removed == ["a"]
        assert sorted(registry.ids()) == ["b", "c"]

    def test_refresh_is_idempotent(self):
        """Test refreshing with the same listing changes nothing"""
        registry = ContainerRegistry()
        listing = [container("a"), container("b", state=LifecycleState.STOPPED)]

        registry.refresh(listing)
        assert registry.refresh(listing) == ([], [])
        assert len(registry) == 2
        assert registry.running_count() == 1

    def test_listing_never_overrides_tracked_health(self):
        """Test only health checks change the health of a tracked container"""
        registry = ContainerRegistry()
        registry.refresh([container("a")])
        registry.update_health("a", HealthState.UNHEALTHY)

        registry.refresh([container("a")])
        assert registry.get("a").health == HealthState.UNHEALTHY

        registry.refresh([container("a", health=HealthState.HEALTHY)])
        assert registry.get("a").health == HealthState.UNHEALTHY

    def test_new_ids_start_unknown(self):
        """Test listing health is ignored until the first health check"""
        registry = ContainerRegistry()
        registry.refresh([container("a", health=HealthState.UNHEALTHY)])

        assert registry.get("a").health == HealthState.UNKNOWN
        assert registry.update_health("a", HealthState.UNHEALTHY) == HealthState.UNKNOWN

    def test_snapshot_returns_copies(self):
        """Test mutating a snapshot does not touch the registry"""
        registry = ContainerRegistry()
        registry.refresh([container("a")])

        snapshot = registry.snapshot()
        snapshot[0].health = HealthState.UNHEALTHY
        snapshot[0].resource_usage.cpu = 99.0

        stored = registry.get("a")
        assert stored.health == HealthState.UNKNOWN
        assert stored.resource_usage.cpu == 0.0

    def test_update_health(self):
        """Test update_health returns the previous value"""
        registry = ContainerRegistry()
        registry.refresh([container("a")])

        assert registry.update_health("a", HealthState.HEALTHY) == HealthState.UNKNOWN
        assert registry.update_health("missing", HealthState.HEALTHY) is None
        assert registry.all_healthy() is True
        assert "a" in registry


class TestHealthMonitor:
    """Test concurrent health probing"""

    def _run(self, monitor, registry):
        return asyncio.run(monitor.check(registry))

    def test_check_updates_registry_and_summarizes(self):
        """Test probe results are stored and counted"""
        results = {"a": HealthState.HEALTHY, "b": HealthState.UNHEALTHY}

        async def probe(cid):
            return results[cid]

        registry = ContainerRegistry()
        registry.refresh([container("a"), container("b")])

        summary = self._run(HealthMonitor(probe), registry)

        assert summary == {"healthy": 1, "unhealthy": 1, "unknown": 0}
        assert registry.get("b").health == HealthState.UNHEALTHY

    def test_failed_probe_marks_unknown_without_aborting(self):
        """Test one failing probe does not stop the others"""
        async def probe(cid):
            if cid == "a":
                raise HealthProbeFailed(cid, "inspect failed")
            return HealthState.HEALTHY

        registry = ContainerRegistry()
        registry.refresh([container("a", health=HealthState.HEALTHY), container("b")])
        registry.update_health("a", HealthState.HEALTHY)

        summary = self._run(HealthMonitor(probe), registry)

        assert registry.get("a").health == HealthState.UNKNOWN
        assert registry.get("b").health == HealthState.HEALTHY
        assert summary["unknown"] == 1

    def test_slow_probe_times_out(self):
        """Test a probe exceeding the timeout is treated as unknown"""
        async def probe(cid):
            await asyncio.sleep(1.0)
            return HealthState.HEALTHY

        registry = ContainerRegistry()
        registry.refresh([container("a")])

        summary = self._run(HealthMonitor(probe, timeout=0.05), registry)
        assert summary["unknown"] == 1

    def test_unhealthy_event_only_on_transition(self):
        """Test an unhealthy event is emitted once per transition"""
        async def scenario():
            bus = EventBus()
            recorder = EventRecorder()
            await bus.subscribe(EventType.UNHEALTHY, recorder)

            async def probe(cid):
                return HealthState.UNHEALTHY

            registry = ContainerRegistry()
            registry.refresh([container("a")])
            monitor = HealthMonitor(probe, event_bus=bus)

            await monitor.check(registry)
            await monitor.check(registry)
            return recorder

        recorder = asyncio.run(scenario())
        assert recorder.types == ["unhealthy"]
        payload = recorder.events[0].data["container"]
        assert payload.id == "a"
        assert payload.health == HealthState.UNHEALTHY

    def test_concurrency_is_bounded(self):
        """Test no more probes run at once than allowed"""
        active = 0
        peak = 0

        async def probe(cid):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return HealthState.HEALTHY

        registry = ContainerRegistry()
        registry.refresh([container(str(i)) for i in range(8)])

        summary = self._run(HealthMonitor(probe, max_concurrency=2), registry)

        assert summary["healthy"] == 8
        assert peak == 2

    def test_empty_registry(self):
        async def probe(cid):
            pytest.fail("probe should not be called")

        assert self._run(HealthMonitor(probe), ContainerRegistry()) == {
            "healthy": 0, "unhealthy": 0, "unknown": 0
        }
