#!/usr/bin/env python3
"""
Health monitor that re-derives the health of every registered container
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from infrascaler.core import instrumentation
from infrascaler.core.exceptions import HealthProbeFailed
from infrascaler.core.registry import ContainerRegistry
from infrascaler.events import EventBus, Unhealthy
from infrascaler.models.containers import HealthState

logger = logging.getLogger(__name__)

Probe = Callable[[str], Awaitable[HealthState]]


class HealthMonitor:
    """Probes containers concurrently and records the result in the registry"""

    def __init__(
        self,
        probe: Probe,
        event_bus: Optional[EventBus] = None,
        timeout: float = 10.0,
        max_concurrency: int = 10
    ):
        """
        Initialize the health monitor

        Args:
            probe: Coroutine function returning the health of one container id
            event_bus: Receives an Unhealthy event on every transition to unhealthy
            timeout: Seconds a single probe may take
            max_concurrency: Maximum number of probes in flight
        """
        self.probe = probe
        self.event_bus = event_bus
        self.timeout = timeout
        self.max_concurrency = max_concurrency

    async def _probe_one(self, container_id: str, semaphore: asyncio.Semaphore) -> HealthState:
        async with semaphore:
            try:
                return await asyncio.wait_for(self.probe(container_id), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Health probe for {container_id} timed out after {self.timeout}s")
            except HealthProbeFailed as e:
                logger.warning(str(e))
            except Exception as e:
                logger.error(f"Health probe for {container_id} raised {type(e).__name__}: {e}")
        instrumentation.HEALTH_PROBE_FAILURES.inc()
        return HealthState.UNKNOWN

    async def check(self, registry: ContainerRegistry) -> Dict[str, int]:
        """
        Probe every tracked container once

        Args:
            registry: Registry whose containers are probed and updated

        Returns:
            Count of containers per health state
        """
        ids = registry.ids()
        summary = {state.value: 0 for state in HealthState}
        if not ids:
            instrumentation.UNHEALTHY_INSTANCES.set(0)
            return summary

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(*(self._probe_one(cid, semaphore) for cid in ids))

        for container_id, health in zip(ids, results):
            previous = registry.update_health(container_id, health)
            if previous is None:
                # removed by a concurrent refresh
                continue
            summary[health.value] += 1
            if health == HealthState.UNHEALTHY and previous != HealthState.UNHEALTHY:
                logger.warning(f"Container {container_id} became unhealthy (was {previous.value})")
                await self._emit_unhealthy(registry, container_id)

        instrumentation.UNHEALTHY_INSTANCES.set(summary[HealthState.UNHEALTHY.value])
        logger.debug(f"Health check summary: {summary}")
        return summary

    async def _emit_unhealthy(self, registry: ContainerRegistry, container_id: str):
        if self.event_bus is None:
            return
        status = registry.get(container_id)
        if status is None:
            return
        await self.event_bus.publish(Unhealthy(data={"container": status}))
