#!/usr/bin/env python3
"""
Shared fakes and builders for the test suite
"""

import asyncio
from typing import Dict, List, Optional

from infrascaler.config.settings import (
    DeploymentSettings,
    InfrastructureConfig,
    MetricsSourceKind,
    MonitoringSettings,
    OrchestratorKind,
    ScalingSettings,
)
from infrascaler.core.exceptions import MetricsUnavailable
from infrascaler.core.metrics import MetricsSource
from infrascaler.drivers.base import DeploymentDriver
from infrascaler.models.containers import ContainerStatus, HealthState, LifecycleState
from infrascaler.models.metrics import PerformanceSample


def make_sample(cpu: float = 50.0, memory: float = 50.0, response_time: float = 500.0) -> PerformanceSample:
    """Sample with the given utilization and plausible other values"""
    return PerformanceSample.measured(
        response_time_ms=response_time,
        throughput_ops_per_sec=250.0,
        memory_usage_mb=120.0,
        memory_utilization_percent=memory,
        cpu_utilization_percent=cpu,
    )


def make_config(
    min_instances: int = 1,
    max_instances: int = 5,
    scaling_enabled: bool = True,
    monitoring_enabled: bool = True,
    **scaling_overrides
) -> InfrastructureConfig:
    """Config with fast timeouts and loops that never tick on their own"""
    scaling = ScalingSettings(
        enabled=scaling_enabled,
        min_instances=min_instances,
        max_instances=max_instances,
        target_cpu_percent=70.0,
        target_memory_percent=80.0,
        evaluation_interval=3600.0,
        scaling_timeout=0.2,
        poll_interval=0.01,
        **scaling_overrides
    )
    return InfrastructureConfig(
        orchestrator=OrchestratorKind.COMPOSE,
        metrics_source=MetricsSourceKind.SYNTHETIC,
        scaling=scaling,
        monitoring=MonitoringSettings(
            enabled=monitoring_enabled,
            metrics_interval=3600.0,
            health_interval=3600.0,
            probe_timeout=0.5,
        ),
        deployment=DeploymentSettings(deployment_timeout=0.2, health_poll_interval=0.01),
    )


class FakeDriver(DeploymentDriver):
    """In-memory driver that records every call"""

    kind = OrchestratorKind.COMPOSE

    def __init__(self):
        self.containers: List[ContainerStatus] = []
        self.health: Dict[str, HealthState] = {}
        # Copy probe results into the listing the way docker inspect does
        self.report_health = False
        self.calls: List[str] = []
        self.converge = True
        self.scale_delay = 0.0
        self.validate_error: Optional[Exception] = None
        self.deploy_error: Optional[Exception] = None
        self.scale_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.active_scales = 0
        self.max_concurrent_scales = 0
        self.closed = False
        self._next_id = 0

    def set_instances(self, count: int):
        while len(self.containers) > count:
            self.containers.pop()
        while len(self.containers) < count:
            self._next_id += 1
            self.containers.append(ContainerStatus(
                id=f"c{self._next_id}",
                name=f"worker-{self._next_id}",
                lifecycle_state=LifecycleState.RUNNING,
            ))

    async def validate(self):
        self.calls.append("validate")
        if self.validate_error is not None:
            raise self.validate_error

    async def deploy(self, desired_instances: int):
        self.calls.append(f"deploy:{desired_instances}")
        if self.deploy_error is not None:
            raise self.deploy_error
        self.set_instances(desired_instances)

    async def execute_scale(self, target_instances: int):
        self.calls.append(f"execute_scale:{target_instances}")
        self.active_scales += 1
        self.max_concurrent_scales = max(self.max_concurrent_scales, self.active_scales)
        try:
            if self.scale_delay:
                await asyncio.sleep(self.scale_delay)
            if self.scale_error is not None:
                raise self.scale_error
            if self.converge:
                self.set_instances(target_instances)
        finally:
            self.active_scales -= 1

    async def list_containers(self) -> List[ContainerStatus]:
        listing = [c.model_copy() for c in self.containers]
        if self.report_health:
            for status in listing:
                status.health = self.health.get(status.id, HealthState.HEALTHY)
        return listing

    async def stop_all(self):
        self.calls.append("stop_all")
        if self.stop_error is not None:
            raise self.stop_error
        self.containers = []

    async def probe_health(self, container_id: str) -> HealthState:
        return self.health.get(container_id, HealthState.HEALTHY)

    async def close(self):
        self.closed = True


class StaticMetricsSource(MetricsSource):
    """Returns the same sample until told otherwise"""

    def __init__(self, sample: Optional[PerformanceSample] = None):
        self.current = sample or make_sample()
        self.fail = False
        self.calls = 0

    def set(self, cpu: float, memory: float):
        self.current = make_sample(cpu=cpu, memory=memory)

    async def sample(self) -> PerformanceSample:
        self.calls += 1
        if self.fail:
            raise MetricsUnavailable("metrics backend down")
        return self.current


class EventRecorder:
    """Collects every event published on a bus"""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [event.event_type.value for event in self.events]
