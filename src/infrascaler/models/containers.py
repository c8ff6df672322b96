#!/usr/bin/env python3
"""
Container status models
"""

from enum import Enum

from pydantic import BaseModel, Field


class LifecycleState(str, Enum):
    """Container lifecycle state as reported by the platform"""
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class HealthState(str, Enum):
    """Per-instance health classification"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class ResourceUsage(BaseModel):
    """Resource usage of a single container"""
    cpu: float = Field(0.0, ge=0, description="CPU usage percentage")
    memory: float = Field(0.0, ge=0, description="Memory usage in megabytes")
    disk: float = Field(0.0, ge=0, description="Block I/O in megabytes")
    network: float = Field(0.0, ge=0, description="Network I/O in megabytes")


class ContainerStatus(BaseModel):
    """Status of one running replica of the managed workload"""
    id: str = Field(..., description="Platform identifier of the container")
    name: str = Field(..., description="Container name")
    lifecycle_state: LifecycleState = Field(LifecycleState.STARTING)
    uptime_seconds: float = Field(0.0, ge=0)
    resource_usage: ResourceUsage = Field(default_factory=ResourceUsage)
    health: HealthState = Field(HealthState.UNKNOWN)

    @property
    def is_running(self) -> bool:
        return self.lifecycle_state == LifecycleState.RUNNING
