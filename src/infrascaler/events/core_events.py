#!/usr/bin/env python3
"""
Events emitted by the orchestrator
"""

from dataclasses import dataclass

from .base import Event, EventType


@dataclass
class Initialized(Event):
    """Platform validated and loops started; data: config summary"""
    event_type: EventType = EventType.INITIALIZED

    def __post_init__(self):
        super().__post_init__()
        self.require("config")


@dataclass
class Deployed(Event):
    """Fleet deployed and healthy; data: container snapshot"""
    event_type: EventType = EventType.DEPLOYED

    def __post_init__(self):
        super().__post_init__()
        self.require("containers")


@dataclass
class Scaled(Event):
    """Scaling operation converged; data: decision, running_instances"""
    event_type: EventType = EventType.SCALED

    def __post_init__(self):
        super().__post_init__()
        self.require("decision", "running_instances")


@dataclass
class ScalingFailed(Event):
    """Scaling operation failed or timed out; data: decision, error"""
    event_type: EventType = EventType.SCALING_FAILED

    def __post_init__(self):
        super().__post_init__()
        self.require("decision", "error")


@dataclass
class Unhealthy(Event):
    """Container transitioned to unhealthy; data: container status copy"""
    event_type: EventType = EventType.UNHEALTHY

    def __post_init__(self):
        super().__post_init__()
        self.require("container")


@dataclass
class MetricsCollected(Event):
    """New performance sample recorded; data: sample"""
    event_type: EventType = EventType.METRICS

    def __post_init__(self):
        super().__post_init__()
        self.require("sample")


@dataclass
class Shutdown(Event):
    """Orchestrator shut down; data: previous_state"""
    event_type: EventType = EventType.SHUTDOWN
