"""
Event notifications emitted by the orchestrator
"""

from .base import Event, EventHandler, EventType
from .core_events import (
    Deployed,
    Initialized,
    MetricsCollected,
    Scaled,
    ScalingFailed,
    Shutdown,
    Unhealthy,
)
from .event_bus import CallbackHandler, EventBus

__all__ = [
    "Event",
    "EventHandler",
    "EventType",
    "EventBus",
    "CallbackHandler",
    "Initialized",
    "Deployed",
    "Scaled",
    "ScalingFailed",
    "Unhealthy",
    "MetricsCollected",
    "Shutdown",
]
