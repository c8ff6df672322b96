"""
Core orchestrator modules
"""

from .health import HealthMonitor
from .metrics import (
    MetricsHistory,
    MetricsSource,
    PrometheusMetricsSource,
    SyntheticMetricsSource,
    create_metrics_source,
)
from .registry import ContainerRegistry
from .scaling import ScalingHistory, ScalingPolicy
from .tasks import PeriodicTask

__all__ = [
    "ContainerRegistry",
    "HealthMonitor",
    "MetricsHistory",
    "MetricsSource",
    "PrometheusMetricsSource",
    "SyntheticMetricsSource",
    "create_metrics_source",
    "ScalingHistory",
    "ScalingPolicy",
    "PeriodicTask",
]
