"""
Models package for orchestrator data structures
"""

from .containers import ContainerStatus, HealthState, LifecycleState, ResourceUsage
from .metrics import PerformanceSample, baseline_sample, compute_improvement_factor
from .scaling import ScalingAction, ScalingDecision
from .status import InfrastructureStatus

__all__ = [
    "PerformanceSample",
    "baseline_sample",
    "compute_improvement_factor",
    "ContainerStatus",
    "HealthState",
    "LifecycleState",
    "ResourceUsage",
    "ScalingAction",
    "ScalingDecision",
    "InfrastructureStatus",
]
