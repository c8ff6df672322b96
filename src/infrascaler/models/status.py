#!/usr/bin/env python3
"""
Status query response model
"""

from typing import List

from pydantic import BaseModel, Field

from .containers import ContainerStatus
from .metrics import PerformanceSample
from .scaling import ScalingDecision


class InfrastructureStatus(BaseModel):
    """Read-only snapshot returned by the status surface"""
    initialized: bool = Field(..., description="Whether initialize() completed")
    state: str = Field(..., description="Current lifecycle state")
    containers: List[ContainerStatus] = Field(default_factory=list)
    latest_metrics: PerformanceSample
    scaling_history: List[ScalingDecision] = Field(default_factory=list, description="Most recent decisions")
    uptime_seconds: float = Field(0.0, ge=0)

    class Config:
        frozen = True
