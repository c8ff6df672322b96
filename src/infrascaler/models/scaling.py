#!/usr/bin/env python3
"""
Scaling decision models
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .metrics import PerformanceSample


class ScalingAction(str, Enum):
    """Scaling actions"""
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"
    MAINTAIN = "maintain"


class ScalingDecision(BaseModel):
    """Immutable audit record of an evaluated scaling choice"""
    action: ScalingAction = Field(..., description="Chosen action")
    current_instances: int = Field(..., ge=0, description="Running instances when decided")
    target_instances: int = Field(..., ge=0, description="Requested instance count")
    reason: str = Field(..., description="Human-readable reason for the decision")
    metrics_snapshot: PerformanceSample = Field(..., description="Sample the decision was based on")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True

    @property
    def changes_fleet(self) -> bool:
        return self.action != ScalingAction.MAINTAIN
