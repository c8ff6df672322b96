#!/usr/bin/env python3
"""
Pydantic models for performance samples
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

# Reference point for improvement factors
BASELINE_RESPONSE_TIME_MS = 1000.0
BASELINE_THROUGHPUT_OPS = 100.0
BASELINE_MEMORY_MB = 200.0
BASELINE_CPU_PERCENT = 50.0
BASELINE_MEMORY_PERCENT = 50.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_improvement_factor(baseline_response_time_ms: float, response_time_ms: float) -> float:
    """Ratio of baseline to current response time; 1.0 when nothing was measured"""
    if response_time_ms <= 0:
        return 1.0
    return baseline_response_time_ms / response_time_ms


class PerformanceSample(BaseModel):
    """Point-in-time performance sample of the fleet"""
    response_time_ms: float = Field(..., ge=0, description="Average response time in milliseconds")
    throughput_ops_per_sec: float = Field(..., ge=0, description="Operations per second")
    memory_usage_mb: float = Field(..., ge=0, description="Memory in use in megabytes")
    memory_utilization_percent: float = Field(..., ge=0, le=100, description="Memory usage percentage")
    cpu_utilization_percent: float = Field(..., ge=0, description="CPU usage percentage")
    disk_io_mb_per_sec: float = Field(0.0, ge=0, description="Disk throughput in MB/s")
    network_latency_ms: float = Field(0.0, ge=0, description="Network latency in milliseconds")
    timestamp: datetime = Field(default_factory=_utcnow, description="Timestamp of collection")
    improvement_factor: float = Field(1.0, ge=0, description="Baseline response time / response time")

    class Config:
        frozen = True

    @classmethod
    def measured(
        cls,
        baseline_response_time_ms: float = BASELINE_RESPONSE_TIME_MS,
        **values: Any
    ) -> "PerformanceSample":
        """Build a sample and derive its improvement factor from the baseline"""
        values["improvement_factor"] = compute_improvement_factor(
            baseline_response_time_ms, values.get("response_time_ms", 0.0)
        )
        return cls(**values)


def baseline_sample() -> PerformanceSample:
    """Sample reported before any real measurement exists"""
    return PerformanceSample(
        response_time_ms=BASELINE_RESPONSE_TIME_MS,
        throughput_ops_per_sec=BASELINE_THROUGHPUT_OPS,
        memory_usage_mb=BASELINE_MEMORY_MB,
        memory_utilization_percent=BASELINE_MEMORY_PERCENT,
        cpu_utilization_percent=BASELINE_CPU_PERCENT,
        improvement_factor=1.0,
    )
