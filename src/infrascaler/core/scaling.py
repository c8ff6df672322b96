#!/usr/bin/env python3
"""
Scaling policy module for making scaling decisions, and the append-only
history of decisions taken
"""

import logging
from typing import List, Optional, Tuple

from infrascaler.config.settings import ScalingSettings
from infrascaler.models.metrics import PerformanceSample
from infrascaler.models.scaling import ScalingAction, ScalingDecision

logger = logging.getLogger(__name__)


class ScalingPolicy:
    """Pure threshold policy: one instance up or down per decision"""

    def __init__(self, settings: ScalingSettings):
        """
        Initialize scaling policy

        Args:
            settings: Scaling bounds and utilization targets
        """
        self.settings = settings

    def evaluate(self, sample: PerformanceSample, current_instances: int) -> ScalingDecision:
        """
        Evaluate a sample and determine if scaling is needed

        Args:
            sample: Latest performance sample
            current_instances: Instances running now

        Returns:
            ScalingDecision with action, target and reason
        """
        s = self.settings
        cpu = sample.cpu_utilization_percent
        memory = sample.memory_utilization_percent

        triggers = []
        if cpu > s.target_cpu_percent:
            triggers.append(f"CPU {cpu:.1f}% > {s.target_cpu_percent:.1f}%")
        if memory > s.target_memory_percent:
            triggers.append(f"memory {memory:.1f}% > {s.target_memory_percent:.1f}%")

        if triggers and current_instances < s.max_instances:
            return self._decision(
                ScalingAction.SCALE_UP,
                current_instances,
                min(current_instances + 1, s.max_instances),
                f"High utilization: {', '.join(triggers)}",
                sample
            )

        cpu_floor = s.target_cpu_percent * s.scale_down_factor
        memory_floor = s.target_memory_percent * s.scale_down_factor
        if cpu < cpu_floor and memory < memory_floor and current_instances > s.min_instances:
            return self._decision(
                ScalingAction.SCALE_DOWN,
                current_instances,
                max(current_instances - 1, s.min_instances),
                f"Low utilization: CPU {cpu:.1f}% < {cpu_floor:.1f}% and memory {memory:.1f}% < {memory_floor:.1f}%",
                sample
            )

        if triggers:
            reason = f"At maximum instances ({s.max_instances}) despite {', '.join(triggers)}"
        elif cpu < cpu_floor and memory < memory_floor:
            reason = f"At minimum instances ({s.min_instances})"
        else:
            reason = "Utilization within targets"
        return self._decision(ScalingAction.MAINTAIN, current_instances, current_instances, reason, sample)

    @staticmethod
    def _decision(
        action: ScalingAction,
        current: int,
        target: int,
        reason: str,
        sample: PerformanceSample
    ) -> ScalingDecision:
        return ScalingDecision(
            action=action,
            current_instances=current,
            target_instances=target,
            reason=reason,
            metrics_snapshot=sample,
        )


class ScalingHistory:
    """Append-only, time-ordered log of scaling decisions"""

    def __init__(self):
        self._decisions: List[ScalingDecision] = []

    def append(self, decision: ScalingDecision):
        self._decisions.append(decision)
        logger.debug(
            f"Recorded decision {decision.action.value}: "
            f"{decision.current_instances} -> {decision.target_instances}"
        )

    def tail(self, limit: Optional[int] = None) -> Tuple[ScalingDecision, ...]:
        """The last ``limit`` decisions, oldest first (all when None)"""
        if limit is None:
            return tuple(self._decisions)
        if limit <= 0:
            return ()
        return tuple(self._decisions[-limit:])

    def latest(self) -> Optional[ScalingDecision]:
        return self._decisions[-1] if self._decisions else None

    def __len__(self) -> int:
        return len(self._decisions)
