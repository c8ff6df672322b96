#!/usr/bin/env python3
"""
In-memory registry of the managed service's containers
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from infrascaler.models.containers import ContainerStatus, HealthState

logger = logging.getLogger(__name__)


class ContainerRegistry:
    """Authoritative view of instance status keyed by container id"""

    def __init__(self):
        self._containers: Dict[str, ContainerStatus] = {}

    def refresh(self, listing: Iterable[ContainerStatus]) -> Tuple[List[str], List[str]]:
        """
        Replace the registry content with a platform listing

        Ids absent from the listing are dropped. Health is written only by
        update_health: tracked ids keep their last probed health whatever the
        listing says, and new ids start unknown until their first probe.

        Args:
            listing: Containers currently reported by the deployment driver

        Returns:
            Tuple of (added ids, removed ids)
        """
        updated: Dict[str, ContainerStatus] = {}
        for status in listing:
            entry = status.model_copy(deep=True)
            previous = self._containers.get(entry.id)
            entry.health = previous.health if previous is not None else HealthState.UNKNOWN
            updated[entry.id] = entry

        added = [cid for cid in updated if cid not in self._containers]
        removed = [cid for cid in self._containers if cid not in updated]
        self._containers = updated

        if added or removed:
            logger.info(f"Registry refreshed: +{len(added)} -{len(removed)} ({len(updated)} tracked)")
        return added, removed

    def running_count(self) -> int:
        return sum(1 for status in self._containers.values() if status.is_running)

    def unhealthy_count(self) -> int:
        return sum(1 for status in self._containers.values() if status.health == HealthState.UNHEALTHY)

    def all_healthy(self) -> bool:
        """True when every tracked container is healthy (vacuously for an empty registry)"""
        return all(status.health == HealthState.HEALTHY for status in self._containers.values())

    def snapshot(self) -> List[ContainerStatus]:
        """Deep copies of every tracked status"""
        return [status.model_copy(deep=True) for status in self._containers.values()]

    def get(self, container_id: str) -> Optional[ContainerStatus]:
        status = self._containers.get(container_id)
        return status.model_copy(deep=True) if status is not None else None

    def ids(self) -> List[str]:
        return list(self._containers)

    def update_health(self, container_id: str, health: HealthState) -> Optional[HealthState]:
        """
        Set the health of a tracked container

        Returns:
            The previous health, or None when the id is no longer tracked
        """
        status = self._containers.get(container_id)
        if status is None:
            return None
        previous = status.health
        status.health = health
        return previous

    def clear(self):
        self._containers.clear()

    def __len__(self) -> int:
        return len(self._containers)

    def __contains__(self, container_id: str) -> bool:
        return container_id in self._containers
