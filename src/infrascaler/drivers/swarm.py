#!/usr/bin/env python3
"""
Docker Swarm deployment driver

Only the daemon reachability check is available.
"""

from typing import List, Optional

import docker

from infrascaler.config.settings import OrchestratorKind
from infrascaler.drivers.base import DockerBackedDriver
from infrascaler.models.containers import ContainerStatus, HealthState


class SwarmDriver(DockerBackedDriver):
    kind = OrchestratorKind.SWARM

    def __init__(self, max_workers: int = 2, client: Optional[docker.DockerClient] = None):
        super().__init__(max_workers=max_workers, client=client)

    async def deploy(self, desired_instances: int):
        raise self.not_implemented("deploy")

    async def execute_scale(self, target_instances: int):
        raise self.not_implemented("execute_scale")

    async def list_containers(self) -> List[ContainerStatus]:
        raise self.not_implemented("list_containers")

    async def stop_all(self):
        raise self.not_implemented("stop_all")

    async def probe_health(self, container_id: str) -> HealthState:
        raise self.not_implemented("probe_health")
