#!/usr/bin/env python3
"""
Deployment driver interface and shared docker plumbing
"""

import asyncio
import concurrent.futures
import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, TypeVar

import docker
import requests

from infrascaler.config.settings import OrchestratorKind
from infrascaler.core.exceptions import DriverNotImplemented, PlatformUnavailable
from infrascaler.models.containers import ContainerStatus, HealthState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeploymentDriver(ABC):
    """Executes deployment operations against one kind of container platform"""

    kind: OrchestratorKind

    @abstractmethod
    async def validate(self):
        """
        Check that the platform is reachable

        Raises:
            PlatformUnavailable: the platform or its tooling cannot be used
        """

    @abstractmethod
    async def deploy(self, desired_instances: int):
        """Bring the managed service up with ``desired_instances`` replicas"""

    @abstractmethod
    async def execute_scale(self, target_instances: int):
        """Request ``target_instances`` replicas of the running service"""

    @abstractmethod
    async def list_containers(self) -> List[ContainerStatus]:
        """Current replicas of the managed service"""

    @abstractmethod
    async def stop_all(self):
        """Stop and remove every replica of the managed service"""

    @abstractmethod
    async def probe_health(self, container_id: str) -> HealthState:
        """
        Probe one replica

        Raises:
            HealthProbeFailed: the replica could not be inspected
        """

    async def close(self):
        """Release client resources"""

    def not_implemented(self, operation: str) -> DriverNotImplemented:
        return DriverNotImplemented(self.kind.value, operation)


class DockerBackedDriver(DeploymentDriver):
    """Base for drivers that talk to a docker daemon through the docker SDK"""

    def __init__(self, max_workers: int = 4, client: Optional[docker.DockerClient] = None):
        """
        Args:
            max_workers: Size of the thread pool used for blocking SDK calls
            client: Pre-built docker client (created from the environment when None)
        """
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=f"{self.kind.value}-driver"
        )
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    async def run_blocking(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking SDK call in the driver's thread pool"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, functools.partial(func, *args, **kwargs))

    async def validate(self):
        try:
            await self.run_blocking(lambda: self.client.ping())
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise PlatformUnavailable(f"Docker daemon is not reachable: {e}") from e
        logger.info("Docker daemon reachable")

    async def close(self):
        if self._client is not None:
            await self.run_blocking(self._client.close)
            self._client = None
        self.thread_pool.shutdown(wait=False)
