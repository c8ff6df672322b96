#!/usr/bin/env python3
"""
Docker Compose deployment driver

Deploy, scale and stop go through the compose CLI; listing, health probes
and resource stats go through the docker SDK using compose's labels.
"""

import asyncio
import logging
import os
import shutil
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import docker
import requests

from infrascaler.config.settings import ComposeSettings, OrchestratorKind
from infrascaler.core.exceptions import DeploymentFailed, HealthProbeFailed, PlatformUnavailable
from infrascaler.drivers.base import DockerBackedDriver
from infrascaler.models.containers import ContainerStatus, HealthState, LifecycleState, ResourceUsage

logger = logging.getLogger(__name__)

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"

LIFECYCLE_BY_DOCKER_STATUS = {
    "created": LifecycleState.STARTING,
    "restarting": LifecycleState.STARTING,
    "running": LifecycleState.RUNNING,
    "paused": LifecycleState.STOPPED,
    "removing": LifecycleState.STOPPED,
    "exited": LifecycleState.STOPPED,
    "dead": LifecycleState.ERROR,
}

HEALTH_BY_DOCKER_HEALTH = {
    "healthy": HealthState.HEALTHY,
    "unhealthy": HealthState.UNHEALTHY,
    "starting": HealthState.UNKNOWN,
}

MB = 1024 * 1024


def parse_docker_time(value: Optional[str]) -> Optional[datetime]:
    """Parse docker's RFC 3339 timestamps, which carry nanoseconds"""
    if not value or value.startswith("0001-01-01"):
        return None
    value = value.rstrip("Z")
    offset = "+00:00"
    for sign in ("+", "-"):
        idx = value.rfind(sign)
        if idx > value.find("T"):
            value, offset = value[:idx], value[idx:]
            break
    if "." in value:
        seconds, fraction = value.split(".", 1)
        value = f"{seconds}.{fraction[:6].ljust(6, '0')}"
    try:
        return datetime.fromisoformat(value + offset).astimezone(timezone.utc)
    except ValueError:
        logger.debug(f"Unparseable docker timestamp: {value}")
        return None


def resource_usage_from_stats(stats: Dict[str, Any]) -> ResourceUsage:
    """Convert a one-shot docker stats payload into ResourceUsage"""
    cpu_stats = stats.get("cpu_stats", {})
    precpu_stats = stats.get("precpu_stats", {})
    cpu_delta = (
        cpu_stats.get("cpu_usage", {}).get("total_usage", 0)
        - precpu_stats.get("cpu_usage", {}).get("total_usage", 0)
    )
    system_delta = cpu_stats.get("system_cpu_usage", 0) - precpu_stats.get("system_cpu_usage", 0)
    online_cpus = cpu_stats.get("online_cpus") or len(cpu_stats.get("cpu_usage", {}).get("percpu_usage") or []) or 1
    cpu_percent = (cpu_delta / system_delta) * online_cpus * 100.0 if cpu_delta > 0 and system_delta > 0 else 0.0

    memory_mb = stats.get("memory_stats", {}).get("usage", 0) / MB

    blkio = stats.get("blkio_stats", {}).get("io_service_bytes_recursive") or []
    disk_mb = sum(entry.get("value", 0) for entry in blkio) / MB

    networks = stats.get("networks") or {}
    network_mb = sum(n.get("rx_bytes", 0) + n.get("tx_bytes", 0) for n in networks.values()) / MB

    return ResourceUsage(cpu=cpu_percent, memory=memory_mb, disk=disk_mb, network=network_mb)


class ComposeDriver(DockerBackedDriver):
    """Drives a docker compose project"""

    kind = OrchestratorKind.COMPOSE

    def __init__(self, settings: ComposeSettings, client: Optional[docker.DockerClient] = None):
        self.settings = settings
        super().__init__(max_workers=settings.max_workers, client=client)

    def _compose_args(self, *args: str) -> List[str]:
        return [
            *self.settings.compose_command,
            "-f", self.settings.compose_file,
            "-p", self.settings.project_name,
            *args
        ]

    async def _run_command(self, command: List[str]) -> str:
        """
        Run an external command and capture its combined output

        Raises:
            DeploymentFailed: the command could not start, timed out or exited non-zero
        """
        logger.debug(f"Running: {' '.join(command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT
            )
        except OSError as e:
            raise DeploymentFailed(command, None, str(e)) from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.settings.command_timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                # Exited between the timeout and the kill
                pass
            await process.wait()
            raise DeploymentFailed(command, None, f"timed out after {self.settings.command_timeout}s")

        output = stdout.decode(errors="replace") if stdout else ""
        if process.returncode != 0:
            raise DeploymentFailed(command, process.returncode, output)
        return output

    async def validate(self):
        await super().validate()

        executable = self.settings.compose_command[0]
        if shutil.which(executable) is None:
            raise PlatformUnavailable(f"Compose executable '{executable}' not found on PATH")
        try:
            version = await self._run_command([*self.settings.compose_command, "version"])
        except DeploymentFailed as e:
            raise PlatformUnavailable(f"Compose CLI is not usable: {e}") from e
        logger.info(f"Compose CLI available: {version.strip().splitlines()[0] if version.strip() else executable}")

        if not os.path.exists(self.settings.compose_file):
            logger.warning(f"Compose file {self.settings.compose_file} does not exist yet")

    async def deploy(self, desired_instances: int):
        logger.info(f"Deploying {self.settings.service} with {desired_instances} instance(s)")
        await self._run_command(self._compose_args(
            "up", "-d", "--scale", f"{self.settings.service}={desired_instances}"
        ))

    async def execute_scale(self, target_instances: int):
        logger.info(f"Scaling {self.settings.service} to {target_instances} instance(s)")
        await self._run_command(self._compose_args(
            "up", "-d", "--no-recreate", "--scale", f"{self.settings.service}={target_instances}"
        ))

    async def stop_all(self):
        logger.info(f"Stopping compose project {self.settings.project_name}")
        await self._run_command(self._compose_args("down"))

    def _list_service_containers(self) -> list:
        return self.client.containers.list(
            all=True,
            filters={"label": [
                f"{PROJECT_LABEL}={self.settings.project_name}",
                f"{SERVICE_LABEL}={self.settings.service}",
            ]}
        )

    def _to_status(self, container) -> ContainerStatus:
        state = container.attrs.get("State", {})
        lifecycle = LIFECYCLE_BY_DOCKER_STATUS.get(container.status, LifecycleState.ERROR)

        uptime = 0.0
        started_at = parse_docker_time(state.get("StartedAt"))
        if lifecycle == LifecycleState.RUNNING and started_at is not None:
            uptime = max((datetime.now(timezone.utc) - started_at).total_seconds(), 0.0)

        health_status = (state.get("Health") or {}).get("Status")
        health = HEALTH_BY_DOCKER_HEALTH.get(health_status, HealthState.UNKNOWN)

        usage = ResourceUsage()
        if self.settings.collect_stats and lifecycle == LifecycleState.RUNNING:
            try:
                usage = resource_usage_from_stats(container.stats(stream=False))
            except (docker.errors.APIError, requests.exceptions.RequestException) as e:
                logger.debug(f"Stats unavailable for {container.name}: {e}")

        return ContainerStatus(
            id=container.id,
            name=container.name,
            lifecycle_state=lifecycle,
            uptime_seconds=uptime,
            resource_usage=usage,
            health=health,
        )

    def _list_statuses(self) -> List[ContainerStatus]:
        return [self._to_status(container) for container in self._list_service_containers()]

    async def list_containers(self) -> List[ContainerStatus]:
        try:
            return await self.run_blocking(self._list_statuses)
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise PlatformUnavailable(f"Failed to list containers: {e}") from e

    def _inspect_health(self, container_id: str) -> HealthState:
        container = self.client.containers.get(container_id)
        state = container.attrs.get("State", {})
        if not state.get("Running", False):
            return HealthState.UNHEALTHY
        health = state.get("Health")
        if health is None:
            # No healthcheck configured: a running container counts as healthy
            return HealthState.HEALTHY
        return HEALTH_BY_DOCKER_HEALTH.get(health.get("Status"), HealthState.UNKNOWN)

    async def probe_health(self, container_id: str) -> HealthState:
        try:
            return await self.run_blocking(self._inspect_health, container_id)
        except docker.errors.NotFound as e:
            raise HealthProbeFailed(container_id, "container no longer exists") from e
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise HealthProbeFailed(container_id, str(e)) from e
