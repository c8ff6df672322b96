"""
Deployment drivers for the supported container platforms
"""

import logging

from infrascaler.config.settings import InfrastructureConfig, OrchestratorKind

from .base import DeploymentDriver, DockerBackedDriver
from .compose import ComposeDriver
from .kubernetes import KubernetesDriver
from .swarm import SwarmDriver

logger = logging.getLogger(__name__)


def create_driver(config: InfrastructureConfig) -> DeploymentDriver:
    """Build the driver for the configured orchestrator kind"""
    logger.info(f"Using {config.orchestrator.value} deployment driver")
    if config.orchestrator == OrchestratorKind.COMPOSE:
        return ComposeDriver(config.compose)
    if config.orchestrator == OrchestratorKind.KUBERNETES:
        return KubernetesDriver(config.kubernetes)
    if config.orchestrator == OrchestratorKind.SWARM:
        return SwarmDriver()
    raise ValueError(f"Unsupported orchestrator: {config.orchestrator}")


__all__ = [
    "DeploymentDriver",
    "DockerBackedDriver",
    "ComposeDriver",
    "KubernetesDriver",
    "SwarmDriver",
    "create_driver",
]
