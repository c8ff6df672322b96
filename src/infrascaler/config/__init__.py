"""
Configuration module for orchestrator settings
"""

from .settings import (
    ApiSettings,
    ComposeSettings,
    DeploymentMode,
    DeploymentSettings,
    InfrastructureConfig,
    KubernetesSettings,
    LoggingSettings,
    MetricsSourceKind,
    MonitoringSettings,
    OrchestratorKind,
    PrometheusSettings,
    ScalingSettings,
)

__all__ = [
    "InfrastructureConfig",
    "DeploymentMode",
    "OrchestratorKind",
    "MetricsSourceKind",
    "ScalingSettings",
    "MonitoringSettings",
    "DeploymentSettings",
    "ComposeSettings",
    "KubernetesSettings",
    "PrometheusSettings",
    "LoggingSettings",
    "ApiSettings",
]
