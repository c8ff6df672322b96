#!/usr/bin/env python3
"""
Configuration settings using Pydantic for environment variable loading
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class DeploymentMode(str, Enum):
    """Deployment profile of the managed stack"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    ENTERPRISE = "enterprise"


class OrchestratorKind(str, Enum):
    """External platform that runs the workload"""
    COMPOSE = "compose"
    KUBERNETES = "kubernetes"
    SWARM = "swarm"


class MetricsSourceKind(str, Enum):
    """Where performance samples come from"""
    PROMETHEUS = "prometheus"
    SYNTHETIC = "synthetic"


class ScalingSettings(BaseSettings):
    """Scaling bounds, targets and loop timing"""
    enabled: bool = True
    min_instances: int = Field(1, ge=0)
    max_instances: int = Field(10, ge=1)
    target_cpu_percent: float = Field(70.0, gt=0, le=100)
    target_memory_percent: float = Field(80.0, gt=0, le=100)
    # Scale-down re-arms below this fraction of the targets
    scale_down_factor: float = Field(0.5, gt=0, lt=1)

    evaluation_interval: float = Field(60.0, gt=0)
    scaling_timeout: float = Field(60.0, gt=0)
    poll_interval: float = Field(2.0, gt=0)

    class Config:
        env_prefix = "INFRA_SCALING_"
        extra = "ignore"
        frozen = True

    @model_validator(mode="after")
    def _check_bounds(self) -> "ScalingSettings":
        if self.min_instances > self.max_instances:
            raise ValueError(
                f"min_instances ({self.min_instances}) must not exceed "
                f"max_instances ({self.max_instances})"
            )
        return self


class MonitoringSettings(BaseSettings):
    """Metrics collection and health check settings"""
    enabled: bool = True
    metrics_collection: bool = True
    health_checks: bool = True
    alerting: bool = True

    metrics_interval: float = Field(5.0, gt=0)
    health_interval: float = Field(30.0, gt=0)
    history_size: int = Field(1000, ge=1)
    probe_timeout: float = Field(10.0, gt=0)
    max_concurrent_probes: int = Field(10, ge=1)
    performance_target_factor: float = Field(2.8, gt=0)

    class Config:
        env_prefix = "INFRA_MONITORING_"
        extra = "ignore"
        frozen = True


class DeploymentSettings(BaseSettings):
    """Deployment wait settings"""
    deployment_timeout: float = Field(120.0, gt=0)
    health_poll_interval: float = Field(5.0, gt=0)

    class Config:
        env_prefix = "INFRA_DEPLOYMENT_"
        extra = "ignore"
        frozen = True


class ComposeSettings(BaseSettings):
    """Docker Compose driver settings"""
    compose_file: str = "docker-compose.enterprise.yml"
    project_name: str = "infrascaler"
    service: str = "worker"
    compose_command: List[str] = Field(default_factory=lambda: ["docker", "compose"])
    command_timeout: float = Field(300.0, gt=0)
    collect_stats: bool = False
    max_workers: int = Field(4, ge=1)

    class Config:
        env_prefix = "INFRA_COMPOSE_"
        extra = "ignore"
        frozen = True


class KubernetesSettings(BaseSettings):
    """Kubernetes driver settings"""
    in_cluster: bool = False
    kubeconfig_path: Optional[str] = None
    namespace: str = "default"
    label_selector: str = "app=worker"

    class Config:
        env_prefix = "INFRA_KUBERNETES_"
        extra = "ignore"
        frozen = True


class PrometheusSettings(BaseSettings):
    """Prometheus metrics source settings"""
    url: str = "http://prometheus:9090"
    query_timeout: float = Field(5.0, gt=0)

    cpu_query: str = 'avg(100 - (irate(node_cpu_seconds_total{mode="idle"}[5m])) * 100)'
    memory_percent_query: str = (
        'avg((1 - (node_memory_MemAvailable_bytes / node_memory_MemTotal_bytes)) * 100)'
    )
    memory_bytes_query: str = 'sum(node_memory_MemTotal_bytes - node_memory_MemAvailable_bytes)'
    response_time_query: str = (
        'sum(rate(http_request_duration_seconds_sum[5m])) / '
        'sum(rate(http_request_duration_seconds_count[5m])) * 1000'
    )
    throughput_query: str = 'sum(rate(http_requests_total[5m]))'
    disk_io_query: str = (
        'sum(rate(node_disk_read_bytes_total[5m]) + rate(node_disk_written_bytes_total[5m])) / 1048576'
    )
    network_latency_query: str = ""

    class Config:
        env_prefix = "INFRA_PROMETHEUS_"
        extra = "ignore"
        frozen = True


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""
    level: str = "INFO"
    file: Optional[str] = None
    colors: bool = True

    class Config:
        env_prefix = "INFRA_LOG_"
        extra = "ignore"
        frozen = True


class ApiSettings(BaseSettings):
    """HTTP status API and Prometheus exporter settings"""
    host: str = "0.0.0.0"
    port: int = 8080
    metrics_port: int = 9091

    class Config:
        env_prefix = "INFRA_API_"
        extra = "ignore"
        frozen = True


class InfrastructureConfig(BaseSettings):
    """Main settings class that includes all sub-settings"""
    mode: DeploymentMode = DeploymentMode.ENTERPRISE
    orchestrator: OrchestratorKind = OrchestratorKind.COMPOSE
    metrics_source: MetricsSourceKind = MetricsSourceKind.PROMETHEUS

    scaling: ScalingSettings = Field(default_factory=ScalingSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    compose: ComposeSettings = Field(default_factory=ComposeSettings)
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    prometheus: PrometheusSettings = Field(default_factory=PrometheusSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    class Config:
        env_prefix = "INFRA_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"
        frozen = True

    @property
    def metrics_loop_enabled(self) -> bool:
        return self.monitoring.enabled and self.monitoring.metrics_collection

    @property
    def health_loop_enabled(self) -> bool:
        return self.monitoring.enabled and self.monitoring.health_checks

    @property
    def scaling_loop_enabled(self) -> bool:
        return self.scaling.enabled

    def summary(self) -> Dict[str, Any]:
        """Sanitized view of the configuration for status endpoints and logs"""
        return {
            "mode": self.mode.value,
            "orchestrator": self.orchestrator.value,
            "metrics_source": self.metrics_source.value,
            "scaling": self.scaling.model_dump(),
            "monitoring": self.monitoring.model_dump(),
            "deployment": self.deployment.model_dump(),
        }

    @classmethod
    def load_from_yaml_with_env_override(cls, yaml_path: str) -> "InfrastructureConfig":
        """
        Load settings from a YAML file.

        $VAR and ${VAR} references in the file are expanded from the environment and any
        field the file leaves out falls back to the INFRA_* variables.
        """
        import yaml

        load_dotenv()

        yaml_config: Dict[str, Any] = {}
        if os.path.exists(yaml_path):
            with open(yaml_path, "r") as f:
                # Unset variables are left as written
                yaml_content = os.path.expandvars(f.read())
                yaml_config = yaml.safe_load(yaml_content) or {}

        top_level = {
            key: yaml_config[key]
            for key in ("mode", "orchestrator", "metrics_source")
            if key in yaml_config
        }
        return cls(
            **top_level,
            scaling=ScalingSettings(**yaml_config.get("scaling", {})),
            monitoring=MonitoringSettings(**yaml_config.get("monitoring", {})),
            deployment=DeploymentSettings(**yaml_config.get("deployment", {})),
            compose=ComposeSettings(**yaml_config.get("compose", {})),
            kubernetes=KubernetesSettings(**yaml_config.get("kubernetes", {})),
            prometheus=PrometheusSettings(**yaml_config.get("prometheus", {})),
            logging=LoggingSettings(**yaml_config.get("logging", {})),
            api=ApiSettings(**yaml_config.get("api", {})),
        )
