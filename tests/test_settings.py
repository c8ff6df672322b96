#!/usr/bin/env python3
"""
Tests for configuration loading
"""

import pytest
from pydantic import ValidationError

from infrascaler.config.settings import (
    InfrastructureConfig,
    MetricsSourceKind,
    OrchestratorKind,
    ScalingSettings,
)


class TestSettings:
    """Test defaults, validation and environment overrides"""

    def test_defaults(self):
        config = InfrastructureConfig()

        assert config.orchestrator == OrchestratorKind.COMPOSE
        assert config.scaling.min_instances == 1
        assert config.scaling.max_instances == 10
        assert config.scaling.target_cpu_percent == 70.0
        assert config.scaling.scale_down_factor == 0.5
        assert config.monitoring.history_size == 1000
        assert config.monitoring.performance_target_factor == 2.8

    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError):
            ScalingSettings(min_instances=5, max_instances=2)

    def test_env_override(self, monkeypatch):
        """Test INFRA_* variables override defaults"""
        monkeypatch.setenv("INFRA_SCALING_MAX_INSTANCES", "7")
        monkeypatch.setenv("INFRA_ORCHESTRATOR", "kubernetes")

        config = InfrastructureConfig()
        assert config.scaling.max_instances == 7
        assert config.orchestrator == OrchestratorKind.KUBERNETES

    def test_settings_are_frozen(self):
        config = InfrastructureConfig()
        with pytest.raises(ValidationError):
            config.scaling.max_instances = 3

    def test_loop_switches(self):
        config = InfrastructureConfig(
            monitoring={"enabled": True, "health_checks": False},
            scaling={"enabled": False},
        )
        assert config.metrics_loop_enabled is True
        assert config.health_loop_enabled is False
        assert config.scaling_loop_enabled is False

    def test_summary(self):
        summary = InfrastructureConfig().summary()
        assert summary["orchestrator"] == "compose"
        assert summary["scaling"]["max_instances"] == 10
        assert "prometheus" not in summary


class TestYamlLoading:
    """Test YAML config files with environment substitution"""

    def test_yaml_values_and_substitution(self, tmp_path, monkeypatch):
        """Test ${VAR} references are expanded before parsing"""
        monkeypatch.setenv("WORKER_MAX", "6")
        config_file = tmp_path / "infrascaler.yaml"
        config_file.write_text(
            "orchestrator: compose\n"
            "metrics_source: synthetic\n"
            "scaling:\n"
            "  min_instances: 2\n"
            "  max_instances: ${WORKER_MAX}\n"
            "compose:\n"
            "  project_name: demo\n"
        )

        config = InfrastructureConfig.load_from_yaml_with_env_override(str(config_file))

        assert config.metrics_source == MetricsSourceKind.SYNTHETIC
        assert config.scaling.min_instances == 2
        assert config.scaling.max_instances == 6
        assert config.compose.project_name == "demo"

    def test_substitution_matches_whole_names(self, tmp_path, monkeypatch):
        """Test a variable is not expanded inside a longer name it prefixes"""
        monkeypatch.setenv("INFRA_TEST_NAME", "short")
        monkeypatch.setenv("INFRA_TEST_NAME_FULL", "demo")
        monkeypatch.delenv("INFRA_TEST_UNSET", raising=False)
        config_file = tmp_path / "infrascaler.yaml"
        config_file.write_text(
            "compose:\n"
            "  project_name: $INFRA_TEST_NAME_FULL\n"
            "  compose_file: $INFRA_TEST_UNSET/compose.yml\n"
        )

        config = InfrastructureConfig.load_from_yaml_with_env_override(str(config_file))

        assert config.compose.project_name == "demo"
        assert config.compose.compose_file == "$INFRA_TEST_UNSET/compose.yml"

    def test_env_fills_missing_fields(self, tmp_path, monkeypatch):
        """Test fields absent from the file come from INFRA_* variables"""
        monkeypatch.setenv("INFRA_SCALING_TARGET_CPU_PERCENT", "55")
        config_file = tmp_path / "infrascaler.yaml"
        config_file.write_text("scaling:\n  max_instances: 4\n")

        config = InfrastructureConfig.load_from_yaml_with_env_override(str(config_file))

        assert config.scaling.max_instances == 4
        assert config.scaling.target_cpu_percent == 55.0

    def test_missing_file_uses_defaults(self, tmp_path):
        config = InfrastructureConfig.load_from_yaml_with_env_override(str(tmp_path / "absent.yaml"))
        assert config.scaling.max_instances == 10

    def test_invalid_yaml_values_rejected(self, tmp_path):
        config_file = tmp_path / "infrascaler.yaml"
        config_file.write_text("scaling:\n  min_instances: 8\n  max_instances: 3\n")

        with pytest.raises(ValidationError):
            InfrastructureConfig.load_from_yaml_with_env_override(str(config_file))
