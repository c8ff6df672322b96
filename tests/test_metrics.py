#!/usr/bin/env python3
"""
Tests for metrics sources and the bounded metrics history
"""

import asyncio
from unittest.mock import Mock, patch

import pytest
import requests

from conftest import make_sample
from infrascaler.config.settings import InfrastructureConfig, MetricsSourceKind, PrometheusSettings
from infrascaler.core.exceptions import MetricsUnavailable
from infrascaler.core.metrics import (
    MetricsHistory,
    PrometheusMetricsSource,
    SyntheticMetricsSource,
    create_metrics_source,
)
from infrascaler.models.metrics import BASELINE_RESPONSE_TIME_MS, compute_improvement_factor


class TestMetricsHistory:
    """Test the bounded sample buffer"""

    def test_latest_falls_back_to_baseline(self):
        """Test an empty history reports the baseline sample"""
        history = MetricsHistory(cap=10)

        latest = history.latest()
        assert latest.response_time_ms == BASELINE_RESPONSE_TIME_MS
        assert latest.cpu_utilization_percent == 50.0
        assert latest.improvement_factor == 1.0
        assert len(history) == 0

    def test_never_exceeds_cap_and_evicts_oldest(self):
        """Test the oldest samples are evicted beyond the cap"""
        history = MetricsHistory(cap=3)
        for cpu in (10.0, 20.0, 30.0, 40.0, 50.0):
            history.record(make_sample(cpu=cpu))

        assert len(history) == 3
        assert [s.cpu_utilization_percent for s in history.snapshot()] == [30.0, 40.0, 50.0]
        assert history.latest().cpu_utilization_percent == 50.0

    def test_snapshot_limit(self):
        """Test snapshot returns the newest samples oldest first"""
        history = MetricsHistory(cap=10)
        for cpu in (10.0, 20.0, 30.0):
            history.record(make_sample(cpu=cpu))

        assert [s.cpu_utilization_percent for s in history.snapshot(2)] == [20.0, 30.0]
        assert history.snapshot(0) == ()
        assert isinstance(history.snapshot(), tuple)

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            MetricsHistory(cap=0)


class TestImprovementFactor:
    """Test the improvement factor derivation"""

    def test_factor_is_baseline_over_response_time(self):
        assert compute_improvement_factor(1000.0, 250.0) == 4.0
        assert make_sample(response_time=500.0).improvement_factor == 2.0

    def test_non_positive_response_time(self):
        assert compute_improvement_factor(1000.0, 0.0) == 1.0


class TestPrometheusMetricsSource:
    """Test metrics collection from Prometheus"""

    @pytest.fixture
    def settings(self):
        return PrometheusSettings(url="http://prometheus:9090/")

    @pytest.fixture
    def source(self, settings):
        return PrometheusMetricsSource(settings)

    def _responses(self, settings, **overrides):
        values = {
            settings.cpu_query: "85",
            settings.memory_percent_query: "40",
            settings.memory_bytes_query: str(256 * 1024 * 1024),
            settings.response_time_query: "250",
            settings.throughput_query: "120",
            settings.disk_io_query: "3.5",
        }
        values.update(overrides)

        def query(q):
            value = values.get(q)
            return None if value is None else [{"value": [0, value]}]
        return query

    def test_collect_builds_sample(self, source, settings):
        """Test every query result lands in the sample"""
        with patch.object(source, '_query_prometheus', side_effect=self._responses(settings)):
            sample = asyncio.run(source.sample())

        assert sample.cpu_utilization_percent == 85.0
        assert sample.memory_utilization_percent == 40.0
        assert sample.memory_usage_mb == 256.0
        assert sample.response_time_ms == 250.0
        assert sample.throughput_ops_per_sec == 120.0
        assert sample.disk_io_mb_per_sec == 3.5
        assert sample.network_latency_ms == 0.0
        assert sample.improvement_factor == 4.0

    def test_missing_optional_metrics_default_to_zero(self, source, settings):
        """Test empty optional queries produce zeros"""
        responses = self._responses(settings, **{
            settings.response_time_query: None,
            settings.throughput_query: None,
        })
        with patch.object(source, '_query_prometheus', side_effect=responses):
            sample = source.collect()

        assert sample.response_time_ms == 0.0
        assert sample.throughput_ops_per_sec == 0.0
        assert sample.improvement_factor == 1.0

    def test_missing_cpu_raises_unavailable(self, source, settings):
        """Test an empty CPU query makes the sample unavailable"""
        responses = self._responses(settings, **{settings.cpu_query: None})
        with patch.object(source, '_query_prometheus', side_effect=responses):
            with pytest.raises(MetricsUnavailable):
                source.collect()

    def test_query_prometheus_success(self, source):
        """Test the HTTP query parses a successful response"""
        response = Mock()
        response.json.return_value = {"status": "success", "data": {"result": [{"value": [0, "1"]}]}}
        with patch.object(source.session, 'get', return_value=response) as mock_get:
            result = source._query_prometheus("up")

        assert result == [{"value": [0, "1"]}]
        mock_get.assert_called_once_with(
            "http://prometheus:9090/api/v1/query",
            params={'query': "up"},
            timeout=source.settings.query_timeout
        )

    def test_query_prometheus_connection_error(self, source):
        """Test connection errors are reported as no result"""
        with patch.object(source.session, 'get', side_effect=requests.exceptions.ConnectionError("refused")):
            assert source._query_prometheus("up") is None

    def test_query_prometheus_error_status(self, source):
        """Test an error status is reported as no result"""
        response = Mock()
        response.json.return_value = {"status": "error", "error": "bad query"}
        with patch.object(source.session, 'get', return_value=response):
            assert source._query_prometheus("up(") is None


class TestSyntheticMetricsSource:
    """Test the synthetic source"""

    def test_seeded_source_is_reproducible(self):
        first = asyncio.run(SyntheticMetricsSource(seed=7).sample())
        second = asyncio.run(SyntheticMetricsSource(seed=7).sample())

        assert first.cpu_utilization_percent == second.cpu_utilization_percent
        assert first.response_time_ms == second.response_time_ms

    def test_values_in_expected_ranges(self):
        source = SyntheticMetricsSource(seed=1)

        async def collect():
            return [await source.sample() for _ in range(20)]

        for sample in asyncio.run(collect()):
            assert 200 <= sample.response_time_ms <= 700
            assert 200 <= sample.throughput_ops_per_sec <= 500
            assert 50 <= sample.memory_usage_mb <= 150
            assert 20 <= sample.cpu_utilization_percent <= 60
            assert sample.improvement_factor > 1.0


def test_create_metrics_source_follows_config():
    assert isinstance(
        create_metrics_source(InfrastructureConfig(metrics_source=MetricsSourceKind.SYNTHETIC)),
        SyntheticMetricsSource
    )
    assert isinstance(
        create_metrics_source(InfrastructureConfig(metrics_source=MetricsSourceKind.PROMETHEUS)),
        PrometheusMetricsSource
    )
