#!/usr/bin/env python3
"""
Metrics sources for gathering fleet performance samples, and the bounded
in-memory history they feed
"""

import asyncio
import random
from collections import deque
from concurrent.futures import Executor
from typing import Deque, Optional, Tuple

import requests

from infrascaler.config.settings import InfrastructureConfig, MetricsSourceKind, PrometheusSettings
from infrascaler.core.exceptions import MetricsUnavailable
from infrascaler.core.logging_config import get_logger
from infrascaler.models.metrics import BASELINE_RESPONSE_TIME_MS, PerformanceSample, baseline_sample

logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024


class MetricsSource:
    """Produces one PerformanceSample per call"""

    async def sample(self) -> PerformanceSample:
        """
        Collect a sample

        Raises:
            MetricsUnavailable: the source could not produce a sample this time
        """
        raise NotImplementedError("Subclasses must implement sample() method")

    def close(self):
        """Release any resources held by the source"""


class PrometheusMetricsSource(MetricsSource):
    """Collects fleet metrics from the Prometheus HTTP API"""

    def __init__(
        self,
        settings: PrometheusSettings,
        executor: Optional[Executor] = None,
        baseline_response_time_ms: float = BASELINE_RESPONSE_TIME_MS,
    ):
        """
        Initialize the Prometheus source

        Args:
            settings: Prometheus URL, timeout and PromQL queries
            executor: Thread pool for the blocking HTTP calls (loop default when None)
            baseline_response_time_ms: Reference response time for improvement factors
        """
        self.settings = settings
        self.prometheus_url = settings.url.rstrip("/")
        self.executor = executor
        self.baseline_response_time_ms = baseline_response_time_ms
        self.session = requests.Session()

    async def sample(self) -> PerformanceSample:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.collect)

    def collect(self) -> PerformanceSample:
        """Run every configured query and build a sample (blocking)"""
        cpu = self._query_scalar(self.settings.cpu_query)
        memory_percent = self._query_scalar(self.settings.memory_percent_query)
        if cpu is None or memory_percent is None:
            raise MetricsUnavailable("Prometheus returned no CPU or memory utilization")

        memory_bytes = self._query_scalar(self.settings.memory_bytes_query) or 0.0
        response_time = self._query_scalar(self.settings.response_time_query) or 0.0
        throughput = self._query_scalar(self.settings.throughput_query) or 0.0
        disk_io = self._query_scalar(self.settings.disk_io_query) or 0.0
        latency = self._query_scalar(self.settings.network_latency_query) or 0.0

        sample = PerformanceSample.measured(
            baseline_response_time_ms=self.baseline_response_time_ms,
            response_time_ms=max(response_time, 0.0),
            throughput_ops_per_sec=max(throughput, 0.0),
            memory_usage_mb=max(memory_bytes, 0.0) / BYTES_PER_MB,
            memory_utilization_percent=min(max(memory_percent, 0.0), 100.0),
            cpu_utilization_percent=max(cpu, 0.0),
            disk_io_mb_per_sec=max(disk_io, 0.0),
            network_latency_ms=max(latency, 0.0),
        )
        logger.debug(
            f"Prometheus metrics: cpu={sample.cpu_utilization_percent:.1f}%, "
            f"memory={sample.memory_utilization_percent:.1f}%, "
            f"response={sample.response_time_ms:.1f}ms"
        )
        return sample

    def _query_scalar(self, query: str) -> Optional[float]:
        """First value of an instant query, or None when empty or failed"""
        if not query:
            return None
        result = self._query_prometheus(query)
        if not result:
            return None
        try:
            return float(result[0]["value"][1])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Prometheus result for {query!r}: {e}")
            return None

    def _query_prometheus(self, query: str) -> Optional[list]:
        """Query Prometheus API"""
        try:
            response = self.session.get(
                f"{self.prometheus_url}/api/v1/query",
                params={'query': query},
                timeout=self.settings.query_timeout
            )
            response.raise_for_status()
            data = response.json()

            if data['status'] == 'success':
                return data['data']['result']
            else:
                logger.error(f"Prometheus query failed: {data.get('error', 'Unknown error')}")
                return None

        except requests.exceptions.RequestException as e:
            logger.error(f"Error querying Prometheus: {e}")
            return None
        except (ValueError, KeyError) as e:
            logger.error(f"Error processing Prometheus response: {e}")
            return None

    def close(self):
        self.session.close()


class SyntheticMetricsSource(MetricsSource):
    """Random samples for demos and tests"""

    def __init__(self, seed: Optional[int] = None, baseline_response_time_ms: float = BASELINE_RESPONSE_TIME_MS):
        self._random = random.Random(seed)
        self.baseline_response_time_ms = baseline_response_time_ms

    async def sample(self) -> PerformanceSample:
        rnd = self._random
        memory_mb = rnd.uniform(50, 150)
        return PerformanceSample.measured(
            baseline_response_time_ms=self.baseline_response_time_ms,
            response_time_ms=rnd.uniform(200, 700),
            throughput_ops_per_sec=rnd.uniform(200, 500),
            memory_usage_mb=memory_mb,
            memory_utilization_percent=rnd.uniform(20, 60),
            cpu_utilization_percent=rnd.uniform(20, 60),
            disk_io_mb_per_sec=rnd.uniform(10, 60),
            network_latency_ms=rnd.uniform(5, 25),
        )


class MetricsHistory:
    """Bounded, time-ordered buffer of performance samples"""

    def __init__(self, cap: int = 1000, baseline: Optional[PerformanceSample] = None):
        if cap < 1:
            raise ValueError("history cap must be at least 1")
        self.cap = cap
        self.baseline = baseline or baseline_sample()
        self._samples: Deque[PerformanceSample] = deque(maxlen=cap)

    def record(self, sample: PerformanceSample):
        """Append a sample, evicting the oldest beyond the cap"""
        self._samples.append(sample)

    def latest(self) -> PerformanceSample:
        """Newest sample, or the baseline when nothing was recorded"""
        if self._samples:
            return self._samples[-1]
        return self.baseline

    def snapshot(self, limit: Optional[int] = None) -> Tuple[PerformanceSample, ...]:
        """Oldest-first copy of the last ``limit`` samples (all when None)"""
        samples = tuple(self._samples)
        if limit is None:
            return samples
        if limit <= 0:
            return ()
        return samples[-limit:]

    def __len__(self) -> int:
        return len(self._samples)


def create_metrics_source(config: InfrastructureConfig) -> MetricsSource:
    """Build the metrics source selected in the configuration"""
    if config.metrics_source == MetricsSourceKind.SYNTHETIC:
        logger.info("Using synthetic metrics source")
        return SyntheticMetricsSource()
    logger.info(f"Using Prometheus metrics source at {config.prometheus.url}")
    return PrometheusMetricsSource(config.prometheus)
