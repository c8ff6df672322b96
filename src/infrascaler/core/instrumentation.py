#!/usr/bin/env python3
"""
Prometheus metrics exported by the orchestrator
"""

from prometheus_client import Counter, Enum, Gauge, Histogram

SCALING_DECISIONS = Counter('infrascaler_scaling_decisions_total', 'Total scaling decisions', ['decision'])
SCALE_UP_EVENTS = Counter('infrascaler_scale_up_events_total', 'Total completed scale-up operations')
SCALE_DOWN_EVENTS = Counter('infrascaler_scale_down_events_total', 'Total completed scale-down operations')
ERRORS = Counter('infrascaler_errors_total', 'Total errors', ['type'])
METRICS_SAMPLES = Counter('infrascaler_metrics_samples_total', 'Performance samples collected', ['status'])
HEALTH_PROBE_FAILURES = Counter('infrascaler_health_probe_failures_total', 'Failed or timed out health probes')

CURRENT_INSTANCES = Gauge('infrascaler_current_instances', 'Running instances of the managed service')
UNHEALTHY_INSTANCES = Gauge('infrascaler_unhealthy_instances', 'Instances currently classified unhealthy')
LATEST_CPU = Gauge('infrascaler_latest_cpu_percent', 'CPU utilization of the latest sample')
LATEST_MEMORY = Gauge('infrascaler_latest_memory_percent', 'Memory utilization of the latest sample')
IMPROVEMENT_FACTOR = Gauge('infrascaler_improvement_factor', 'Baseline response time over latest response time')

SCALING_DURATION = Histogram(
    'infrascaler_scaling_duration_seconds',
    'Time from scale request to convergence',
    buckets=[1, 2, 5, 10, 20, 30, 60, 120, 300]
)

ORCHESTRATOR_STATE = Enum(
    'infrascaler_orchestrator_state',
    'Lifecycle state of the orchestrator',
    states=[
        'uninitialized', 'initializing', 'ready', 'deploying', 'running',
        'scaling_in_flight', 'shutting_down', 'shutdown', 'failed',
    ]
)
