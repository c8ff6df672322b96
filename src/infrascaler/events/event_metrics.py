#!/usr/bin/env python3
"""
Prometheus metrics for event bus traffic and handler outcomes
"""

from prometheus_client import Counter, Gauge, Histogram

EVENTS_PUBLISHED = Counter(
    'infrascaler_events_published_total',
    'Events published on the orchestrator event bus',
    ['event_type']
)

HANDLER_OUTCOMES = Counter(
    'infrascaler_event_handler_outcomes_total',
    'Handler invocations by outcome (ok, rejected, failed, timeout)',
    ['event_type', 'outcome']
)

HANDLER_LATENCY = Histogram(
    'infrascaler_event_handler_seconds',
    'Handler run time per event type',
    ['event_type'],
    buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

SUBSCRIBERS = Gauge(
    'infrascaler_event_subscribers',
    'Handlers subscribed per event type',
    ['event_type']
)


class EventBusMetrics:
    """Thin recorder around the event bus metrics, with in-process totals"""

    def __init__(self):
        self.published = 0
        self.failures = 0

    def record_published(self, event_type: str):
        EVENTS_PUBLISHED.labels(event_type=event_type).inc()
        self.published += 1

    def record_outcome(self, event_type: str, outcome: str, seconds: float):
        HANDLER_OUTCOMES.labels(event_type=event_type, outcome=outcome).inc()
        HANDLER_LATENCY.labels(event_type=event_type).observe(seconds)
        if outcome != "ok":
            self.failures += 1

    def set_subscribers(self, event_type: str, count: int):
        SUBSCRIBERS.labels(event_type=event_type).set(count)


event_metrics = EventBusMetrics()
