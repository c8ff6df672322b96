"""
infrascaler - autoscaling infrastructure orchestrator

Observes a fleet of service instances, decides when to grow or shrink it and
drives an external container platform to realize the decision.
"""

__version__ = "1.0.0"
