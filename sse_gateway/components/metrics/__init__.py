"""
Observability: routing counters.
"""

from sse_gateway.components.metrics.collector import MetricsCollector, RoutingMetrics

__all__ = ["MetricsCollector", "RoutingMetrics"]
