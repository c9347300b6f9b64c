"""
Home Pager Backend — Metrics Exposition
=========================================

What:  Prometheus text exposition for the two service-level series:
         home_pager_uptime_seconds        gauge,   whole seconds since start
         home_pager_http_requests_total   counter, requests seen by middleware
Why:   Scraped by the cluster's Prometheus; cheap enough to compute per scrape.
How:   A custom collector reads the ServiceContext at collection time and is
       registered on a private CollectorRegistry (one per app), so tests can
       build several apps without clashing on the global default registry.
"""

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from homepager.state import ServiceContext

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST


class ServiceCollector:
    """Yields the uptime gauge and request counter from a ServiceContext."""

    def __init__(self, context: ServiceContext):
        self.context = context

    def collect(self):
        yield GaugeMetricFamily(
            "home_pager_uptime_seconds",
            "Process uptime in seconds.",
            value=self.context.uptime_seconds(),
        )
        yield CounterMetricFamily(
            "home_pager_http_requests",
            "Total HTTP requests served.",
            value=self.context.requests.value,
        )


def build_registry(context: ServiceContext) -> CollectorRegistry:
    registry = CollectorRegistry()
    registry.register(ServiceCollector(context))
    return registry


def render_metrics(registry: CollectorRegistry) -> bytes:
    return generate_latest(registry)
