"""Prometheus metrics for schema composition and remote dispatch."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

__all__ = ["GATEWAY_METRICS", "GatewayMetrics"]


class GatewayMetrics:
    """Container for the gateway's Prometheus metrics.

    - Rebuild metrics (outcomes, duration, installed generation)
    - Remote dispatch metrics (calls per action and outcome)
    - DataLoader metrics (batch sizes)
    - Subscription metrics (events filtered out)
    """

    def __init__(self) -> None:
        self.schema_rebuilds_total = Counter(
            "graphql_gateway_schema_rebuilds_total",
            "Schema rebuild attempts",
            labelnames=["outcome"],
        )
        self.schema_rebuild_duration_seconds = Histogram(
            "graphql_gateway_schema_rebuild_duration_seconds",
            "Schema rebuild duration in seconds",
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
        )
        self.schema_generation = Gauge(
            "graphql_gateway_schema_generation",
            "Generation number of the installed schema",
        )
        self.remote_dispatch_total = Counter(
            "graphql_gateway_remote_dispatch_total",
            "Remote action calls issued by resolvers",
            labelnames=["action", "kind", "outcome"],
        )
        self.dataloader_batch_size = Histogram(
            "graphql_gateway_dataloader_batch_size",
            "Keys per batched remote call",
            labelnames=["action"],
            buckets=(1, 2, 5, 10, 25, 50, 100, 250),
        )
        self.subscription_events_filtered_total = Counter(
            "graphql_gateway_subscription_events_filtered_total",
            "Subscription events excluded by a filter action",
            labelnames=["action"],
        )


GATEWAY_METRICS = GatewayMetrics()
