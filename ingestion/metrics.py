"""
Ingestion metrics exported to a Prometheus Pushgateway.

Each IngestionMetrics owns its own CollectorRegistry, so runs (and tests) do
not share counters through process-global state.
"""

import asyncio
import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, push_to_gateway

from core.exceptions import MetricsPushError

logger = logging.getLogger(__name__)


class IngestionMetrics:
    """Per-run counters and duration for the ingest job"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.candidates = Gauge(
            "ingest_candidates_count",
            "Number of packages selected for ingestion",
            registry=self.registry
        )
        self.success = Gauge(
            "ingest_metadata_success_count",
            "Number of packages ingested successfully",
            registry=self.registry
        )
        self.failure = Gauge(
            "ingest_metadata_failure_count",
            "Number of packages whose ingestion failed",
            registry=self.registry
        )
        self.duration = Gauge(
            "ingest_duration_seconds",
            "Duration of the last ingestion run",
            registry=self.registry
        )

    def reset(self) -> None:
        self.candidates.set(0)
        self.success.set(0)
        self.failure.set(0)

    def value(self, name: str) -> float:
        """Current value of a gauge by metric name (0.0 if never set)"""
        return self.registry.get_sample_value(name) or 0.0

    async def push(self, gateway: str, job: str = "ingest") -> None:
        """
        Push all metrics to the gateway.

        Raises:
            MetricsPushError: If the push fails
        """
        try:
            await asyncio.to_thread(push_to_gateway, gateway, job=job, registry=self.registry)
        except Exception as e:
            raise MetricsPushError(
                "Failed to push metrics",
                context={"gateway": gateway, "job": job},
                original_exception=e
            )
        logger.debug(f"Pushed {job} metrics to {gateway}")
