"""Prometheus metrics for dominance decisions.

Usage:
    from dominator.observability.metrics import record_claim

    record_claim("applied")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import REGISTRY, Counter, Gauge, generate_latest

from dominator.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    claims_total: Any = None
    takeovers_total: Any = None
    purged_records_total: Any = None
    is_dominant: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = REGISTRY

        self.claims_total = Counter(
            "dominator_claims_total",
            "Heartbeat claims by outcome",
            ["outcome"],
        )

        self.takeovers_total = Counter(
            "dominator_takeovers_total",
            "Claims made after the previous leader went silent",
        )

        self.purged_records_total = Counter(
            "dominator_purged_records_total",
            "Dominance records of other nodes removed by purges",
        )

        self.is_dominant = Gauge(
            "dominator_is_dominant",
            "1 if the last evaluation found this node dominant",
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if not settings.enable_metrics or self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


def record_claim(outcome: str) -> None:
    """Record a claim attempt.

    Args:
        outcome: Upsert outcome (applied, conflict)
    """
    metrics = get_metrics()
    if metrics.claims_total:
        metrics.claims_total.labels(outcome=outcome).inc()


def record_takeover() -> None:
    metrics = get_metrics()
    if metrics.takeovers_total:
        metrics.takeovers_total.inc()


def record_purge(removed: int) -> None:
    metrics = get_metrics()
    if metrics.purged_records_total and removed:
        metrics.purged_records_total.inc(removed)


def set_dominant(dominant: bool) -> None:
    metrics = get_metrics()
    if metrics.is_dominant:
        metrics.is_dominant.set(1 if dominant else 0)
