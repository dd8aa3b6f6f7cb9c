"""Observability for the dominance protocol.

Provides structured logging and Prometheus metrics:
- JSON or console logging with the node identity attached
- Claim, takeover and purge counters
"""

from dominator.observability.logging import (
    LogContext,
    configure_logging,
    server_id_var,
    setup_logging,
)
from dominator.observability.metrics import get_metrics, metrics_registry

__all__ = [
    # Logging
    "configure_logging",
    "setup_logging",
    "LogContext",
    "server_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
]
