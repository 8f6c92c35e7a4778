"""
Observability Module for the Accruals Service

Provides:
- Structured logging with correlation IDs
- Recent activity feed for administrators
- In-memory metrics (onboarding, webhook events, variances, timings)
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

from core.observability.activity import (
    ActivityFeed,
    ActivityKind,
)

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
    # Activity
    "ActivityFeed",
    "ActivityKind",
    # Metrics
    "MetricsCollector",
    "get_metrics",
]
