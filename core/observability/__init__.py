"""
Observability Module for Order Scrub

Provides:
- Structured logging with correlation IDs
- Metrics collection (scrub runs, match outcomes, processing times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_scrub_started,
    record_scrub_completed,
    record_scrub_failed,
    record_activity_started,
    record_activity_completed,
    record_activity_failed,
    record_processing_time,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_scrub_started",
    "record_scrub_completed",
    "record_scrub_failed",
    "record_activity_started",
    "record_activity_completed",
    "record_activity_failed",
    "record_processing_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
