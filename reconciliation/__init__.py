"""Reconciliation engine: normalize, match, compare, summarize."""

from reconciliation.engine import (
    ReconcileOptions,
    reconcile,
    scrub_orders,
    build_statistics,
    determine_match_type,
)
from reconciliation.errors import (
    OrderScrubError,
    FieldFormatError,
    NormalizationError,
    ContractViolation,
)

__all__ = [
    "ReconcileOptions",
    "reconcile",
    "scrub_orders",
    "build_statistics",
    "determine_match_type",
    "OrderScrubError",
    "FieldFormatError",
    "NormalizationError",
    "ContractViolation",
]
