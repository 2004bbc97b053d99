"""Activity definitions module."""

from activities.scrub import (
    parse_order_files,
    reconcile_orders,
    persist_scrub_report,
    ParseFilesInput,
    ParseFilesOutput,
    ReconcileOrdersInput,
    PersistReportInput,
)

__all__ = [
    "parse_order_files",
    "reconcile_orders",
    "persist_scrub_report",
    "ParseFilesInput",
    "ParseFilesOutput",
    "ReconcileOrdersInput",
    "PersistReportInput",
]
