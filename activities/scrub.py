"""Order scrub activities.

Temporal activities for the three steps of a background scrub:
1. parse_order_files - read both workbooks into raw rows
2. reconcile_orders - normalize, match and compare
3. persist_scrub_report - store the report and audit it

Payloads cross the Temporal boundary as plain dicts (JSON-mode model
dumps); each activity re-validates them into models.
"""

import time
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from temporalio import activity
from temporalio.exceptions import ApplicationError

from core.audit.events import AuditEventType, get_audit_logger
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import (
    record_activity_completed,
    record_activity_failed,
    record_activity_started,
    record_scrub_completed,
    record_scrub_failed,
    record_scrub_started,
)
from models.orders import RawOrderRow
from models.scrub import ScrubReport
from parsing.excel_parser import ParseError, parse_customer_file, parse_jobboss_file
from reconciliation.engine import ReconcileOptions, scrub_orders
from reconciliation.errors import NormalizationError
from storage.db import save_report

logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ParseFilesInput:
    """Input for parse_order_files activity.
    
    Attributes:
        jobboss_path: Path of the JobBoss workbook on the worker's filesystem
        customer_path: Path of the customer workbook
    """
    jobboss_path: str
    customer_path: str


@dataclass
class ParseFilesOutput:
    """Raw rows of both workbooks (RawOrderRow dumps)."""
    jobboss_rows: List[Dict[str, Any]]
    customer_rows: List[Dict[str, Any]]


@dataclass
class ReconcileOrdersInput:
    """Input for reconcile_orders activity."""
    jobboss_rows: List[Dict[str, Any]]
    customer_rows: List[Dict[str, Any]]
    jobboss_file_name: str
    customer_file_name: str
    requested_by: str = ""
    customer_name: Optional[str] = None
    match_on_revision: bool = False
    compare_dates: bool = False


@dataclass
class PersistReportInput:
    """Input for persist_scrub_report activity."""
    report: Dict[str, Any]
    workflow_id: Optional[str] = None


def _workflow_id() -> Optional[str]:
    return activity.info().workflow_id if activity.in_activity() else None


def _non_retryable(kind: str, error: Exception, details: Dict[str, Any]) -> ApplicationError:
    return ApplicationError(str(error), details, type=kind, non_retryable=True)


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def parse_order_files(input: ParseFilesInput) -> ParseFilesOutput:
    """Read both workbooks from disk and parse them.
    
    Raises:
        ApplicationError: Non-retryable, type "ParseError", when a workbook
            cannot be read as an order list
    """
    record_activity_started("parse_order_files")
    record_scrub_started()
    started = time.perf_counter()
    
    jobboss_path = Path(input.jobboss_path)
    customer_path = Path(input.customer_path)
    
    with with_correlation(
        workflow_id=_workflow_id(),
        activity_name="parse_order_files",
        jobboss_file=jobboss_path.name,
        customer_file=customer_path.name,
        stage="parse",
    ):
        try:
            jobboss_rows = parse_jobboss_file(jobboss_path.read_bytes(), jobboss_path.name)
            customer_rows = parse_customer_file(customer_path.read_bytes(), customer_path.name)
        except ParseError as e:
            record_activity_failed("parse_order_files")
            record_scrub_failed("parse")
            logger.warning("Workbook parse failed", extra_fields=e.to_dict())
            raise _non_retryable("ParseError", e, e.to_dict()) from e
        except OSError:
            # Unreadable files are retried
            record_activity_failed("parse_order_files")
            raise
    
    record_activity_completed("parse_order_files", (time.perf_counter() - started) * 1000)
    return ParseFilesOutput(
        jobboss_rows=[row.model_dump(mode="json") for row in jobboss_rows],
        customer_rows=[row.model_dump(mode="json") for row in customer_rows],
    )


@activity.defn
async def reconcile_orders(input: ReconcileOrdersInput) -> Dict[str, Any]:
    """Normalize and reconcile raw rows into a ScrubReport dump.
    
    Raises:
        ApplicationError: Non-retryable, type "NormalizationError", carrying
            every field error from both files
    """
    record_activity_started("reconcile_orders")
    started = time.perf_counter()
    
    with with_correlation(
        workflow_id=_workflow_id(),
        activity_name="reconcile_orders",
        requested_by=input.requested_by or None,
        stage="reconcile",
    ):
        jobboss_rows = [RawOrderRow.model_validate(r) for r in input.jobboss_rows]
        customer_rows = [RawOrderRow.model_validate(r) for r in input.customer_rows]
        
        try:
            report = scrub_orders(
                jobboss_rows,
                customer_rows,
                jobboss_file_name=input.jobboss_file_name,
                customer_file_name=input.customer_file_name,
                requested_by=input.requested_by,
                customer_name=input.customer_name,
                options=ReconcileOptions(
                    match_on_revision=input.match_on_revision,
                    compare_dates=input.compare_dates,
                ),
            )
        except NormalizationError as e:
            record_activity_failed("reconcile_orders")
            record_scrub_failed("normalization")
            logger.warning(
                "Order rows failed normalization",
                extra_fields={"error_count": len(e.errors)},
            )
            raise _non_retryable("NormalizationError", e, e.to_dict()) from e
        
        logger.info(
            "Reconciled orders",
            extra_fields={"report_id": str(report.report_id), **report.statistics.model_dump()},
        )
    
    record_activity_completed("reconcile_orders", (time.perf_counter() - started) * 1000)
    return report.model_dump(mode="json")


@activity.defn
async def persist_scrub_report(input: PersistReportInput) -> str:
    """Save a report and record its completion.
    
    Returns:
        The report ID
    """
    record_activity_started("persist_scrub_report")
    started = time.perf_counter()
    
    report = ScrubReport.model_validate(input.report)
    report_id = str(report.report_id)
    
    with with_correlation(
        workflow_id=input.workflow_id or _workflow_id(),
        activity_name="persist_scrub_report",
        report_id=report_id,
        stage="persist",
    ):
        save_report(report)
        
        get_audit_logger().log_info(
            AuditEventType.SCRUB_COMPLETED,
            "Order scrub completed",
            report_id=report_id,
            workflow_id=input.workflow_id,
            actor=report.requested_by or "system",
            details=report.statistics.model_dump(),
        )
        logger.info("Persisted scrub report", extra_fields={"matches": len(report.matches)})
    
    duration_ms = (time.perf_counter() - started) * 1000
    record_activity_completed("persist_scrub_report", duration_ms)
    record_scrub_completed(dict(Counter(m.match_type.value for m in report.matches)))
    return report_id
