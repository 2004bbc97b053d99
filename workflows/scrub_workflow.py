"""
Order Scrub Workflow

Background reconciliation of two workbooks already on the worker's disk:
PARSE → RECONCILE → PERSIST

Parse and normalization failures are non-retryable: the activity raises an
ApplicationError and the workflow fails with it. Storage failures are
retried by the persist activity's retry policy.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.scrub import (
        parse_order_files,
        reconcile_orders,
        persist_scrub_report,
        ParseFilesInput,
        ReconcileOrdersInput,
        PersistReportInput,
    )


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_RETRY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=3,
    non_retryable_error_types=["ParseError", "NormalizationError"],
)


# =============================================================================
# Workflow Input/Output
# =============================================================================

@dataclass
class OrderScrubInput:
    """Input for the order scrub workflow"""
    jobboss_path: str
    customer_path: str
    requested_by: str = ""
    customer_name: Optional[str] = None
    match_on_revision: bool = False
    compare_dates: bool = False


@dataclass
class OrderScrubOutput:
    """Output from the order scrub workflow"""
    report_id: str
    statistics: Dict[str, int] = field(default_factory=dict)


# =============================================================================
# Order Scrub Workflow
# =============================================================================

@workflow.defn
class OrderScrubWorkflow:
    """
    Parse two order workbooks, reconcile them and store the report.
    
    Query `get_status` to follow progress.
    """
    
    def __init__(self):
        self._stage = "PENDING"
        self._report_id: Optional[str] = None
    
    @workflow.run
    async def run(self, input: OrderScrubInput) -> OrderScrubOutput:
        workflow.logger.info(f"Order scrub started: {input.jobboss_path} vs {input.customer_path}")
        
        self._stage = "PARSE"
        parsed = await workflow.execute_activity(
            parse_order_files,
            ParseFilesInput(jobboss_path=input.jobboss_path, customer_path=input.customer_path),
            start_to_close_timeout=timedelta(minutes=2),
            retry_policy=DEFAULT_RETRY,
        )
        
        self._stage = "RECONCILE"
        report: Dict[str, Any] = await workflow.execute_activity(
            reconcile_orders,
            ReconcileOrdersInput(
                jobboss_rows=parsed.jobboss_rows,
                customer_rows=parsed.customer_rows,
                jobboss_file_name=_file_name(input.jobboss_path),
                customer_file_name=_file_name(input.customer_path),
                requested_by=input.requested_by,
                customer_name=input.customer_name,
                match_on_revision=input.match_on_revision,
                compare_dates=input.compare_dates,
            ),
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=DEFAULT_RETRY,
        )
        
        self._stage = "PERSIST"
        self._report_id = await workflow.execute_activity(
            persist_scrub_report,
            PersistReportInput(report=report, workflow_id=workflow.info().workflow_id),
            start_to_close_timeout=timedelta(minutes=2),
            retry_policy=RetryPolicy(maximum_attempts=5, initial_interval=timedelta(seconds=2)),
        )
        
        self._stage = "COMPLETED"
        workflow.logger.info(f"Order scrub completed: report {self._report_id}")
        return OrderScrubOutput(report_id=self._report_id, statistics=report.get("statistics", {}))
    
    @workflow.query
    def get_status(self) -> Dict[str, Optional[str]]:
        return {"stage": self._stage, "report_id": self._report_id}


def _file_name(path: str) -> str:
    # Workflow code must stay deterministic; no filesystem access here
    return path.replace("\\", "/").rsplit("/", 1)[-1]
