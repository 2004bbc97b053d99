"""
Temporal Activity Tests

Runs the scrub activities in temporalio's ActivityEnvironment against
workbooks written to a temporary directory.
"""

import asyncio
import io
import tempfile
from pathlib import Path

import openpyxl
import pytest
from temporalio.exceptions import ApplicationError
from temporalio.testing import ActivityEnvironment

from activities.scrub import (
    ParseFilesInput,
    PersistReportInput,
    ReconcileOrdersInput,
    parse_order_files,
    persist_scrub_report,
    reconcile_orders,
)
from core import config
from core.audit.events import set_audit_logger
from models.orders import OrderSource, RawOrderRow
from reconciliation.engine import scrub_orders
from storage import db
from workflows.scrub_workflow import _file_name


def write_workbook(path, rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    path.write_bytes(buffer.getvalue())
    return str(path)


@pytest.fixture
def workdir(monkeypatch):
    with tempfile.TemporaryDirectory() as tmp:
        monkeypatch.setattr(config, "DB_PATH", Path(tmp) / "order_scrub.db")
        db.init_db()
        set_audit_logger(None)
        yield Path(tmp)
        set_audit_logger(None)


def run(activity_fn, arg):
    async def _run():
        return await ActivityEnvironment().run(activity_fn, arg)
    return asyncio.run(_run())


class TestScrubActivities:
    """parse → reconcile → persist"""
    
    def test_pipeline(self, workdir):
        from datetime import datetime
        
        jobboss = write_workbook(workdir / "jobboss.xlsx", [
            ["Sales Order", "Customer PO", "Part Number", "Order Qty", "Open Qty", "Unit Price", "Promised Date"],
            ["SO-1", "PO-1", "X1", 10, 10, 5.0, datetime(2024, 3, 1)],
            ["SO-2", "PO-2", "Z1", 5, 5, 12.0, None],
        ])
        customer = write_workbook(workdir / "Acme Orders.xlsx", [
            ["PO", "Part", "Qty", "Open Qty", "Price", "Due Date"],
            ["PO-1", "X1", 10, 10, 5.0, datetime(2024, 3, 8)],
        ])
        
        parsed = run(parse_order_files, ParseFilesInput(jobboss_path=jobboss, customer_path=customer))
        assert len(parsed.jobboss_rows) == 2
        assert len(parsed.customer_rows) == 1
        
        report = run(reconcile_orders, ReconcileOrdersInput(
            jobboss_rows=parsed.jobboss_rows,
            customer_rows=parsed.customer_rows,
            jobboss_file_name="jobboss.xlsx",
            customer_file_name="Acme Orders.xlsx",
            requested_by="jdoe",
            compare_dates=True,
        ))
        assert report["customer_name"] == "Acme Orders"
        assert report["statistics"]["total"] == 2
        assert report["statistics"]["medium"] == 1
        assert report["statistics"]["missing_from_customer"] == 1
        
        report_id = run(persist_scrub_report, PersistReportInput(report=report, workflow_id="wf-1"))
        
        stored = db.get_report(report_id)
        assert stored is not None
        assert stored.requested_by == "jdoe"
        events = db.list_audit_events(report_id=report_id, event_type="SCRUB_COMPLETED")
        assert events[0].workflow_id == "wf-1"
    
    def test_persist_is_safe_to_retry(self, workdir):
        report = scrub_orders(
            [RawOrderRow(source=OrderSource.JOBBOSS, row_number=2, fields={"customer_po": "P1", "part_number": "X1"})],
            [],
            requested_by="jdoe",
        ).model_dump(mode="json")
        
        first = run(persist_scrub_report, PersistReportInput(report=report, workflow_id="wf-1"))
        second = run(persist_scrub_report, PersistReportInput(report=report, workflow_id="wf-1"))
        
        assert first == second
        assert db.get_report(first).statistics.missing_from_customer == 1
        assert db.list_reports()[1] == 1
    
    def test_parse_error_is_not_retryable(self, workdir):
        jobboss = write_workbook(workdir / "jobboss.xlsx", [["Nothing", "Useful"], [1, 2]])
        customer = write_workbook(workdir / "customer.xlsx", [["PO", "Part"], ["PO-1", "X1"]])
        
        with pytest.raises(ApplicationError) as exc_info:
            run(parse_order_files, ParseFilesInput(jobboss_path=jobboss, customer_path=customer))
        
        assert exc_info.value.type == "ParseError"
        assert exc_info.value.non_retryable
    
    def test_missing_file_is_retryable(self, workdir):
        customer = write_workbook(workdir / "customer.xlsx", [["PO", "Part"], ["PO-1", "X1"]])
        
        with pytest.raises(OSError):
            run(parse_order_files, ParseFilesInput(
                jobboss_path=str(workdir / "missing.xlsx"), customer_path=customer,
            ))
    
    def test_normalization_error_is_not_retryable(self, workdir):
        rows = [{"source": "JobBoss", "row_number": 2, "fields": {"customer_po": "P1", "part_number": "X", "order_qty": "lots"}}]
        
        with pytest.raises(ApplicationError) as exc_info:
            run(reconcile_orders, ReconcileOrdersInput(
                jobboss_rows=rows,
                customer_rows=[],
                jobboss_file_name="jobboss.xlsx",
                customer_file_name="customer.xlsx",
            ))
        
        assert exc_info.value.type == "NormalizationError"
        assert exc_info.value.non_retryable


class TestWorkflowHelpers:
    
    @pytest.mark.parametrize("path,expected", [
        ("/data/in/jobboss.xlsx", "jobboss.xlsx"),
        ("C:\\uploads\\Acme.xls", "Acme.xls"),
        ("orders.xlsx", "orders.xlsx"),
    ])
    def test_file_name(self, path, expected):
        assert _file_name(path) == expected
