"""
Report Store Tests

SQLite persistence of scrub reports and audit events, against a temporary
database per test.
"""

import tempfile
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import pytest

from core import config
from core.audit.events import AuditEventType, create_audit_event
from models.api_responses import ReportSummary
from models.orders import OrderSource, RawOrderRow
from reconciliation.engine import scrub_orders
from storage import db


@pytest.fixture
def temp_db(monkeypatch):
    """Point the store at a fresh temporary database."""
    with tempfile.TemporaryDirectory() as tmp:
        monkeypatch.setattr(config, "DB_PATH", Path(tmp) / "order_scrub.db")
        db.init_db()
        yield config.DB_PATH


def raw(source, row, **fields):
    values = {"customer_po": "P1", "part_number": "X1", "order_qty": 10, "open_qty": 10, "unit_price": "5.00"}
    values.update(fields)
    return RawOrderRow(source=source, row_number=row, fields=values)


def make_report(customer_name="Acme", created_date=None):
    report = scrub_orders(
        [
            raw(OrderSource.JOBBOSS, 2, sales_order="SO-1", revision="A", promised_date="2024-03-01"),
            raw(OrderSource.JOBBOSS, 3, customer_po="P2", order_qty=4),
            raw(OrderSource.JOBBOSS, 4, customer_po="P3", description="Plate"),
        ],
        [
            raw(OrderSource.CUSTOMER, 2, revision="B", unit_price="5.50"),
            raw(OrderSource.CUSTOMER, 3, customer_po="P2", order_qty=4),
            raw(OrderSource.CUSTOMER, 4, customer_po="P9"),
        ],
        jobboss_file_name="jobboss.xlsx",
        customer_file_name="customer.xlsx",
        requested_by="jdoe",
        customer_name=customer_name,
    )
    if created_date is not None:
        report = report.model_copy(update={"report_id": uuid4(), "created_date": created_date})
    return report


class TestReports:
    """Save, load, list and delete."""
    
    def test_round_trip(self, temp_db):
        report = make_report()
        db.save_report(report)
        
        loaded = db.get_report(str(report.report_id))
        
        assert loaded is not None
        assert loaded.model_dump() == report.model_dump()
        assert [m.match_type for m in loaded.matches] == [m.match_type for m in report.matches]
    
    def test_unknown_report(self, temp_db):
        assert db.get_report(str(uuid4())) is None
    
    def test_saving_twice_replaces_the_stored_report(self, temp_db):
        report = make_report()
        db.save_report(report)
        db.save_report(report)
        
        loaded = db.get_report(str(report.report_id))
        assert loaded.model_dump() == report.model_dump()
        assert db.list_reports()[1] == 1
        
        conn = db.get_db_connection()
        count = conn.execute(
            "SELECT COUNT(*) FROM discrepancies WHERE report_id = ?", (str(report.report_id),)
        ).fetchone()[0]
        conn.close()
        assert count == sum(len(m.discrepancies) for m in report.matches)
    
    def test_discrepancy_rows_written(self, temp_db):
        report = make_report()
        db.save_report(report)
        
        conn = db.get_db_connection()
        count = conn.execute(
            "SELECT COUNT(*) FROM discrepancies WHERE report_id = ?", (str(report.report_id),)
        ).fetchone()[0]
        conn.close()
        
        assert count == sum(len(m.discrepancies) for m in report.matches)
        assert count > 0
    
    def test_list_newest_first_with_paging(self, temp_db):
        for day in (1, 3, 2):
            db.save_report(make_report(f"Customer {day}", datetime(2024, 3, day)))
        
        page_one, total = db.list_reports(page=1, page_size=2)
        page_two, _ = db.list_reports(page=2, page_size=2)
        
        assert total == 3
        assert [s.customer_name for s in page_one] == ["Customer 3", "Customer 2"]
        assert [s.customer_name for s in page_two] == ["Customer 1"]
        assert page_one[0].total_orders == 4
        assert page_one[0].created_by == "jdoe"
    
    def test_customer_filter_is_case_insensitive_substring(self, temp_db):
        db.save_report(make_report("ACME Corp", datetime(2024, 3, 1)))
        db.save_report(make_report("Globex", datetime(2024, 3, 2)))
        db.save_report(make_report("100%_Parts", datetime(2024, 3, 3)))
        
        summaries, total = db.list_reports(customer_name="acme")
        assert total == 1
        assert summaries[0].customer_name == "ACME Corp"
        
        summaries, total = db.list_reports(customer_name="%_")
        assert [s.customer_name for s in summaries] == ["100%_Parts"]
    
    def test_customer_filter_folds_non_ascii_case(self, temp_db):
        db.save_report(make_report("ÉCOLE Supply", datetime(2024, 3, 1)))
        db.save_report(make_report("Straße Tools", datetime(2024, 3, 2)))
        
        assert [s.customer_name for s in db.list_reports(customer_name="école")[0]] == ["ÉCOLE Supply"]
        assert [s.customer_name for s in db.list_reports(customer_name="STRASSE")[0]] == ["Straße Tools"]
    
    def test_summary_matches_report(self, temp_db):
        report = make_report()
        db.save_report(report)
        
        summaries, _ = db.list_reports()
        assert summaries == [ReportSummary.from_report(report)]
    
    def test_delete_cascades(self, temp_db):
        report = make_report()
        db.save_report(report)
        
        assert db.delete_report(str(report.report_id)) is True
        assert db.get_report(str(report.report_id)) is None
        assert db.delete_report(str(report.report_id)) is False
        
        conn = db.get_db_connection()
        leftovers = conn.execute(
            "SELECT (SELECT COUNT(*) FROM scrub_matches) + (SELECT COUNT(*) FROM discrepancies)"
        ).fetchone()[0]
        conn.close()
        assert leftovers == 0


class TestAuditLog:
    """audit_log table."""
    
    def test_save_and_list(self, temp_db):
        report_id = str(uuid4())
        db.save_audit_event(create_audit_event(
            AuditEventType.REPORT_VIEWED, "Report viewed", report_id=report_id, actor="jdoe",
        ))
        db.save_audit_event(create_audit_event(
            AuditEventType.REPORT_DELETED, "Report deleted", report_id=report_id,
            actor="admin", details={"total_orders": 4},
        ))
        db.save_audit_event(create_audit_event(AuditEventType.SCRUB_STARTED, "Other report"))
        
        events = db.list_audit_events(report_id=report_id)
        assert {e.event_type for e in events} == {"REPORT_VIEWED", "REPORT_DELETED"}
        
        deleted = db.list_audit_events(report_id=report_id, event_type="REPORT_DELETED")
        assert len(deleted) == 1
        assert deleted[0].details == {"total_orders": 4}
        assert deleted[0].actor == "admin"
