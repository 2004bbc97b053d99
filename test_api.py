"""
REST API Tests

Drives the FastAPI app through TestClient against a temporary database.
"""

import io
import tempfile
from pathlib import Path
from uuid import uuid4

import openpyxl
import pytest
from fastapi.testclient import TestClient

from api.server import app
from core import config
from core.audit.events import set_audit_logger
from core.observability.metrics import get_metrics
from core.security.tokens import create_access_token, decode_access_token
from storage import db


XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def workbook_bytes(rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


JOBBOSS = workbook_bytes([
    ["Sales Order", "Customer PO", "Part Number", "Rev", "Order Qty", "Open Qty", "Unit Price"],
    ["SO-1", "PO-1", "X1", "A", 10, 10, 5.0],
    ["SO-1", "PO-1", "Y1", "A", 10, 10, 2.5],
    ["SO-2", "PO-2", "Z1", "", 5, 5, 12.0],
])
CUSTOMER = workbook_bytes([
    ["PO Number", "Part Number", "Revision", "Quantity", "Open Qty", "Price"],
    ["PO-1", "X1", "A", 10, 10, 5.0],
    ["PO-1", "Y1", "B", 4, 4, 2.5],
    ["PO-9", "Q1", "", 1, 1, 1.0],
])


def auth(role="Admin", username="tester"):
    return {"Authorization": f"Bearer {create_access_token('u1', username, role)}"}


def upload(client, jobboss=JOBBOSS, customer=CUSTOMER, customer_name="Acme", headers=None,
           jobboss_name="jobboss.xlsx", customer_name_file="customer.xlsx"):
    files = {}
    if jobboss is not None:
        files["jobBossFile"] = (jobboss_name, jobboss, XLSX)
    if customer is not None:
        files["customerFile"] = (customer_name_file, customer, XLSX)
    return client.post(
        "/api/orderscrub/upload",
        files=files,
        data={"customerName": customer_name},
        headers=headers if headers is not None else auth(),
    )


@pytest.fixture
def temp_db(monkeypatch):
    with tempfile.TemporaryDirectory() as tmp:
        monkeypatch.setattr(config, "DB_PATH", Path(tmp) / "order_scrub.db")
        set_audit_logger(None)
        yield
        set_audit_logger(None)


@pytest.fixture
def client(temp_db):
    with TestClient(app) as c:
        yield c


class TestAuthentication:
    """Bearer token handling and the development token endpoint."""
    
    def test_missing_token_is_rejected(self, client):
        response = client.get("/api/orderscrub/reports")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
    
    def test_invalid_token_is_rejected(self, client):
        response = client.get("/api/orderscrub/reports", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
    
    def test_token_endpoint_in_development(self, client, monkeypatch):
        monkeypatch.setattr(config, "ORDER_SCRUB_ENV", "development")
        response = client.post("/api/auth/token", json={"username": "jdoe", "role": "User"})
        
        assert response.status_code == 200
        claims = decode_access_token(response.json()["token"])
        assert claims.username == "jdoe"
        assert claims.role == "User"
        assert not claims.is_admin
    
    def test_token_endpoint_defaults(self, client, monkeypatch):
        monkeypatch.setattr(config, "ORDER_SCRUB_ENV", "development")
        response = client.post("/api/auth/token", json={})
        
        claims = decode_access_token(response.json()["token"])
        assert claims.username == "testuser"
        assert claims.is_admin
    
    def test_token_endpoint_hidden_outside_development(self, client, monkeypatch):
        monkeypatch.setattr(config, "ORDER_SCRUB_ENV", "production")
        response = client.post("/api/auth/token", json={})
        assert response.status_code == 404


class TestUpload:
    """POST /api/orderscrub/upload"""
    
    def test_upload_reconciles_and_stores(self, client):
        response = upload(client)
        
        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {
            "total": 4,
            "perfect": 1,
            "critical": 1,
            "high": 0,
            "medium": 0,
            "missing_from_customer": 1,
            "missing_from_jobboss": 1,
        }
        report = db.get_report(body["report_id"])
        assert report is not None
        assert report.customer_name == "Acme"
        assert report.requested_by == "tester"
        assert report.jobboss_file_name == "jobboss.xlsx"
    
    def test_upload_records_metrics_and_audit(self, client):
        before = get_metrics().get_summary()["scrubs"]["completed"]
        body = upload(client).json()
        
        assert get_metrics().get_summary()["scrubs"]["completed"] == before + 1
        events = db.list_audit_events(report_id=body["report_id"], event_type="SCRUB_COMPLETED")
        assert len(events) == 1
        assert events[0].actor == "tester"
    
    def test_missing_file(self, client):
        response = upload(client, jobboss=None)
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "JobBoss file is required"
    
    def test_wrong_extension(self, client):
        response = upload(client, customer_name_file="orders.csv")
        assert response.status_code == 400
        assert "Excel" in response.json()["detail"]["error"]
    
    def test_empty_file(self, client):
        response = upload(client, customer=b"")
        assert response.status_code == 400
    
    def test_size_limit(self, client, monkeypatch):
        monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 100)
        response = upload(client)
        assert response.status_code == 400
        assert "exceeds" in response.json()["detail"]["error"]
    
    def test_unreadable_workbook(self, client):
        response = upload(client, customer=b"not a workbook")
        
        assert response.status_code == 400
        assert response.json()["detail"]["file"] == "customer.xlsx"
        assert db.list_reports()[1] == 0
    
    def test_bad_quantity_lists_every_error(self, client):
        jobboss = workbook_bytes([
            ["Customer PO", "Part Number", "Order Qty", "Open Qty", "Unit Price"],
            ["PO-1", "X1", "ten", 10, 5.0],
            ["PO-2", "X2", 3, 3, "cheap"],
        ])
        response = upload(client, jobboss=jobboss)
        
        assert response.status_code == 400
        errors = response.json()["detail"]["errors"]
        assert [(e["row"], e["field"]) for e in errors] == [(2, "order_qty"), (3, "unit_price")]
        assert db.list_reports()[1] == 0
    
    def test_unexpected_error_returns_500(self, temp_db, monkeypatch):
        def fail(report):
            raise RuntimeError("disk full")
        
        monkeypatch.setattr(db, "save_report", fail)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = upload(client)
        
        assert response.status_code == 500
        assert response.json() == {"detail": "An unexpected error occurred"}


class TestReports:
    """Report retrieval, listing, export and deletion."""
    
    def test_get_report(self, client):
        report_id = upload(client).json()["report_id"]
        
        response = client.get(f"/api/orderscrub/report/{report_id}", headers=auth())
        
        assert response.status_code == 200
        body = response.json()
        assert body["report_id"] == report_id
        assert [m["match_type"] for m in body["matches"]] == [
            "PerfectMatch", "Critical", "MissingFromCustomer", "MissingFromJobBoss",
        ]
        assert body["statistics"]["total"] == 4
    
    def test_get_unknown_report(self, client):
        response = client.get(f"/api/orderscrub/report/{uuid4()}", headers=auth())
        assert response.status_code == 404
    
    def test_list_pagination_and_filter(self, client):
        upload(client, customer_name="Acme")
        upload(client, customer_name="Globex")
        
        response = client.get("/api/orderscrub/reports?pageSize=1", headers=auth())
        body = response.json()
        assert body["total_count"] == 2
        assert body["total_pages"] == 2
        assert body["page_size"] == 1
        assert len(body["reports"]) == 1
        
        body = client.get("/api/orderscrub/reports?customerName=ACME", headers=auth()).json()
        assert [r["customer_name"] for r in body["reports"]] == ["Acme"]
    
    def test_list_clamps_paging(self, client):
        body = client.get("/api/orderscrub/reports?page=0&pageSize=1000", headers=auth()).json()
        assert body["current_page"] == 1
        assert body["page_size"] == 100
        assert body["total_pages"] == 0
    
    def test_export(self, client):
        report_id = upload(client).json()["report_id"]
        
        response = client.get(f"/api/orderscrub/export/{report_id}", headers=auth())
        
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(XLSX)
        assert 'filename="OrderScrub_Acme_' in response.headers["content-disposition"]
        wb = openpyxl.load_workbook(io.BytesIO(response.content))
        assert wb.sheetnames == ["Summary", "Discrepancies", "Missing Orders"]

    def test_export_non_ascii_customer_name(self, client):
        report_id = upload(client, customer_name="東京 Parts").json()["report_id"]

        response = client.get(f"/api/orderscrub/export/{report_id}", headers=auth())

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="OrderScrub_Parts_' in disposition
        assert "filename*=UTF-8''OrderScrub_%E6%9D%B1%E4%BA%AC_Parts_" in disposition

    def test_delete_requires_admin(self, client):
        report_id = upload(client).json()["report_id"]
        
        response = client.delete(f"/api/orderscrub/report/{report_id}", headers=auth(role="User"))
        
        assert response.status_code == 403
        assert db.get_report(report_id) is not None
    
    def test_delete(self, client):
        report_id = upload(client).json()["report_id"]
        
        response = client.delete(f"/api/orderscrub/report/{report_id}", headers=auth(username="boss"))
        
        assert response.status_code == 204
        assert client.get(f"/api/orderscrub/report/{report_id}", headers=auth()).status_code == 404
        events = db.list_audit_events(report_id=report_id, event_type="REPORT_DELETED")
        assert len(events) == 1
        assert events[0].actor == "boss"
        assert events[0].details["total_orders"] == 4
    
    def test_delete_unknown_report(self, client):
        response = client.delete(f"/api/orderscrub/report/{uuid4()}", headers=auth())
        assert response.status_code == 404


class TestHealth:
    """Health and metrics endpoints."""
    
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["services"]["storage"] == "up"
    
    def test_metrics(self, client):
        body = client.get("/metrics").json()
        assert set(body) >= {"scrubs", "outcomes", "activities", "timings"}
