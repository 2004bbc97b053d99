"""
Order Scrub Database

Creates and manages the report tables:
- scrub_reports: one row per scrub, with file names and statistics
- scrub_matches: every matched pair of a report, in report order
- discrepancies: field-level discrepancies of each match
- audit_log: audit events (see core.audit)

Reports are stored in full so get_report() returns exactly what the
engine produced.
"""

import sqlite3
import json
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID

from core import config
from models.api_responses import ReportSummary
from models.audit import AuditEvent
from models.orders import OrderRecord
from models.scrub import Discrepancy, MatchedPair, ScrubReport, ScrubStatistics


def get_db_connection() -> sqlite3.Connection:
    """Get database connection with row factory"""
    conn = sqlite3.connect(str(config.DB_PATH))
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """
    Initialize the order scrub database tables.
    
    Creates:
    - scrub_reports: Report header and statistics
    - scrub_matches: Matched pairs with both records as JSON
    - discrepancies: Field-level discrepancies per match
    - audit_log: Audit trail
    """
    config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = get_db_connection()
    cursor = conn.cursor()
    
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS scrub_reports (
            report_id TEXT PRIMARY KEY,
            created_date TEXT NOT NULL,
            created_by TEXT,
            customer_name TEXT,
            customer_name_key TEXT,
            jobboss_file_name TEXT,
            customer_file_name TEXT,
            total_orders INTEGER DEFAULT 0,
            perfect_matches INTEGER DEFAULT 0,
            critical_issues INTEGER DEFAULT 0,
            high_issues INTEGER DEFAULT 0,
            medium_issues INTEGER DEFAULT 0,
            missing_from_customer INTEGER DEFAULT 0,
            missing_from_jobboss INTEGER DEFAULT 0
        )
    """)
    
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_scrub_reports_created 
        ON scrub_reports(created_date)
    """)
    
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS scrub_matches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            report_id TEXT NOT NULL,
            ordinal INTEGER NOT NULL,
            match_type TEXT NOT NULL,
            jobboss_json TEXT,
            customer_json TEXT,
            
            UNIQUE(report_id, ordinal)
        )
    """)
    
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS discrepancies (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            match_id INTEGER NOT NULL,
            report_id TEXT NOT NULL,
            sales_order TEXT,
            customer_po TEXT,
            part_number TEXT,
            field TEXT NOT NULL,
            jobboss_value TEXT,
            customer_value TEXT,
            severity TEXT NOT NULL
        )
    """)
    
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_discrepancies_report 
        ON discrepancies(report_id)
    """)
    
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            event_id TEXT PRIMARY KEY,
            timestamp TEXT NOT NULL,
            event_type TEXT NOT NULL,
            severity TEXT NOT NULL,
            report_id TEXT,
            workflow_id TEXT,
            ip_address TEXT,
            message TEXT NOT NULL,
            details TEXT,
            actor TEXT
        )
    """)
    
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_audit_log_report 
        ON audit_log(report_id, timestamp)
    """)
    
    conn.commit()
    conn.close()


# =============================================================================
# Reports
# =============================================================================

def _delete_report_rows(conn: sqlite3.Connection, report_id: str) -> int:
    """Delete a report and its children inside the caller's transaction.
    
    Returns:
        Number of report header rows deleted (0 or 1)
    """
    conn.execute("DELETE FROM discrepancies WHERE report_id = ?", (report_id,))
    conn.execute("DELETE FROM scrub_matches WHERE report_id = ?", (report_id,))
    cursor = conn.execute("DELETE FROM scrub_reports WHERE report_id = ?", (report_id,))
    return cursor.rowcount


def save_report(report: ScrubReport) -> None:
    """
    Persist a report with all of its matches and discrepancies.
    
    The write happens in one transaction; a failure leaves no partial report.
    Saving a report ID that is already stored replaces the stored copy, so a
    retried persist step is harmless.
    """
    conn = get_db_connection()
    stats = report.statistics
    try:
        with conn:
            _delete_report_rows(conn, str(report.report_id))
            conn.execute("""
                INSERT INTO scrub_reports
                (report_id, created_date, created_by, customer_name, customer_name_key,
                 jobboss_file_name, customer_file_name, total_orders, perfect_matches,
                 critical_issues, high_issues, medium_issues, missing_from_customer,
                 missing_from_jobboss)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                str(report.report_id),
                report.created_date.isoformat(),
                report.requested_by,
                report.customer_name,
                report.customer_name.casefold(),
                report.jobboss_file_name,
                report.customer_file_name,
                stats.total,
                stats.perfect,
                stats.critical,
                stats.high,
                stats.medium,
                stats.missing_from_customer,
                stats.missing_from_jobboss,
            ))
            
            for ordinal, match in enumerate(report.matches):
                cursor = conn.execute("""
                    INSERT INTO scrub_matches
                    (report_id, ordinal, match_type, jobboss_json, customer_json)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    str(report.report_id),
                    ordinal,
                    match.match_type.value,
                    match.jobboss.model_dump_json() if match.jobboss else None,
                    match.customer.model_dump_json() if match.customer else None,
                ))
                match_id = cursor.lastrowid
                
                primary = match.primary
                conn.executemany("""
                    INSERT INTO discrepancies
                    (match_id, report_id, sales_order, customer_po, part_number,
                     field, jobboss_value, customer_value, severity)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, [
                    (
                        match_id,
                        str(report.report_id),
                        primary.sales_order,
                        primary.customer_po,
                        primary.part_number,
                        d.field,
                        d.jobboss_value,
                        d.customer_value,
                        d.severity.value,
                    )
                    for d in match.discrepancies
                ])
    finally:
        conn.close()


def _row_to_statistics(row: sqlite3.Row) -> ScrubStatistics:
    return ScrubStatistics(
        total=row["total_orders"],
        perfect=row["perfect_matches"],
        critical=row["critical_issues"],
        high=row["high_issues"],
        medium=row["medium_issues"],
        missing_from_customer=row["missing_from_customer"],
        missing_from_jobboss=row["missing_from_jobboss"],
    )


def _row_to_summary(row: sqlite3.Row) -> ReportSummary:
    return ReportSummary(
        report_id=UUID(row["report_id"]),
        created_date=datetime.fromisoformat(row["created_date"]),
        customer_name=row["customer_name"] or "",
        jobboss_file_name=row["jobboss_file_name"] or "",
        customer_file_name=row["customer_file_name"] or "",
        created_by=row["created_by"] or "",
        total_orders=row["total_orders"],
        perfect_matches=row["perfect_matches"],
        critical_issues=row["critical_issues"],
        high_issues=row["high_issues"],
        medium_issues=row["medium_issues"],
        missing_from_customer=row["missing_from_customer"],
        missing_from_jobboss=row["missing_from_jobboss"],
    )


def get_report(report_id: str) -> Optional[ScrubReport]:
    """
    Load a report with its matches in their original order.
    
    Args:
        report_id: Report UUID (string form)
        
    Returns:
        ScrubReport, or None if no report has this ID
    """
    conn = get_db_connection()
    try:
        header = conn.execute(
            "SELECT * FROM scrub_reports WHERE report_id = ?", (str(report_id),)
        ).fetchone()
        if header is None:
            return None
        
        discrepancies_by_match: Dict[int, List[Discrepancy]] = {}
        for row in conn.execute(
            "SELECT * FROM discrepancies WHERE report_id = ? ORDER BY id", (str(report_id),)
        ):
            discrepancies_by_match.setdefault(row["match_id"], []).append(Discrepancy(
                field=row["field"],
                jobboss_value=row["jobboss_value"] or "",
                customer_value=row["customer_value"] or "",
                severity=row["severity"],
            ))
        
        matches = []
        for row in conn.execute(
            "SELECT * FROM scrub_matches WHERE report_id = ? ORDER BY ordinal", (str(report_id),)
        ):
            matches.append(MatchedPair(
                jobboss=OrderRecord.model_validate_json(row["jobboss_json"]) if row["jobboss_json"] else None,
                customer=OrderRecord.model_validate_json(row["customer_json"]) if row["customer_json"] else None,
                discrepancies=discrepancies_by_match.get(row["id"], []),
            ))
    finally:
        conn.close()
    
    return ScrubReport(
        report_id=UUID(header["report_id"]),
        created_date=datetime.fromisoformat(header["created_date"]),
        jobboss_file_name=header["jobboss_file_name"] or "",
        customer_file_name=header["customer_file_name"] or "",
        customer_name=header["customer_name"] or "",
        requested_by=header["created_by"] or "",
        matches=matches,
        statistics=_row_to_statistics(header),
    )


def list_reports(
    page: int = 1,
    page_size: int = 20,
    customer_name: Optional[str] = None,
) -> Tuple[List[ReportSummary], int]:
    """
    List report summaries, newest first.
    
    Args:
        page: 1-based page number
        page_size: Reports per page
        customer_name: Case-insensitive substring filter on the customer name
            (Unicode casefolding, so "é" also finds "É")
        
    Returns:
        (summaries for the page, total number of matching reports)
    """
    where = ""
    params: List[Any] = []
    if customer_name:
        escaped = customer_name.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        where = "WHERE customer_name_key LIKE ? ESCAPE '\\'"
        params.append(f"%{escaped}%")
    
    conn = get_db_connection()
    try:
        total = conn.execute(f"SELECT COUNT(*) FROM scrub_reports {where}", params).fetchone()[0]
        rows = conn.execute(f"""
            SELECT * FROM scrub_reports {where}
            ORDER BY created_date DESC, rowid DESC
            LIMIT ? OFFSET ?
        """, params + [page_size, (page - 1) * page_size]).fetchall()
    finally:
        conn.close()
    
    return [_row_to_summary(row) for row in rows], total


def delete_report(report_id: str) -> bool:
    """
    Delete a report with its matches and discrepancies.
    
    Returns:
        True if a report was deleted, False if it did not exist
    """
    conn = get_db_connection()
    try:
        with conn:
            deleted = _delete_report_rows(conn, str(report_id)) > 0
    finally:
        conn.close()
    return deleted


# =============================================================================
# Audit Log
# =============================================================================

def save_audit_event(event: AuditEvent) -> None:
    conn = get_db_connection()
    try:
        with conn:
            conn.execute("""
                INSERT INTO audit_log
                (event_id, timestamp, event_type, severity, report_id, workflow_id,
                 ip_address, message, details, actor)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event.event_id,
                event.timestamp.isoformat(),
                event.event_type,
                event.severity.value,
                event.report_id,
                event.workflow_id,
                event.ip_address,
                event.message,
                json.dumps(event.details, default=str),
                event.actor,
            ))
    finally:
        conn.close()


def list_audit_events(
    report_id: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: int = 100,
) -> List[AuditEvent]:
    """Audit events, newest first, optionally filtered by report and type."""
    clauses = []
    params: List[Any] = []
    if report_id:
        clauses.append("report_id = ?")
        params.append(str(report_id))
    if event_type:
        clauses.append("event_type = ?")
        params.append(event_type)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    
    conn = get_db_connection()
    try:
        rows = conn.execute(
            f"SELECT * FROM audit_log {where} ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            params + [limit],
        ).fetchall()
    finally:
        conn.close()
    
    return [
        AuditEvent(
            event_id=row["event_id"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=row["event_type"],
            severity=row["severity"],
            report_id=row["report_id"],
            workflow_id=row["workflow_id"],
            ip_address=row["ip_address"],
            message=row["message"],
            details=json.loads(row["details"]) if row["details"] else {},
            actor=row["actor"] or "system",
        )
        for row in rows
    ]
