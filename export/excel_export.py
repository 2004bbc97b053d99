"""
Excel Export for Scrub Reports

Renders a ScrubReport as a three-sheet workbook:
- Summary: report metadata and color-coded statistics
- Discrepancies: one row per field-level discrepancy
- Missing Orders: one-sided pairs from both sources

Colors follow the severity scheme used on screen: Critical red, High
orange, Medium yellow, PerfectMatch light green.
"""

import io
import re
import unicodedata
from typing import Any, Dict, List, Sequence
from urllib.parse import quote

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from core.observability.logging import get_logger
from models.scrub import MatchType, ScrubReport, Severity

logger = get_logger(__name__)


# =============================================================================
# Styles
# =============================================================================

LIGHT_GREEN = "90EE90"
RED = "FF0000"
ORANGE = "FFA500"
YELLOW = "FFFF00"
WHITE = "FFFFFF"
LIGHT_BLUE = "ADD8E6"

SEVERITY_COLORS: Dict[Severity, str] = {
    Severity.CRITICAL: RED,
    Severity.HIGH: ORANGE,
    Severity.MEDIUM: YELLOW,
    Severity.LOW: WHITE,
}

DISCREPANCY_HEADERS = (
    "Sales Order", "Line", "Customer PO", "Part Number", "Revision",
    "Field", "JobBoss Value", "Customer Value", "Severity",
)

MISSING_HEADERS = (
    "Type", "Sales Order", "Customer PO", "Part Number", "Revision",
    "Order Qty", "Open Qty", "Unit Price",
)

MAX_COLUMN_WIDTH = 60


def _fill(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


def _write_header(ws: Worksheet, headers: Sequence[str]) -> None:
    for col, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = _fill(LIGHT_BLUE)


def _fit_columns(ws: Worksheet) -> None:
    """Size each column to its longest rendered value."""
    widths: Dict[int, int] = {}
    for row in ws.iter_rows():
        for cell in row:
            if cell.value is None:
                continue
            length = len(str(cell.value))
            widths[cell.column] = max(widths.get(cell.column, 0), length)
    for col, width in widths.items():
        ws.column_dimensions[get_column_letter(col)].width = min(width + 2, MAX_COLUMN_WIDTH)


# =============================================================================
# Sheets
# =============================================================================

def _summary_sheet(ws: Worksheet, report: ScrubReport) -> None:
    ws.title = "Summary"
    ws["A1"] = "Order Scrub Report Summary"
    ws["A1"].font = Font(size=16, bold=True)
    ws.merge_cells("A1:B1")

    metadata = [
        ("Report ID:", str(report.report_id)),
        ("Created Date:", report.created_date.strftime("%Y-%m-%d %H:%M:%S")),
        ("Customer:", report.customer_name),
        ("JobBoss File:", report.jobboss_file_name),
        ("Customer File:", report.customer_file_name),
    ]
    row = 3
    for label, value in metadata:
        ws.cell(row=row, column=1, value=label)
        ws.cell(row=row, column=2, value=value)
        row += 1

    row += 1
    ws.cell(row=row, column=1, value="Statistics").font = Font(bold=True)
    row += 1

    stats = report.statistics
    statistics_rows = [
        ("Total Orders:", stats.total, None),
        ("Perfect Matches:", stats.perfect, LIGHT_GREEN),
        ("Critical Issues:", stats.critical, RED),
        ("High Issues:", stats.high, ORANGE),
        ("Medium Issues:", stats.medium, YELLOW),
        ("Missing from Customer:", stats.missing_from_customer, None),
        ("Missing from JobBoss:", stats.missing_from_jobboss, None),
    ]
    for label, value, color in statistics_rows:
        ws.cell(row=row, column=1, value=label)
        cell = ws.cell(row=row, column=2, value=value)
        if color:
            cell.fill = _fill(color)
        row += 1

    _fit_columns(ws)


def _discrepancies_sheet(ws: Worksheet, report: ScrubReport) -> None:
    _write_header(ws, DISCREPANCY_HEADERS)

    row = 2
    for match in report.discrepancy_matches():
        jobboss, customer = match.jobboss, match.customer
        for discrepancy in match.discrepancies:
            values: List[Any] = [
                jobboss.sales_order,
                jobboss.line,
                jobboss.customer_po or customer.customer_po,
                jobboss.part_number or customer.part_number,
                jobboss.revision or customer.revision,
                discrepancy.field,
                discrepancy.jobboss_value,
                discrepancy.customer_value,
                discrepancy.severity.value,
            ]
            for col, value in enumerate(values, start=1):
                ws.cell(row=row, column=col, value=value)
            ws.cell(row=row, column=len(values)).fill = _fill(SEVERITY_COLORS[discrepancy.severity])
            row += 1

    _fit_columns(ws)


def _missing_sheet(ws: Worksheet, report: ScrubReport) -> None:
    _write_header(ws, MISSING_HEADERS)

    row = 2
    for match in report.missing_matches():
        record = match.primary
        # Customer-only rows have no sales order
        sales_order = record.sales_order if match.match_type == MatchType.MISSING_FROM_CUSTOMER else None
        values = [
            match.match_type.value,
            sales_order,
            record.customer_po,
            record.part_number,
            record.revision,
            record.order_qty,
            record.open_qty,
            record.unit_price,
        ]
        for col, value in enumerate(values, start=1):
            ws.cell(row=row, column=col, value=value)
        row += 1

    _fit_columns(ws)


# =============================================================================
# Public API
# =============================================================================

def export_report_to_excel(report: ScrubReport) -> bytes:
    """
    Render a report as .xlsx bytes.
    
    Args:
        report: The report to export
        
    Returns:
        Workbook content with Summary, Discrepancies and Missing Orders sheets
    """
    workbook = openpyxl.Workbook()
    _summary_sheet(workbook.active, report)
    _discrepancies_sheet(workbook.create_sheet("Discrepancies"), report)
    _missing_sheet(workbook.create_sheet("Missing Orders"), report)

    buffer = io.BytesIO()
    workbook.save(buffer)

    logger.info(
        "Exported report to Excel",
        extra_fields={"report_id": str(report.report_id), "bytes": buffer.tell()},
    )
    return buffer.getvalue()


def export_file_name(report: ScrubReport) -> str:
    """Download name, e.g. ``OrderScrub_Acme_20240301_140502.xlsx``."""
    customer = re.sub(r'[\\/:*?"<>|\s]+', "_", report.customer_name).strip("_") or "Report"
    return f"OrderScrub_{customer}_{report.created_date:%Y%m%d_%H%M%S}.xlsx"


def content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII ``filename`` and an RFC 5987 ``filename*``.

    HTTP header values are Latin-1, so non-ASCII customer names only travel
    in the percent-encoded form.
    """
    fallback = unicodedata.normalize("NFKD", file_name).encode("ascii", "ignore").decode("ascii")
    fallback = re.sub(r"_+", "_", fallback)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"
