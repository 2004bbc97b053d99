"""
Workbook Parser

Turns uploaded JobBoss and customer workbooks into RawOrderRows:
1. Load the first worksheet (.xlsx via openpyxl, .xls via xlrd)
2. Find the header row (first row with >= 2 recognised column names)
3. Map header cells to canonical field names through the alias table
4. Emit one RawOrderRow per non-blank data row

Values are passed through as read from the workbook; converting them is
the normalizer's job.

Examples of header matching:
    "Customer PO", "PO Number", "PO #"   → customer_po
    "Part No.", "Item Number"            → part_number
    "Qty Ordered", "Order Quantity"      → order_qty
"""

import io
import re
from datetime import datetime
from pathlib import PurePath
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
import xlrd

from core.observability.logging import get_logger
from models.orders import OrderSource, RawOrderRow
from reconciliation.errors import OrderScrubError

logger = get_logger(__name__)


# =============================================================================
# Configuration
# =============================================================================

HEADER_SCAN_ROWS = 10
MIN_HEADER_MATCHES = 2
REQUIRED_FIELDS = ("customer_po", "part_number")

# Aliases are compared after _header_key(): lower-case, punctuation removed
COLUMN_ALIASES: Dict[str, Sequence[str]] = {
    "sales_order": ("sales order", "sales order number", "sales order no", "so", "so number", "so no"),
    "line": ("line", "line number", "line no", "so line", "ln"),
    "customer_po": (
        "customer po", "customer po number", "customer po no", "cust po", "po",
        "po number", "po no", "purchase order", "purchase order number",
    ),
    "part_number": (
        "part number", "part no", "part", "customer part", "customer part number",
        "item", "item number", "item no", "part id",
    ),
    "revision": ("revision", "rev", "part revision", "rev level", "revision level"),
    "description": ("description", "part description", "item description", "desc"),
    "order_qty": ("order qty", "order quantity", "qty ordered", "ordered qty", "quantity", "qty"),
    "open_qty": (
        "open qty", "open quantity", "qty open", "remaining qty", "balance qty",
        "balance due", "backorder qty", "qty remaining",
    ),
    "unit_price": ("unit price", "price", "price each", "unit cost"),
    "promised_date": ("promised date", "promise date", "due date", "requested date", "need date", "delivery date"),
    "ship_date": ("ship date", "shipped date", "scheduled ship date", "ship by"),
}

_ALIAS_INDEX: Dict[str, str] = {
    alias: field_name
    for field_name, aliases in COLUMN_ALIASES.items()
    for alias in aliases
}


class ParseError(OrderScrubError):
    """A workbook could not be read as an order list."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"{file_name}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file_name, "error": self.message}


# =============================================================================
# Header Detection
# =============================================================================

def _header_key(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"[^a-z0-9]+", " ", str(value).lower()).strip()


def map_header(cells: Sequence[Any]) -> Dict[int, str]:
    """Map column index → canonical field for one candidate header row.

    The first column claiming a field wins; unknown columns are ignored.
    """
    mapping: Dict[int, str] = {}
    seen = set()
    for idx, cell in enumerate(cells):
        field_name = _ALIAS_INDEX.get(_header_key(cell))
        if field_name and field_name not in seen:
            mapping[idx] = field_name
            seen.add(field_name)
    return mapping


def find_header_row(rows: List[List[Any]]) -> Optional[int]:
    """Index of the first row with enough recognised column names, or None."""
    for idx, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if len(map_header(row)) >= MIN_HEADER_MATCHES:
            return idx
    return None


# =============================================================================
# Workbook Readers
# =============================================================================

def _read_xlsx(content: bytes) -> List[List[Any]]:
    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_xls(content: bytes) -> List[List[Any]]:
    book = xlrd.open_workbook(file_contents=content)
    sheet = book.sheet_by_index(0)

    rows: List[List[Any]] = []
    for r in range(sheet.nrows):
        values = []
        for cell in sheet.row(r):
            if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                values.append(None)
            elif cell.ctype == xlrd.XL_CELL_DATE:
                values.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
            else:
                values.append(cell.value)
        rows.append(values)
    return rows


_READERS = {
    ".xlsx": _read_xlsx,
    ".xls": _read_xls,
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


# =============================================================================
# Public API
# =============================================================================

def parse_order_file(content: bytes, file_name: str, source: OrderSource) -> List[RawOrderRow]:
    """
    Parse an order workbook into raw rows.
    
    Args:
        content: Workbook bytes
        file_name: Original file name; its extension selects the reader
        source: Tag carried by every returned row
        
    Returns:
        RawOrderRows in sheet order, with 1-based worksheet row numbers
        
    Raises:
        ParseError: Unsupported extension, unreadable workbook, empty sheet,
            no header row, or a required column missing
    """
    extension = PurePath(file_name or "").suffix.lower()
    reader = _READERS.get(extension)
    if reader is None:
        raise ParseError(file_name, f"Unsupported file type '{extension or '(none)'}'; expected .xlsx or .xls")
    if not content:
        raise ParseError(file_name, "File is empty")

    started = datetime.utcnow()
    try:
        rows = reader(content)
    except Exception as exc:
        logger.warning(
            "Workbook could not be read",
            extra_fields={"file": file_name, "error": str(exc)},
        )
        raise ParseError(file_name, f"Unable to read workbook: {exc}") from exc

    if not any(any(not _is_blank(v) for v in row) for row in rows):
        raise ParseError(file_name, "Worksheet is empty")

    header_idx = find_header_row(rows)
    if header_idx is None:
        raise ParseError(
            file_name,
            f"No header row found in the first {HEADER_SCAN_ROWS} rows",
        )

    columns = map_header(rows[header_idx])
    missing = [f for f in REQUIRED_FIELDS if f not in columns.values()]
    if missing:
        raise ParseError(file_name, f"Missing required column(s): {', '.join(missing)}")

    result: List[RawOrderRow] = []
    for offset, row in enumerate(rows[header_idx + 1:], start=header_idx + 2):
        if all(_is_blank(v) for v in row):
            continue
        fields = {
            field_name: (row[idx] if idx < len(row) else None)
            for idx, field_name in columns.items()
        }
        # Blank strings are treated as missing cells
        fields = {k: (None if _is_blank(v) else v) for k, v in fields.items()}
        result.append(RawOrderRow(source=source, row_number=offset, fields=fields))

    logger.info(
        "Parsed order workbook",
        extra_fields={
            "file": file_name,
            "source": source.value,
            "rows": len(result),
            "header_row": header_idx + 1,
            "duration_ms": round((datetime.utcnow() - started).total_seconds() * 1000, 2),
        },
    )
    return result


def parse_jobboss_file(content: bytes, file_name: str) -> List[RawOrderRow]:
    """Parse a JobBoss open-orders export."""
    return parse_order_file(content, file_name, OrderSource.JOBBOSS)


def parse_customer_file(content: bytes, file_name: str) -> List[RawOrderRow]:
    """Parse a customer order list."""
    return parse_order_file(content, file_name, OrderSource.CUSTOMER)
