"""Record Normalization.

Turns raw spreadsheet rows into OrderRecords. The normalization process:
1. Text fields are stripped; display values are otherwise kept verbatim
2. Matching keys (PO, part, revision) are upper-cased with whitespace collapsed
3. Quantities and prices go through a tolerant decimal parser
4. Dates accept native date/datetime values and a few common string formats

Examples:
    " po-1001 "   → display "po-1001", key "PO-1001"
    "$1,250.00"   → Decimal("1250.00")
    "(12.50)"     → Decimal("-12.50")
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from models.orders import NUMERIC_FIELDS, OrderRecord, OrderSource, RawOrderRow
from reconciliation.errors import ContractViolation, FieldFormatError, NormalizationError


# Currency symbols and ISO codes stripped before numeric parsing
CURRENCY_PATTERN = re.compile(r"[$€£¥]|USD|CAD|EUR|GBP|MXN", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%m/%d/%y", "%Y/%m/%d")

# Quantities and prices must stay quantizable to cents within the default
# 28-digit decimal context
MAX_MAGNITUDE = Decimal("1e15")


# =============================================================================
# Value Parsers
# =============================================================================

def clean_text(value: Any) -> str:
    """Display form of a cell: stripped string, integral floats without '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def normalize_key(value: Any) -> str:
    """Canonical matching form of a key field.

    >>> normalize_key("  ab-12   rev ")
    'AB-12 REV'
    """
    return re.sub(r"\s+", " ", clean_text(value)).upper()


def _bounded(number: Decimal, value: Any) -> Decimal:
    if abs(number) >= MAX_MAGNITUDE:
        raise ValueError(f"Number out of range: {value!r}")
    return number


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a decimal from spreadsheet input.

    Returns None for blank input. Raises ValueError when the value is not
    numeric after removing currency symbols, thousands separators and
    accounting parentheses, or when its magnitude reaches MAX_MAGNITUDE.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not numeric: {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Non-finite number: {value!r}")
        return _bounded(value, value)
    if isinstance(value, int):
        return _bounded(Decimal(value), value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite number: {value!r}")
        return _bounded(Decimal(str(value)), value)

    s = str(value).strip()
    if s == "":
        return None

    s = CURRENCY_PATTERN.sub("", s)
    s = s.replace(",", "").replace("\u00a0", "").replace(" ", "")

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]

    if not NUMBER_PATTERN.fullmatch(s):
        raise ValueError(f"Not a number: {value!r}")

    try:
        result = Decimal(s)
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e
    return _bounded(-result if negative else result, value)


def parse_date(value: Any) -> Optional[date]:
    """Parse a date from a native value or a common string format."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        # Strip a trailing time component ("2024-03-01 00:00:00", "2024-03-01T00:00:00")
        s = re.split(r"[ T]", s, maxsplit=1)[0]
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Cannot parse date: {value!r}")
    raise ValueError(f"Cannot parse date: {value!r}")


# =============================================================================
# Row Normalization
# =============================================================================

def _normalize(row: RawOrderRow, errors: List[FieldFormatError]) -> Optional[OrderRecord]:
    """Normalize one row, appending every field error to ``errors``."""
    fields = row.fields
    source = row.source.value
    row_errors: List[FieldFormatError] = []

    numbers = {}
    for name in NUMERIC_FIELDS:
        raw = fields.get(name)
        try:
            parsed = parse_decimal(raw)
        except ValueError as e:
            row_errors.append(FieldFormatError(name, raw, source, row.row_number, str(e)))
            continue
        numbers[name] = parsed if parsed is not None else Decimal("0")

    dates = {}
    for name in ("promised_date", "ship_date"):
        raw = fields.get(name)
        try:
            dates[name] = parse_date(raw)
        except ValueError as e:
            row_errors.append(FieldFormatError(name, raw, source, row.row_number, str(e)))

    if row_errors:
        errors.extend(row_errors)
        return None

    customer_po = clean_text(fields.get("customer_po"))
    part_number = clean_text(fields.get("part_number"))
    revision = clean_text(fields.get("revision"))

    return OrderRecord(
        source=row.source,
        row_number=row.row_number,
        sales_order=clean_text(fields.get("sales_order")),
        line=clean_text(fields.get("line")),
        customer_po=customer_po,
        part_number=part_number,
        revision=revision,
        description=clean_text(fields.get("description")),
        order_qty=numbers["order_qty"],
        open_qty=numbers["open_qty"],
        unit_price=numbers["unit_price"],
        promised_date=dates["promised_date"],
        ship_date=dates["ship_date"],
        po_key=normalize_key(customer_po),
        part_key=normalize_key(part_number),
        revision_key=normalize_key(revision),
    )


def normalize_row(row: RawOrderRow) -> OrderRecord:
    """Normalize a single row.

    Raises:
        FieldFormatError: For the first field that cannot be parsed
    """
    errors: List[FieldFormatError] = []
    record = _normalize(row, errors)
    if errors:
        raise errors[0]
    return record


def normalize_rows(
    rows: Iterable[RawOrderRow],
    source: Optional[OrderSource] = None,
) -> List[OrderRecord]:
    """Normalize a sequence of rows, collecting every field error.

    Args:
        rows: Raw rows from one source, in file order
        source: When given, every row must carry this source tag

    Returns:
        OrderRecords in input order

    Raises:
        NormalizationError: If any row had a field that could not be parsed
        ContractViolation: If ``rows`` is None or a row has the wrong source
    """
    if rows is None:
        raise ContractViolation("rows must not be None")

    errors: List[FieldFormatError] = []
    records: List[OrderRecord] = []
    for row in rows:
        if not isinstance(row, RawOrderRow):
            raise ContractViolation(f"Expected RawOrderRow, got {type(row).__name__}")
        if source is not None and row.source != source:
            raise ContractViolation(
                f"Row {row.row_number} is tagged {row.source.value}, expected {source.value}"
            )
        record = _normalize(row, errors)
        if record is not None:
            records.append(record)

    if errors:
        raise NormalizationError(errors)
    return records
