"""
Normalization Tests

Covers the tolerant value parsers and row normalization:
1. Decimal parsing (currency, separators, accounting negatives)
2. Date parsing (native values and common string formats)
3. Key canonicalization
4. Error collection across rows
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from models.orders import OrderSource, RawOrderRow
from reconciliation.errors import ContractViolation, FieldFormatError, NormalizationError
from reconciliation.normalize import (
    clean_text,
    normalize_key,
    normalize_row,
    normalize_rows,
    parse_date,
    parse_decimal,
)


def raw(source=OrderSource.JOBBOSS, row_number=2, **fields):
    base = {"customer_po": "PO-1", "part_number": "X1", "order_qty": 10, "open_qty": 10, "unit_price": "5.00"}
    base.update(fields)
    return RawOrderRow(source=source, row_number=row_number, fields=base)


class TestParseDecimal:
    """Tolerant numeric parsing."""
    
    @pytest.mark.parametrize("value,expected", [
        ("$1,250.00", Decimal("1250.00")),
        ("(12.50)", Decimal("-12.50")),
        ("100USD", Decimal("100")),
        (" 7 ", Decimal("7")),
        ("-3.5", Decimal("-3.5")),
        (".25", Decimal("0.25")),
        (42, Decimal("42")),
        (2.5, Decimal("2.5")),
        (Decimal("9.99"), Decimal("9.99")),
    ])
    def test_parses_numeric_input(self, value, expected):
        assert parse_decimal(value) == expected
    
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value):
        assert parse_decimal(value) is None
    
    @pytest.mark.parametrize("value", ["abc", "12abc", "1.2.3", True, float("nan"), float("inf")])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValueError):
            parse_decimal(value)
    
    @pytest.mark.parametrize("value", ["9" * 30, 1e30, Decimal("1e20"), -10 ** 16, "$1,000,000,000,000,000"])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValueError, match="out of range"):
            parse_decimal(value)
    
    def test_accepts_large_in_range_values(self):
        assert parse_decimal("999,999,999,999,999.99") == Decimal("999999999999999.99")


class TestParseDate:
    """Date parsing from native values and strings."""
    
    def test_native_values(self):
        assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
        assert parse_date(datetime(2024, 3, 1, 14, 30)) == date(2024, 3, 1)
    
    @pytest.mark.parametrize("value", [
        "2024-03-01",
        "03/01/2024",
        "3/1/2024",
        "03/01/24",
        "2024-03-01 00:00:00",
        "2024-03-01T00:00:00",
    ])
    def test_string_formats(self, value):
        assert parse_date(value) == date(2024, 3, 1)
    
    def test_blank_is_none(self):
        assert parse_date(None) is None
        assert parse_date("  ") is None
    
    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("next tuesday")
        with pytest.raises(ValueError):
            parse_date(12345)


class TestKeys:
    """Display text and matching keys."""
    
    def test_clean_text_drops_integral_float_suffix(self):
        assert clean_text(1001.0) == "1001"
        assert clean_text(10.5) == "10.5"
        assert clean_text(None) == ""
        assert clean_text("  A-1 ") == "A-1"
    
    def test_normalize_key(self):
        assert normalize_key("  ab-12   rev ") == "AB-12 REV"
        assert normalize_key("po-1001") == normalize_key(" PO-1001")


class TestNormalizeRow:
    """Single-row normalization."""
    
    def test_builds_record_with_keys(self):
        record = normalize_row(raw(customer_po=" po-1001 ", part_number="x1", revision="b"))
        
        assert record.customer_po == "po-1001"
        assert record.po_key == "PO-1001"
        assert record.part_key == "X1"
        assert record.revision_key == "B"
        assert record.unit_price == Decimal("5.00")
        assert record.source == OrderSource.JOBBOSS
    
    def test_blank_numbers_default_to_zero(self):
        record = normalize_row(raw(open_qty=None, unit_price=""))
        assert record.open_qty == Decimal("0")
        assert record.unit_price == Decimal("0")
    
    def test_bad_field_raises_field_format_error(self):
        with pytest.raises(FieldFormatError) as exc_info:
            normalize_row(raw(order_qty="ten"))
        
        err = exc_info.value
        assert err.field == "order_qty"
        assert err.row_number == 2
        assert isinstance(err, ValueError)
        assert err.to_dict()["file"] == "JobBoss"


class TestNormalizeRows:
    """Sequence normalization and error aggregation."""
    
    def test_preserves_order(self):
        records = normalize_rows([raw(row_number=2, customer_po="A"), raw(row_number=3, customer_po="B")])
        assert [r.customer_po for r in records] == ["A", "B"]
    
    def test_collects_every_error(self):
        rows = [
            raw(row_number=2, order_qty="ten"),
            raw(row_number=3),
            raw(row_number=4, unit_price="n/a", promised_date="someday"),
        ]
        
        with pytest.raises(NormalizationError) as exc_info:
            normalize_rows(rows)
        
        errors = exc_info.value.errors
        assert [(e.row_number, e.field) for e in errors] == [
            (2, "order_qty"),
            (4, "unit_price"),
            (4, "promised_date"),
        ]
        payload = exc_info.value.to_dict()
        assert len(payload["errors"]) == 3
        assert payload["errors"][0]["row"] == 2
    
    def test_none_is_contract_violation(self):
        with pytest.raises(ContractViolation):
            normalize_rows(None)
    
    def test_wrong_source_is_contract_violation(self):
        with pytest.raises(ContractViolation):
            normalize_rows([raw(source=OrderSource.CUSTOMER)], OrderSource.JOBBOSS)
    
    def test_non_row_element_is_contract_violation(self):
        with pytest.raises(ContractViolation):
            normalize_rows([{"customer_po": "A"}])
