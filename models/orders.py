"""Order record models for both reconciliation sources.

A RawOrderRow is what the workbook parser hands over: one spreadsheet row with
its cells keyed by canonical field name. An OrderRecord is the normalized,
immutable form the matcher and discrepancy detector work on.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderSource(str, Enum):
    """Which system an order row came from."""
    JOBBOSS = "JobBoss"
    CUSTOMER = "Customer"


# Canonical field names shared by the parser and the normalizer
TEXT_FIELDS = ("sales_order", "line", "customer_po", "part_number", "revision", "description")
NUMERIC_FIELDS = ("order_qty", "open_qty", "unit_price")
DATE_FIELDS = ("promised_date", "ship_date")
CANONICAL_FIELDS = TEXT_FIELDS + NUMERIC_FIELDS + DATE_FIELDS


class RawOrderRow(BaseModel):
    """One un-normalized spreadsheet row.

    Attributes:
        source: JobBoss or Customer
        row_number: 1-based worksheet row (the header is row 1 or later)
        fields: Cell values keyed by canonical field name
    """
    source: OrderSource
    row_number: Optional[int] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class OrderRecord(BaseModel):
    """A normalized order line.

    Display fields keep the text as it appeared in the source file; the
    ``*_key`` fields hold the canonical form used for matching.
    """
    model_config = ConfigDict(frozen=True)

    source: OrderSource
    row_number: Optional[int] = None

    sales_order: str = ""
    line: str = ""
    customer_po: str = ""
    part_number: str = ""
    revision: str = ""
    description: str = ""

    order_qty: Decimal = Decimal("0")
    open_qty: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")

    promised_date: Optional[date] = None
    ship_date: Optional[date] = None

    po_key: str = ""
    part_key: str = ""
    revision_key: str = ""

    def business_key(self, include_revision: bool = False) -> tuple:
        """Key used to bucket records across sources."""
        if include_revision:
            return (self.po_key, self.part_key, self.revision_key)
        return (self.po_key, self.part_key)
