"""Field-level comparison of matched order pairs.

Fields are compared in a fixed order so the discrepancy list for a pair is
always the same:

    Revision      string, case-insensitive          mismatch → Critical
    OrderQty      numeric, relative to JobBoss      Critical / High / Medium
    OpenQty       numeric, relative to JobBoss      Critical / High / Medium
    UnitPrice     numeric at 2 decimal places       mismatch → High
    Description   string, only when both present    mismatch → Medium
    PromisedDate  date (opt-in)                     mismatch → Low
    ShipDate      date (opt-in)                     mismatch → Low
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from models.orders import OrderRecord
from models.scrub import Discrepancy, MatchedPair, Severity
from reconciliation.normalize import normalize_key


# =============================================================================
# Configuration
# =============================================================================

CRITICAL_QTY_RATIO = Decimal("0.50")
HIGH_QTY_RATIO = Decimal("0.10")
PRICE_QUANTUM = Decimal("0.01")

FIELD_REVISION = "Revision"
FIELD_ORDER_QTY = "OrderQty"
FIELD_OPEN_QTY = "OpenQty"
FIELD_UNIT_PRICE = "UnitPrice"
FIELD_DESCRIPTION = "Description"
FIELD_PROMISED_DATE = "PromisedDate"
FIELD_SHIP_DATE = "ShipDate"


@dataclass(frozen=True)
class DiscrepancyOptions:
    """Which optional fields take part in the comparison."""
    compare_dates: bool = False


# =============================================================================
# Comparison Rules
# =============================================================================

def quantity_severity(jobboss_qty: Decimal, customer_qty: Decimal) -> Optional[Severity]:
    """Severity of a quantity difference, or None when the quantities agree.

    The difference is measured relative to the JobBoss quantity. A zero on
    exactly one side is always Critical.
    """
    diff = abs(jobboss_qty - customer_qty)
    if diff == 0:
        return None
    if jobboss_qty == 0 or customer_qty == 0:
        return Severity.CRITICAL

    ratio = diff / abs(jobboss_qty)
    if ratio >= CRITICAL_QTY_RATIO:
        return Severity.CRITICAL
    if ratio >= HIGH_QTY_RATIO:
        return Severity.HIGH
    return Severity.MEDIUM


def round_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def prices_differ(jobboss_price: Decimal, customer_price: Decimal) -> bool:
    """True when the prices differ at currency precision."""
    return round_price(jobboss_price) != round_price(customer_price)


def format_quantity(value: Decimal) -> str:
    """'10.000' → '10', '2.50' → '2.5'."""
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def format_price(value: Decimal) -> str:
    return str(round_price(value))


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


# =============================================================================
# Detector
# =============================================================================

def _compare(jobboss: OrderRecord, customer: OrderRecord, options: DiscrepancyOptions) -> List[Discrepancy]:
    found: List[Discrepancy] = []

    if jobboss.revision_key != customer.revision_key:
        found.append(Discrepancy(
            field=FIELD_REVISION,
            jobboss_value=jobboss.revision,
            customer_value=customer.revision,
            severity=Severity.CRITICAL,
        ))

    for field_name, jobboss_qty, customer_qty in (
        (FIELD_ORDER_QTY, jobboss.order_qty, customer.order_qty),
        (FIELD_OPEN_QTY, jobboss.open_qty, customer.open_qty),
    ):
        severity = quantity_severity(jobboss_qty, customer_qty)
        if severity is not None:
            found.append(Discrepancy(
                field=field_name,
                jobboss_value=format_quantity(jobboss_qty),
                customer_value=format_quantity(customer_qty),
                severity=severity,
            ))

    if prices_differ(jobboss.unit_price, customer.unit_price):
        found.append(Discrepancy(
            field=FIELD_UNIT_PRICE,
            jobboss_value=format_price(jobboss.unit_price),
            customer_value=format_price(customer.unit_price),
            severity=Severity.HIGH,
        ))

    if jobboss.description and customer.description:
        if normalize_key(jobboss.description) != normalize_key(customer.description):
            found.append(Discrepancy(
                field=FIELD_DESCRIPTION,
                jobboss_value=jobboss.description,
                customer_value=customer.description,
                severity=Severity.MEDIUM,
            ))

    if options.compare_dates:
        for field_name, jobboss_date, customer_date in (
            (FIELD_PROMISED_DATE, jobboss.promised_date, customer.promised_date),
            (FIELD_SHIP_DATE, jobboss.ship_date, customer.ship_date),
        ):
            if jobboss_date and customer_date and jobboss_date != customer_date:
                found.append(Discrepancy(
                    field=field_name,
                    jobboss_value=format_date(jobboss_date),
                    customer_value=format_date(customer_date),
                    severity=Severity.LOW,
                ))

    return found


def detect_discrepancies(pair: MatchedPair, options: DiscrepancyOptions = None) -> List[Discrepancy]:
    """Compare the two sides of a pair field by field.

    One-sided pairs are not compared and yield no discrepancies.
    """
    if pair.jobboss is None or pair.customer is None:
        return []
    return _compare(pair.jobboss, pair.customer, options or DiscrepancyOptions())
