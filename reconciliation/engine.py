"""Reconciliation engine for JobBoss and customer order lists.

Exposes high-level functions:
- reconcile(jobboss_orders, customer_orders, ...) -> ScrubReport
- scrub_orders(jobboss_rows, customer_rows, ...) -> ScrubReport

The engine is a pure function of its inputs: no I/O, no shared mutable
state. Logging, persistence and export live with the callers.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath
from typing import Iterable, List, Optional, Sequence
from uuid import uuid4

from models.orders import OrderRecord, OrderSource, RawOrderRow
from models.scrub import MatchedPair, MatchType, ScrubReport, ScrubStatistics
from reconciliation.discrepancies import DiscrepancyOptions, detect_discrepancies
from reconciliation.errors import ContractViolation, FieldFormatError, NormalizationError
from reconciliation.matcher import match_orders
from reconciliation.normalize import normalize_rows


# =============================================================================
# Configuration & Data Structures
# =============================================================================

@dataclass(frozen=True)
class ReconcileOptions:
    """Options for one reconciliation run.

    Attributes:
        match_on_revision: Include the revision in the business key
        compare_dates: Compare promised/ship dates (mismatch → Low)
    """
    match_on_revision: bool = False
    compare_dates: bool = False


_STATISTIC_FOR_MATCH_TYPE = {
    MatchType.PERFECT_MATCH: "perfect",
    MatchType.CRITICAL: "critical",
    MatchType.HIGH: "high",
    MatchType.MEDIUM: "medium",
    MatchType.MISSING_FROM_CUSTOMER: "missing_from_customer",
    MatchType.MISSING_FROM_JOBBOSS: "missing_from_jobboss",
}


# =============================================================================
# Aggregation
# =============================================================================

def determine_match_type(pair: MatchedPair) -> MatchType:
    """Missing-side marker, PerfectMatch, or the worst discrepancy severity."""
    return pair.match_type


def build_statistics(pairs: Iterable[MatchedPair]) -> ScrubStatistics:
    """Count pairs per MatchType in a single pass."""
    if pairs is None:
        raise ContractViolation("pairs must not be None")

    counts = dict.fromkeys(_STATISTIC_FOR_MATCH_TYPE.values(), 0)
    total = 0
    for pair in pairs:
        total += 1
        counts[_STATISTIC_FOR_MATCH_TYPE[determine_match_type(pair)]] += 1

    return ScrubStatistics(total=total, **counts)


def default_customer_name(customer_file_name: str) -> str:
    """Customer name derived from the customer file ("Acme Orders.xlsx" → "Acme Orders")."""
    if not customer_file_name:
        return ""
    # Uploads from Windows browsers may carry backslash paths
    return PurePath(customer_file_name.replace("\\", "/")).stem


def _check_records(records: Sequence[OrderRecord], source: OrderSource, name: str) -> None:
    if records is None:
        raise ContractViolation(f"{name} must not be None")
    for record in records:
        if not isinstance(record, OrderRecord):
            raise ContractViolation(f"{name} contains {type(record).__name__}, expected OrderRecord")
        if record.source != source:
            raise ContractViolation(
                f"{name} contains a {record.source.value} record (row {record.row_number})"
            )


# =============================================================================
# Main Reconciliation Engine
# =============================================================================

def reconcile(
    jobboss_orders: Sequence[OrderRecord],
    customer_orders: Sequence[OrderRecord],
    jobboss_file_name: str = "",
    customer_file_name: str = "",
    requested_by: str = "",
    customer_name: Optional[str] = None,
    options: Optional[ReconcileOptions] = None,
) -> ScrubReport:
    """Match, compare and summarize two normalized order lists.

    Args:
        jobboss_orders: Normalized JobBoss records, in file order
        customer_orders: Normalized Customer records, in file order
        jobboss_file_name: Source file name, carried on the report
        customer_file_name: Source file name, carried on the report
        requested_by: Identity of the user who asked for the scrub
        customer_name: Defaults to the customer file name without extension
        options: Matching and comparison options

    Returns:
        ScrubReport with every input record in exactly one MatchedPair

    Raises:
        ContractViolation: If an input is None or holds records of the wrong source
    """
    options = options or ReconcileOptions()
    _check_records(jobboss_orders, OrderSource.JOBBOSS, "jobboss_orders")
    _check_records(customer_orders, OrderSource.CUSTOMER, "customer_orders")

    discrepancy_options = DiscrepancyOptions(compare_dates=options.compare_dates)
    matches: List[MatchedPair] = []
    for pair in match_orders(jobboss_orders, customer_orders, options.match_on_revision):
        discrepancies = detect_discrepancies(pair, discrepancy_options)
        if discrepancies:
            pair = MatchedPair(jobboss=pair.jobboss, customer=pair.customer, discrepancies=discrepancies)
        matches.append(pair)

    return ScrubReport(
        report_id=uuid4(),
        created_date=datetime.utcnow(),
        jobboss_file_name=jobboss_file_name,
        customer_file_name=customer_file_name,
        customer_name=customer_name if customer_name else default_customer_name(customer_file_name),
        requested_by=requested_by,
        matches=matches,
        statistics=build_statistics(matches),
    )


def scrub_orders(
    jobboss_rows: Sequence[RawOrderRow],
    customer_rows: Sequence[RawOrderRow],
    jobboss_file_name: str = "",
    customer_file_name: str = "",
    requested_by: str = "",
    customer_name: Optional[str] = None,
    options: Optional[ReconcileOptions] = None,
) -> ScrubReport:
    """Normalize both raw row lists, then reconcile them.

    Field errors from both files are collected before anything is matched;
    if there are any, no report is produced.

    Raises:
        NormalizationError: Carrying every FieldFormatError from both files
        ContractViolation: If an input is None or a row has the wrong source
    """
    errors: List[FieldFormatError] = []
    normalized = {}
    for name, rows, source in (
        ("jobboss", jobboss_rows, OrderSource.JOBBOSS),
        ("customer", customer_rows, OrderSource.CUSTOMER),
    ):
        try:
            normalized[name] = normalize_rows(rows, source)
        except NormalizationError as e:
            errors.extend(e.errors)

    if errors:
        raise NormalizationError(errors)

    return reconcile(
        normalized["jobboss"],
        normalized["customer"],
        jobboss_file_name=jobboss_file_name,
        customer_file_name=customer_file_name,
        requested_by=requested_by,
        customer_name=customer_name,
        options=options,
    )
