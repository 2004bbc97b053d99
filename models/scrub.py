"""Scrub report models.

The reconciliation engine produces exactly one ScrubReport per run. The
report is the only contract between the engine and its collaborators
(persistence, Excel export, REST API).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from models.orders import OrderRecord


class Severity(str, Enum):
    """Discrepancy severity, totally ordered worst-first."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


def worst_severity(severities: Iterable[Severity]) -> Optional[Severity]:
    """Return the worst severity, or None for an empty iterable."""
    return max(severities, key=lambda s: s.rank, default=None)


class MatchType(str, Enum):
    """Classification of a matched pair."""
    PERFECT_MATCH = "PerfectMatch"
    MISSING_FROM_CUSTOMER = "MissingFromCustomer"
    MISSING_FROM_JOBBOSS = "MissingFromJobBoss"
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"


_MATCH_TYPE_BY_SEVERITY = {
    Severity.CRITICAL: MatchType.CRITICAL,
    Severity.HIGH: MatchType.HIGH,
    Severity.MEDIUM: MatchType.MEDIUM,
    # MatchType has no Low member; Low-only pairs report as Medium
    Severity.LOW: MatchType.MEDIUM,
}


class Discrepancy(BaseModel):
    """A single field-level mismatch between paired records."""
    model_config = ConfigDict(frozen=True)

    field: str
    jobboss_value: str = ""
    customer_value: str = ""
    severity: Severity


class MatchedPair(BaseModel):
    """Zero-or-one JobBoss record paired with zero-or-one Customer record.

    At least one side is always present. ``match_type`` is derived from the
    sides and the discrepancies and is never stored on its own.
    """
    model_config = ConfigDict(frozen=True)

    jobboss: Optional[OrderRecord] = None
    customer: Optional[OrderRecord] = None
    discrepancies: List[Discrepancy] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_sides(self) -> "MatchedPair":
        if self.jobboss is None and self.customer is None:
            raise ValueError("MatchedPair requires at least one record")
        if (self.jobboss is None or self.customer is None) and self.discrepancies:
            raise ValueError("One-sided pairs cannot carry discrepancies")
        return self

    @computed_field
    @property
    def match_type(self) -> MatchType:
        if self.customer is None:
            return MatchType.MISSING_FROM_CUSTOMER
        if self.jobboss is None:
            return MatchType.MISSING_FROM_JOBBOSS
        worst = worst_severity(d.severity for d in self.discrepancies)
        if worst is None:
            return MatchType.PERFECT_MATCH
        return _MATCH_TYPE_BY_SEVERITY[worst]

    @property
    def primary(self) -> OrderRecord:
        """The JobBoss side when present, otherwise the Customer side."""
        return self.jobboss if self.jobboss is not None else self.customer


class ScrubStatistics(BaseModel):
    """Counts per MatchType; the counters always sum to ``total``."""
    total: int = 0
    perfect: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    missing_from_customer: int = 0
    missing_from_jobboss: int = 0


class ScrubReport(BaseModel):
    """Aggregate root for one reconciliation run."""
    model_config = ConfigDict(frozen=True)

    report_id: UUID = Field(default_factory=uuid4)
    created_date: datetime = Field(default_factory=datetime.utcnow)
    jobboss_file_name: str = ""
    customer_file_name: str = ""
    customer_name: str = ""
    requested_by: str = ""
    matches: List[MatchedPair] = Field(default_factory=list)
    statistics: ScrubStatistics = Field(default_factory=ScrubStatistics)

    def discrepancy_matches(self) -> List[MatchedPair]:
        """Pairs with at least one discrepancy, in report order."""
        return [m for m in self.matches if m.discrepancies]

    def missing_matches(self) -> List[MatchedPair]:
        """One-sided pairs, in report order."""
        return [
            m for m in self.matches
            if m.match_type in (MatchType.MISSING_FROM_CUSTOMER, MatchType.MISSING_FROM_JOBBOSS)
        ]
