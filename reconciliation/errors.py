"""Exceptions raised by the reconciliation engine."""

from typing import Any, Dict, List, Optional


class OrderScrubError(Exception):
    """Base class for order scrub errors."""


class FieldFormatError(OrderScrubError, ValueError):
    """A required field could not be normalized (e.g. a non-numeric quantity)."""

    def __init__(
        self,
        field: str,
        value: Any,
        source: Optional[str] = None,
        row_number: Optional[int] = None,
        reason: str = "",
    ):
        self.field = field
        self.value = value
        self.source = source
        self.row_number = row_number
        self.reason = reason or f"Cannot parse {field} from {value!r}"
        location = f"{source or 'input'} row {row_number}" if row_number is not None else (source or "input")
        super().__init__(f"{location}: {self.reason}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.source,
            "row": self.row_number,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
            "message": self.reason,
        }


class NormalizationError(OrderScrubError):
    """One or more input rows failed normalization; no report is produced."""

    def __init__(self, errors: List[FieldFormatError]):
        self.errors = list(errors)
        noun = "error" if len(self.errors) == 1 else "errors"
        super().__init__(f"{len(self.errors)} field format {noun} in input rows")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": str(self),
            "errors": [e.to_dict() for e in self.errors],
        }


class ContractViolation(OrderScrubError):
    """The caller broke an engine invariant. This is a programming error."""
