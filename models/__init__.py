"""Models Package.

Data models for the Order Scrub system including:
- Order records from both sources (raw and normalized)
- Scrub report models produced by the reconciliation engine
- API response models
- Audit event models
"""

from models.orders import (
    OrderSource,
    RawOrderRow,
    OrderRecord,
)

from models.scrub import (
    Severity,
    MatchType,
    Discrepancy,
    MatchedPair,
    ScrubStatistics,
    ScrubReport,
    worst_severity,
)

from models.api_responses import (
    UploadResponse,
    ReportSummary,
    PagedReportResponse,
)

from models.audit import (
    AuditEvent,
    AuditSeverity,
)

__all__ = [
    # Order models
    "OrderSource",
    "RawOrderRow",
    "OrderRecord",

    # Report models
    "Severity",
    "MatchType",
    "Discrepancy",
    "MatchedPair",
    "ScrubStatistics",
    "ScrubReport",
    "worst_severity",

    # API Response models
    "UploadResponse",
    "ReportSummary",
    "PagedReportResponse",

    # Audit
    "AuditEvent",
    "AuditSeverity",
]
