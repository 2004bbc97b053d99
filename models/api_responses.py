"""
API Response Models for the Order Scrub endpoints.

These Pydantic models define the data contracts between the REST API and
its clients. Full reports are served as ScrubReport directly; the models
here cover the upload acknowledgement and the paginated report list.
"""

from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from models.scrub import ScrubReport, ScrubStatistics


class UploadResponse(BaseModel):
    """Returned after a successful upload and reconciliation."""
    report_id: UUID = Field(..., description="Identifier of the generated report")
    summary: ScrubStatistics = Field(..., description="Summary statistics of the scrub")


class ReportSummary(BaseModel):
    """One row of the report list."""
    report_id: UUID
    created_date: datetime
    customer_name: str = ""
    jobboss_file_name: str = ""
    customer_file_name: str = ""
    created_by: str = ""
    total_orders: int = 0
    perfect_matches: int = 0
    critical_issues: int = 0
    high_issues: int = 0
    medium_issues: int = 0
    missing_from_customer: int = 0
    missing_from_jobboss: int = 0

    @classmethod
    def from_report(cls, report: ScrubReport) -> "ReportSummary":
        stats = report.statistics
        return cls(
            report_id=report.report_id,
            created_date=report.created_date,
            customer_name=report.customer_name,
            jobboss_file_name=report.jobboss_file_name,
            customer_file_name=report.customer_file_name,
            created_by=report.requested_by,
            total_orders=stats.total,
            perfect_matches=stats.perfect,
            critical_issues=stats.critical,
            high_issues=stats.high,
            medium_issues=stats.medium,
            missing_from_customer=stats.missing_from_customer,
            missing_from_jobboss=stats.missing_from_jobboss,
        )


class PagedReportResponse(BaseModel):
    """Paginated list of report summaries."""
    reports: List[ReportSummary] = Field(default_factory=list)
    total_count: int = Field(0, description="Reports matching the query")
    total_pages: int = Field(0, description="Pages at the current page size")
    current_page: int = 1
    page_size: int = 20
