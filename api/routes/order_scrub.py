"""Order scrub endpoints.

Implements:
- POST   /api/orderscrub/upload             - Parse, reconcile and store two workbooks
- GET    /api/orderscrub/report/{report_id} - Full report
- GET    /api/orderscrub/reports            - Paginated report list
- GET    /api/orderscrub/export/{report_id} - Report as .xlsx download
- DELETE /api/orderscrub/report/{report_id} - Delete a report (Admin)

All endpoints require a bearer token.
"""

import math
import time
from collections import Counter
from pathlib import PurePath
from typing import Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile, status

from api.dependencies import get_current_user, require_admin
from core import config
from core.audit.events import AuditEventType, get_audit_logger
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import (
    record_processing_time,
    record_scrub_completed,
    record_scrub_failed,
    record_scrub_started,
)
from core.security.tokens import TokenClaims
from export.excel_export import content_disposition, export_file_name, export_report_to_excel
from models.api_responses import PagedReportResponse, UploadResponse
from models.scrub import ScrubReport
from parsing.excel_parser import ParseError, parse_customer_file, parse_jobboss_file
from reconciliation.engine import scrub_orders
from reconciliation.errors import NormalizationError
from storage import db


router = APIRouter(prefix="/orderscrub", dependencies=[Depends(get_current_user)])

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _read_upload(upload: Optional[UploadFile], label: str) -> Tuple[str, bytes]:
    """Validate one uploaded file and return (file name, content).
    
    Raises:
        HTTPException: 400 if the file is missing, too large or of the wrong type
    """
    if upload is None or not upload.filename:
        raise HTTPException(status_code=400, detail={"error": f"{label} file is required"})
    
    extension = PurePath(upload.filename).suffix.lower()
    if extension not in config.ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail={"error": f"{label} file must be an Excel file ({', '.join(config.ALLOWED_EXTENSIONS)})"},
        )
    
    content = upload.file.read(config.MAX_UPLOAD_BYTES + 1)
    if not content:
        raise HTTPException(status_code=400, detail={"error": f"{label} file is empty"})
    if len(content) > config.MAX_UPLOAD_BYTES:
        limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise HTTPException(status_code=400, detail={"error": f"{label} file exceeds the {limit_mb}MB limit"})
    
    return upload.filename, content


def _load_report(report_id: UUID) -> ScrubReport:
    report = db.get_report(str(report_id))
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


# =============================================================================
# Upload
# =============================================================================

@router.post("/upload", response_model=UploadResponse)
def upload_files(
    request: Request,
    jobboss_file: Optional[UploadFile] = File(None, alias="jobBossFile"),
    customer_file: Optional[UploadFile] = File(None, alias="customerFile"),
    customer_name: Optional[str] = Form(None, alias="customerName"),
    user: TokenClaims = Depends(get_current_user),
) -> UploadResponse:
    """Upload and reconcile a JobBoss export against a customer order list."""
    jobboss_name, jobboss_content = _read_upload(jobboss_file, "JobBoss")
    customer_name_file, customer_content = _read_upload(customer_file, "Customer")
    
    audit = get_audit_logger()
    ip_address = _client_ip(request)
    started = time.perf_counter()
    record_scrub_started()
    
    with with_correlation(
        requested_by=user.username,
        jobboss_file=jobboss_name,
        customer_file=customer_name_file,
    ):
        logger.info("Processing order scrub")
        audit.log_info(
            AuditEventType.SCRUB_STARTED,
            "Order scrub started",
            ip_address=ip_address,
            actor=user.username,
            details={"jobboss_file": jobboss_name, "customer_file": customer_name_file},
        )
        
        try:
            with with_correlation(stage="parse"):
                stage_start = time.perf_counter()
                jobboss_rows = parse_jobboss_file(jobboss_content, jobboss_name)
                customer_rows = parse_customer_file(customer_content, customer_name_file)
                record_processing_time("parse", (time.perf_counter() - stage_start) * 1000)
            
            with with_correlation(stage="reconcile"):
                stage_start = time.perf_counter()
                report = scrub_orders(
                    jobboss_rows,
                    customer_rows,
                    jobboss_file_name=jobboss_name,
                    customer_file_name=customer_name_file,
                    requested_by=user.username,
                    customer_name=customer_name.strip() if customer_name else None,
                )
                record_processing_time("reconcile", (time.perf_counter() - stage_start) * 1000)
            
            with with_correlation(stage="persist", report_id=str(report.report_id)):
                stage_start = time.perf_counter()
                db.save_report(report)
                record_processing_time("persist", (time.perf_counter() - stage_start) * 1000)
        
        except ParseError as e:
            record_scrub_failed("parse")
            logger.warning("Workbook parse failed", extra_fields=e.to_dict())
            audit.log_warning(
                AuditEventType.SCRUB_FAILED,
                "Order scrub failed: workbook could not be parsed",
                ip_address=ip_address,
                actor=user.username,
                details=e.to_dict(),
            )
            raise HTTPException(status_code=400, detail=e.to_dict()) from e
        except NormalizationError as e:
            record_scrub_failed("normalization")
            logger.warning(
                "Order rows failed normalization",
                extra_fields={"error_count": len(e.errors)},
            )
            audit.log_warning(
                AuditEventType.SCRUB_FAILED,
                "Order scrub failed: rows could not be normalized",
                ip_address=ip_address,
                actor=user.username,
                details=e.to_dict(),
            )
            raise HTTPException(status_code=400, detail=e.to_dict()) from e
        except Exception as e:
            record_scrub_failed("unexpected")
            audit.log_error(
                AuditEventType.SCRUB_FAILED,
                "Order scrub failed unexpectedly",
                ip_address=ip_address,
                actor=user.username,
                details={"error": type(e).__name__},
            )
            raise
        
        duration_ms = (time.perf_counter() - started) * 1000
        record_scrub_completed(
            dict(Counter(m.match_type.value for m in report.matches)),
            duration_ms=duration_ms,
        )
        audit.log_info(
            AuditEventType.SCRUB_COMPLETED,
            "Order scrub completed",
            report_id=str(report.report_id),
            ip_address=ip_address,
            actor=user.username,
            details=report.statistics.model_dump(),
        )
        logger.info(
            "Order scrub completed",
            extra_fields={
                "report_id": str(report.report_id),
                "duration_ms": round(duration_ms, 2),
                **report.statistics.model_dump(),
            },
        )
    
    return UploadResponse(report_id=report.report_id, summary=report.statistics)


# =============================================================================
# Reports
# =============================================================================

@router.get("/report/{report_id}", response_model=ScrubReport)
def get_report(
    report_id: UUID,
    request: Request,
    user: TokenClaims = Depends(get_current_user),
) -> ScrubReport:
    """Get a full scrub report with every matched pair."""
    report = _load_report(report_id)
    get_audit_logger().log_info(
        AuditEventType.REPORT_VIEWED,
        "Report viewed",
        report_id=str(report_id),
        ip_address=_client_ip(request),
        actor=user.username,
    )
    return report


@router.get("/reports", response_model=PagedReportResponse)
def list_reports(
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    customer_name: Optional[str] = Query(None, alias="customerName"),
) -> PagedReportResponse:
    """List reports newest first, optionally filtered by customer name."""
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    
    summaries, total = db.list_reports(page, page_size, customer_name or None)
    return PagedReportResponse(
        reports=summaries,
        total_count=total,
        total_pages=math.ceil(total / page_size),
        current_page=page,
        page_size=page_size,
    )


@router.get("/export/{report_id}")
def export_report(
    report_id: UUID,
    request: Request,
    user: TokenClaims = Depends(get_current_user),
) -> Response:
    """Download a report as an Excel workbook."""
    report = _load_report(report_id)
    
    with with_correlation(report_id=str(report_id), stage="export"):
        stage_start = time.perf_counter()
        content = export_report_to_excel(report)
        record_processing_time("export", (time.perf_counter() - stage_start) * 1000)
    
    get_audit_logger().log_info(
        AuditEventType.REPORT_EXPORTED,
        "Report exported",
        report_id=str(report_id),
        ip_address=_client_ip(request),
        actor=user.username,
    )
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": content_disposition(export_file_name(report))},
    )


@router.delete("/report/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report(
    report_id: UUID,
    request: Request,
    user: TokenClaims = Depends(require_admin),
) -> Response:
    """Delete a report (Admin only)."""
    report = _load_report(report_id)
    if not db.delete_report(str(report_id)):
        raise HTTPException(status_code=404, detail="Report not found")
    
    get_audit_logger().log_info(
        AuditEventType.REPORT_DELETED,
        "Report deleted",
        report_id=str(report_id),
        ip_address=_client_ip(request),
        actor=user.username,
        details={
            "customer_name": report.customer_name,
            "created_date": report.created_date.isoformat(),
            "total_orders": report.statistics.total,
        },
    )
    logger.info(
        "Report deleted",
        extra_fields={"report_id": str(report_id), "deleted_by": user.username},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
