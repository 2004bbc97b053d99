"""Audit event logging and persistence.

Provides structured audit logging for scrub runs and report access:
uploads, reconciliations, views, exports and deletions. Supports multiple
persistence backends.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.observability.logging import get_logger
from models.audit import AuditEvent, AuditSeverity

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Standard audit event types."""
    # Scrub lifecycle
    SCRUB_STARTED = "SCRUB_STARTED"
    SCRUB_COMPLETED = "SCRUB_COMPLETED"
    SCRUB_FAILED = "SCRUB_FAILED"
    
    # Report access
    REPORT_VIEWED = "REPORT_VIEWED"
    REPORT_EXPORTED = "REPORT_EXPORTED"
    REPORT_DELETED = "REPORT_DELETED"


def create_audit_event(
    event_type: AuditEventType,
    message: str,
    severity: AuditSeverity = AuditSeverity.INFO,
    report_id: Optional[str] = None,
    workflow_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    actor: str = "system",
) -> AuditEvent:
    """Create a new audit event with auto-generated ID and timestamp.
    
    Args:
        event_type: Type of event
        message: Human-readable message
        severity: Event severity level
        report_id: Associated scrub report
        workflow_id: Temporal workflow ID
        ip_address: Client address for API actions
        details: Additional structured details
        actor: Who/what performed the action
        
    Returns:
        Configured AuditEvent ready for logging
    """
    return AuditEvent(
        event_id=str(uuid.uuid4()),
        timestamp=datetime.utcnow(),
        event_type=event_type.value,
        severity=severity,
        report_id=str(report_id) if report_id is not None else None,
        workflow_id=workflow_id,
        ip_address=ip_address,
        message=message,
        details=details or {},
        actor=actor,
    )


class AuditBackend(ABC):
    """Abstract base class for audit persistence backends."""
    
    @abstractmethod
    def log(self, event: AuditEvent) -> None:
        """Persist an audit event."""
        pass
    
    @abstractmethod
    def query(
        self,
        event_type: Optional[str] = None,
        report_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events with filters, newest first."""
        pass


class SQLiteAuditBackend(AuditBackend):
    """Audit backend writing to the audit_log table of the report database."""
    
    def log(self, event: AuditEvent) -> None:
        from storage.db import save_audit_event
        save_audit_event(event)
    
    def query(
        self,
        event_type: Optional[str] = None,
        report_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        from storage.db import list_audit_events
        return list_audit_events(report_id=report_id, event_type=event_type, limit=limit)


class InMemoryAuditBackend(AuditBackend):
    """In-memory audit backend for testing."""
    
    def __init__(self):
        self._events: List[AuditEvent] = []
    
    def log(self, event: AuditEvent) -> None:
        self._events.append(event)
    
    def query(
        self,
        event_type: Optional[str] = None,
        report_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        results = []
        for event in reversed(self._events):
            if event_type and event.event_type != event_type:
                continue
            if report_id and event.report_id != str(report_id):
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results
    
    def clear(self) -> None:
        """Clear all events (for testing)."""
        self._events.clear()


class AuditLogger:
    """Main audit logger that supports multiple backends.
    
    Usage:
        audit = AuditLogger()
        audit.add_backend(SQLiteAuditBackend())
        
        audit.log_info(
            AuditEventType.REPORT_DELETED,
            "Report deleted",
            report_id="3f2a...",
            actor="admin",
        )
    
    A failing backend is logged and skipped so the remaining backends
    still receive the event; audit failures never fail the scrub itself.
    """
    
    def __init__(self):
        self._backends: List[AuditBackend] = []
    
    def add_backend(self, backend: AuditBackend) -> None:
        """Add an audit backend."""
        self._backends.append(backend)
    
    def log(self, event: AuditEvent) -> None:
        """Log event to all backends."""
        for backend in self._backends:
            try:
                backend.log(event)
            except Exception:
                logger.exception(
                    "Audit logging failed",
                    extra_fields={
                        "backend": type(backend).__name__,
                        "event_type": event.event_type,
                        "event_id": event.event_id,
                    },
                )
    
    def log_info(
        self,
        event_type: AuditEventType,
        message: str,
        **kwargs,
    ) -> None:
        """Log an INFO level event."""
        event = create_audit_event(event_type, message, AuditSeverity.INFO, **kwargs)
        self.log(event)
    
    def log_warning(
        self,
        event_type: AuditEventType,
        message: str,
        **kwargs,
    ) -> None:
        """Log a WARN level event."""
        event = create_audit_event(event_type, message, AuditSeverity.WARN, **kwargs)
        self.log(event)
    
    def log_error(
        self,
        event_type: AuditEventType,
        message: str,
        **kwargs,
    ) -> None:
        """Log an ERROR level event."""
        event = create_audit_event(event_type, message, AuditSeverity.ERROR, **kwargs)
        self.log(event)
    
    def query(
        self,
        event_type: Optional[str] = None,
        report_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query events from the first backend."""
        if not self._backends:
            return []
        return self._backends[0].query(event_type, report_id, limit)


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Process-wide audit logger backed by the report database."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
        _audit_logger.add_backend(SQLiteAuditBackend())
    return _audit_logger


def set_audit_logger(audit_logger: Optional[AuditLogger]) -> None:
    """Replace the process-wide audit logger (None restores the default)."""
    global _audit_logger
    _audit_logger = audit_logger
