"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- report_id: Links logs to a specific scrub report
- requested_by: The user who asked for the scrub
- jobboss_file / customer_file: The uploaded source files
- workflow_id: Links logs to a Temporal workflow execution

Usage:
    from core.observability.logging import get_logger, with_correlation
    
    logger = get_logger(__name__)
    
    with with_correlation(report_id="3f2a...", requested_by="jdoe"):
        logger.info("Reconciling orders")  # Automatically includes correlation IDs
"""

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any
from contextlib import contextmanager


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one scrub run."""
    report_id: Optional[str] = None
    requested_by: Optional[str] = None
    jobboss_file: Optional[str] = None
    customer_file: Optional[str] = None
    workflow_id: Optional[str] = None
    activity_name: Optional[str] = None
    stage: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}
    
    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


# Context variable for async/thread-safe correlation
_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation IDs for logging.
    
    Usage:
        with with_correlation(report_id="3f2a...", stage="parse"):
            logger.info("Parsing")  # Will include report_id and stage
    """
    old_ctx = get_correlation_context()
    new_ctx = old_ctx.merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.
    
    Output format:
    {
        "timestamp": "2024-01-09T12:00:00.000Z",
        "level": "INFO",
        "logger": "api.routes.order_scrub",
        "message": "Order scrub completed",
        "report_id": "3f2a...",
        "total": 120
    }
    """
    
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        
        log_data.update(get_correlation_context().to_dict())
        
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)
        
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter that includes key correlation IDs.
    
    Output format:
    2024-01-09 12:00:00 [INFO ] api.routes.order_scrub [3f2a1b2c/jdoe]: Order scrub completed
    """
    
    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()
        
        correlation_parts = []
        if ctx.report_id:
            correlation_parts.append(ctx.report_id[:8])
        if ctx.workflow_id:
            correlation_parts.append(ctx.workflow_id[:12])
        if ctx.requested_by:
            correlation_parts.append(ctx.requested_by)
        
        correlation = "/".join(correlation_parts) if correlation_parts else "-"
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        
        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"
        
        extra = getattr(record, "extra_fields", None)
        if extra:
            msg += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        
        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that automatically includes correlation context.
    
    Also supports adding extra fields to individual log calls.
    """
    
    def __init__(self, logger: logging.Logger):
        self._logger = logger
    
    def _log(self, level: int, msg: str, *args, **kwargs):
        extra_fields = kwargs.pop("extra_fields", {})
        exc_info = kwargs.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()
        
        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info or None,
        )
        record.extra_fields = extra_fields
        
        self._logger.handle(record)
    
    def debug(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, *args, **kwargs)
    
    def info(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, *args, **kwargs)
    
    def warning(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, *args, **kwargs)
    
    def error(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, *args, **kwargs)
    
    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)
    
    def setLevel(self, level):
        self._logger.setLevel(level)
    
    def isEnabledFor(self, level):
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False


def configure_logging(
    level: Optional[int] = None,
    json_format: Optional[bool] = None,
    include_temporal: bool = True,
):
    """
    Configure logging for the application.
    
    Args:
        level: Logging level (defaults to LOG_LEVEL from config)
        json_format: If True, use JSON format; otherwise human-readable
            (defaults to LOG_JSON from config)
        include_temporal: If True, also configure Temporal SDK loggers
    """
    global _configured
    
    if _configured:
        return
    
    from core import config
    
    if level is None:
        level = logging.getLevelName(config.LOG_LEVEL)
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = config.LOG_JSON
    
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())
    
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    
    for logger_name in ["activities", "workflows", "api", "core", "parsing", "export", "storage"]:
        logging.getLogger(logger_name).setLevel(level)
    
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    
    if include_temporal:
        logging.getLogger("temporalio").setLevel(logging.INFO)
    
    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.
    
    Args:
        name: Logger name (typically __name__)
        
    Returns:
        CorrelatedLogger instance
    """
    if name not in _loggers:
        if not _configured:
            configure_logging()
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    
    return _loggers[name]
