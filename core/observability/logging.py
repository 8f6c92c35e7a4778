"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- tenant_id: The connected accounting organisation
- campaign_ref: Links logs to a campaign and its accrual
- invoice_id: Links logs to a specific sales invoice or supplier bill
- event_id: Links logs to a webhook event
- operation: The top-level operation (create_campaign, reconcile_bill, ...)

Usage:
    from core.observability.logging import get_logger, with_correlation
    
    logger = get_logger(__name__)
    
    with with_correlation(campaign_ref="SEPT-PAID-SOCIAL", operation="create_campaign"):
        logger.info("Posting accrual journal")  # Includes correlation IDs
"""

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any, Union
from contextlib import contextmanager


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one request."""
    tenant_id: Optional[str] = None
    campaign_ref: Optional[str] = None
    invoice_id: Optional[str] = None
    event_id: Optional[str] = None
    operation: Optional[str] = None
    
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
        with with_correlation(invoice_id="b1c2", event_id="evt-1"):
            logger.info("Recoding bill")  # Will include invoice_id and event_id
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
        "timestamp": "2025-09-01T12:00:00.000Z",
        "level": "INFO",
        "logger": "accruals.reconciler",
        "message": "Bill recoded",
        "campaign_ref": "SEPT-PAID-SOCIAL",
        "invoice_id": "b1c2..."
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
    2025-09-01 12:00:00 [INFO ] accruals.reconciler [SEPT-PAID-SOCIAL/inv:b1c2]: Bill recoded
    """
    
    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()
        
        correlation_parts = []
        if ctx.campaign_ref:
            correlation_parts.append(ctx.campaign_ref)
        if ctx.invoice_id:
            correlation_parts.append(f"inv:{ctx.invoice_id[:12]}")
        if ctx.event_id:
            correlation_parts.append(f"evt:{ctx.event_id[:12]}")
        
        correlation = "/".join(correlation_parts) if correlation_parts else "-"
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        
        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"
        
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        
        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that carries per-call extra fields.
    
    Correlation context is added by the formatters.
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
            exc_info,
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
    level: Union[int, str] = logging.INFO,
    json_format: bool = False,
):
    """
    Configure logging for the application.
    
    Args:
        level: Logging level
        json_format: If True, use JSON format; otherwise human-readable
    """
    global _configured
    
    if _configured:
        return
    
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())
    
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    
    for logger_name in ["accruals", "api", "connectors", "core"]:
        logging.getLogger(logger_name).setLevel(level)
    
    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    
    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.
    
    Args:
        name: Logger name (typically __name__)
    """
    if name not in _loggers:
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    
    return _loggers[name]
