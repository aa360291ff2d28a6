"""
Logging Configuration

Structured logging setup with JSON output for production.

PRODUCTION NOTE: Stripe and Mailgun payloads can carry PII.
Only log identifiers, never full objects.
"""
import logging
import sys
from typing import Any, Dict, Optional
import json
from datetime import datetime


# Extra fields lifted from LogRecord into the JSON document
CONTEXT_FIELDS = ("tenant_id", "user_id", "academy_id", "request_id", "event_id", "service")


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Makes logs machine-readable for log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if getattr(record, "security_event", False):
            log_data["security_event"] = True
            log_data["event_type"] = getattr(record, "event_type", None)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for structured logging

    NOTE: Call this once at application startup.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

    root_logger.addHandler(handler)

    # Reduce noise from chatty libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


# IMPORTANT: Security events should be monitored and alerted on
def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Log security-related events.

    Event types:
    - failed_login: Failed authentication attempt
    - login_disabled: Profile with can_login=False tried to use the API
    - tenant_mismatch: Attempted cross-tenant access
    - rate_limit_exceeded: Rate limit hit
    - webhook_signature_failed: Stripe webhook with a bad signature
    - cron_unauthorized: Scheduled job endpoint called without the secret
    """
    log_data = {
        "security_event": True,
        "event_type": event_type,
        **details
    }
    logger.warning(f"SECURITY EVENT: {event_type}", extra=log_data)


def log_external_service(
    service: str,
    operation: str,
    logger: logging.Logger,
    success: bool = True,
    error: Optional[str] = None,
    **details: Any
) -> None:
    """Log the outcome of a call to Stripe, Mailgun or another provider."""
    extra = {"service": service, "operation": operation, **details}
    if success:
        logger.info(f"{service}.{operation} ok", extra=extra)
    else:
        logger.error(f"{service}.{operation} failed: {error}", extra=extra)
