"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

_service_name = "loan-origination"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = _service_name


def setup_logging(level: str = "INFO", service_name: str = "loan-origination") -> None:
    """Configure structured JSON logging"""
    global _service_name
    _service_name = service_name

    logger = logging.getLogger()
    logger.setLevel(level.upper())

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_request_failure(request_id: str, path: str, status: int, error: str) -> None:
    """Log a request that ended in an error response"""
    logging.getLogger("loan_origination.api").warning(
        "Request failed",
        extra={
            "request_id": request_id,
            "path": path,
            "status": status,
            "error": error,
        },
    )
