"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from billing_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep SQL echo and HTTP client chatter out of the billing log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_payment(
    request_id: str,
    financing_id: int,
    quota_number: int,
    status: str,
    amount: str,
    duration_ms: float,
) -> None:
    """Log structured payment outcome for reconciliation audits"""
    logging.info(
        "Payment request completed",
        extra={
            "request_id": request_id,
            "financing_id": financing_id,
            "step": "payment_registered",
            "quota_number": quota_number,
            "payment_status": status,
            "amount": amount,
            "duration_ms": duration_ms,
        },
    )


def log_cycle_run(
    request_id: str,
    phase: str,
    reference_date: date,
    financings: int,
    records: int,
    total_penalty: Optional[str] = None,
) -> None:
    """Log one billing-cycle phase run across financings"""
    logging.info(
        "Billing cycle run completed",
        extra={
            "request_id": request_id,
            "step": f"cycle_{phase}",
            "reference_date": reference_date.isoformat(),
            "financings": financings,
            "records": records,
            "total_penalty": total_penalty,
        },
    )
