"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from fintara_gateway.config import settings


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


def log_loan_created(
    request_id: Optional[str],
    loan_request_id: str,
    customer_id: str,
    marketing_id: str,
    branch_id: str,
    amount: str,
    tenor: int,
) -> None:
    """Log structured loan request creation for analysis"""
    logging.info(
        "Loan request created",
        extra={
            "request_id": request_id,
            "loan_request_id": loan_request_id,
            "customer_id": customer_id,
            "step": "loan_request_created",
            "assigned_marketing_id": marketing_id,
            "branch_id": branch_id,
            "amount": amount,
            "tenor": tenor,
        },
    )


def log_transition(
    request_id: Optional[str],
    loan_request_id: str,
    actor_id: str,
    from_status: str,
    to_status: str,
    duration_ms: float,
) -> None:
    """Log structured status transition outcome"""
    logging.info(
        "Loan request transitioned",
        extra={
            "request_id": request_id,
            "loan_request_id": loan_request_id,
            "actor_id": actor_id,
            "step": "transition_complete",
            "from_status": from_status,
            "to_status": to_status,
            "duration_ms": duration_ms,
        },
    )
