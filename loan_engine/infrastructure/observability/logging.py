"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

from loan_engine.config import settings


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure structured JSON logging.

    The engine never installs handlers on import. The embedding application
    calls this once at startup; without it records go to whatever handlers
    the host has configured. The level defaults to settings.log_level.
    """
    logger = logging.getLogger()
    logger.setLevel(level or settings.log_level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_credit_score(
    borrower_id: Optional[str],
    score: int,
    remarks: str,
    loan_count: int,
    excluded_loans: int,
    duration_ms: float,
) -> None:
    """Log structured credit score outcome for analysis"""
    logging.getLogger("loan_engine.scoring").info(
        "Credit score computed",
        extra={
            "borrower_id": borrower_id,
            "step": "credit_score_complete",
            "score": score,
            "remarks": remarks,
            "loan_count": loan_count,
            "excluded_loans": excluded_loans,
            "duration_ms": duration_ms,
        },
    )


def log_portfolio(
    total_loans: int,
    overdue_count: int,
    defaulted_count: int,
    excluded_loans: int,
    duration_ms: float,
) -> None:
    """Log structured portfolio aggregation outcome"""
    logging.getLogger("loan_engine.portfolio").info(
        "Portfolio aggregated",
        extra={
            "step": "portfolio_complete",
            "total_loans": total_loans,
            "overdue_count": overdue_count,
            "defaulted_count": defaulted_count,
            "excluded_loans": excluded_loans,
            "duration_ms": duration_ms,
        },
    )


def log_computation(operation: str, item_count: int, duration_ms: float, **fields: Any) -> None:
    """Log structured outcome of the simulator, series, borrower list and status listings"""
    logging.getLogger("loan_engine.analytics").info(
        "Computation finished",
        extra={
            "step": f"{operation}_complete",
            "operation": operation,
            "item_count": item_count,
            "duration_ms": duration_ms,
            **fields,
        },
    )
