"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from quota_gateway.utils.date_utils import utc_now

logger = logging.getLogger("quota_gateway")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "quota-gateway"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_quota_debit(
    merchant_id: str,
    credits: int,
    success: bool,
    remaining: int | None,
    alert: str | None = None,
) -> None:
    """Log structured quota debit outcome"""
    logger.info(
        "Quota debit processed",
        extra={
            "merchant_id": merchant_id,
            "step": "quota_debit",
            "credits": credits,
            "debit_outcome": "debited" if success else "rejected",
            "remaining_quota": remaining,
            "quota_alert": alert,
        },
    )


def log_cod_decision(
    buyer_id: str,
    merchant_id: str,
    total_amount: int,
    eligible: bool,
    reason: str | None,
) -> None:
    logger.info(
        "COD eligibility evaluated",
        extra={
            "buyer_id": buyer_id,
            "merchant_id": merchant_id,
            "step": "cod_eligibility",
            "total_amount": total_amount,
            "cod_outcome": "eligible" if eligible else "ineligible",
            "reason": reason,
        },
    )


def log_trust_update(buyer_id: str, success: bool, trust_score: int, cod_enabled: bool) -> None:
    level = logging.INFO if cod_enabled else logging.WARNING
    logger.log(
        level,
        "Buyer trust score updated",
        extra={
            "buyer_id": buyer_id,
            "step": "trust_update",
            "cod_result": "success" if success else "failure",
            "trust_score": trust_score,
            "cod_enabled": cod_enabled,
        },
    )
