"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

TRANSITION_LOGGER = "lending_engine.transitions"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping UTC time, level and the owning service"""

    def __init__(self, *args, service_name: str = "lending-engine", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "lending-engine") -> None:
    """Send every record to stdout as one JSON object per line"""
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(name)s %(message)s", service_name=service_name))
    root.addHandler(handler)


def log_transition(
    loan_id: str,
    from_status: str,
    to_status: Optional[str],
    outcome: str,
    reason: Optional[str] = None,
) -> None:
    """Log a state machine transition attempt for the audit trail"""
    level = logging.INFO if outcome == "applied" else logging.WARNING
    logging.getLogger(TRANSITION_LOGGER).log(
        level,
        "Loan transition %s",
        outcome,
        extra={
            "loan_id": loan_id,
            "step": "transition",
            "from_status": from_status,
            "to_status": to_status,
            "outcome": outcome,
            "reason": reason,
        },
    )


def log_bulk_outcome(action: str, succeeded: int, failed: int) -> None:
    """Log the per-batch summary of a bulk operation"""
    logging.getLogger(TRANSITION_LOGGER).info(
        "Bulk %s completed",
        action,
        extra={
            "step": f"bulk_{action}",
            "succeeded": succeeded,
            "failed": failed,
        },
    )
