"""
Audit logging for ledger mutations and processed WhatsApp messages.

Every payment written or deleted and every inbound message handled is
emitted as one JSON line on the "audit" logger, so the trail can be shipped
separately from application logs.

Message bodies are truncated; provider credentials are never logged.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")

MAX_TEXT_LENGTH = 200


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text if len(text) <= MAX_TEXT_LENGTH else text[:MAX_TEXT_LENGTH] + "…"


class AuditLog:
    """Central audit logging for ledger events."""

    @staticmethod
    def log_payment_recorded(
        payment_id: int,
        customer_id: int,
        amount: Any,
        direction: str,
        recorded_by: Optional[str],
        source: str = "whatsapp",  # "whatsapp" | "dashboard"
    ):
        """
        Log a new ledger entry.

        Usage:
            AuditLog.log_payment_recorded(12, 3, 500, "CREDIT", "+911234567890")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "payment.create",
            "source": source,
            "payment_id": payment_id,
            "customer_id": customer_id,
            "amount": str(amount),
            "direction": direction,
            "recorded_by": recorded_by,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_payment_deleted(payment_id: int, customer_id: int, amount: Any, direction: str):
        log_entry = {
            "timestamp": _now(),
            "event_type": "payment.delete",
            "payment_id": payment_id,
            "customer_id": customer_id,
            "amount": str(amount),
            "direction": direction,
        }
        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_customer_created(customer_id: int, name: str, source: str = "whatsapp"):
        log_entry = {
            "timestamp": _now(),
            "event_type": "customer.create",
            "source": source,
            "customer_id": customer_id,
            "name": name,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_message_processed(
        sender: str,
        intent: str,
        state: str,
        text: Optional[str] = None,
        message_id: Optional[str] = None,
        duplicate: bool = False,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log one inbound WhatsApp message and how it was resolved.

        Usage:
            AuditLog.log_message_processed("+9112...", "PAYMENT", "REPLIED", text="500 received from Rahul")
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "message.processed",
            "sender": sender,
            "message_id": message_id,
            "intent": intent,
            "state": state,
            "duplicate": duplicate,
            "text": _truncate(text),
        }
        if changes:
            log_entry["changes"] = changes

        if state == "FAILED":
            audit_logger.warning(json.dumps(log_entry))
        else:
            audit_logger.info(json.dumps(log_entry))
