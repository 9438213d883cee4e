"""
Audit logging for ledger writes and access decisions.

Every transaction create/update is logged with who did it, which store and
which invoice, so retroactive edits can be traced.
"""
import logging
import json
from datetime import datetime
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


class AuditLog:
    """Central audit logging for ledger events."""

    @staticmethod
    def log_transaction(
        action: str,  # "create", "update"
        invoice_number: str,
        user_id: Optional[int],
        store_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log a ledger write.

        Usage:
            AuditLog.log_transaction("create", "VP-250101-1234", 7, store_id=2,
                                     changes={"total_amount": "130000.00"})
        """
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "event_type": f"transaction.{action}",
            "invoice_number": invoice_number,
            "user_id": user_id,
        }
        if store_id is not None:
            log_entry["store_id"] = store_id
        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(chat_id: int, reason: str = ""):
        """Log a rejected chat identity or a forbidden action."""
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "event_type": "access.denied",
            "chat_id": chat_id,
        }
        if reason:
            log_entry["reason"] = reason

        audit_logger.warning(json.dumps(log_entry))
