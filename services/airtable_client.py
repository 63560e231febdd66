"""
Airtable Client Service
=======================
Optional audit trail for purchases, kept in Airtable.

Key Functionality:
- Records every purchased number (billable) in the Purchased Numbers table.
- Records ambiguous purchase outcomes that still need reconciliation.
- Mirrors error/success log lines into the Audit Log table.

The trail is only built when both AIRTABLE_API_KEY and AIRTABLE_BASE_ID are
configured.
"""

from datetime import datetime, timezone
from typing import Optional

from pyairtable import Api

from config import Settings


class AuditTrail:
    def __init__(self, api_key: str, base_id: str, purchases_table: str, audit_table: str):
        api = Api(api_key)
        base = api.base(base_id)

        # Table References
        self.purchases_table = base.table(purchases_table)
        self.audit_table = base.table(audit_table)

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["AuditTrail"]:
        if not (settings.AIRTABLE_API_KEY and settings.AIRTABLE_BASE_ID):
            return None
        return cls(
            settings.AIRTABLE_API_KEY,
            settings.AIRTABLE_BASE_ID,
            settings.AIRTABLE_PURCHASES_TABLE,
            settings.AIRTABLE_AUDIT_LOG_TABLE,
        )

    def log_event(self, event_type: str, description: str, details: str = ""):
        """
        Logs a system event to the Audit Log table.

        Args:
            event_type (str): Category of the event (e.g., NUMBER_PURCHASED).
            description (str): Human-readable description of what happened.
            details (str): Additional technical details.
        """
        self.audit_table.create({
            "Event": event_type,
            "Description": description,
            "Details": details,
            "Timestamp": _now(),
        })

    def record_purchase(self, phone_number: str, reference: str, mode: str):
        """
        Adds a purchased number to the Purchased Numbers table.

        Args:
            phone_number (str): The number Twilio assigned (E.164).
            reference (str): The number the caller asked for or searched near.
            mode (str): "exact" or "near".
        """
        self.purchases_table.create({
            "Phone Number": phone_number,
            "Reference Number": reference,
            "Mode": mode,
            "Status": "Purchased",
            "Timestamp": _now(),
        })
        self.log_event("NUMBER_PURCHASED", f"Purchased {phone_number}", f"mode={mode}, reference={reference}")

    def record_ambiguous(self, selector: str, reason: str):
        """Flags a purchase whose outcome is unknown; it must be reconciled before retrying."""
        self.purchases_table.create({
            "Phone Number": selector,
            "Status": "Needs Reconciliation",
            "Details": reason,
            "Timestamp": _now(),
        })
        self.log_event("PURCHASE_AMBIGUOUS", f"Purchase outcome unknown for {selector}", reason)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
