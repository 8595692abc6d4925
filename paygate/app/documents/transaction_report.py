"""
Transaction Report document.

Read-side copy of a ledger entry kept in MongoDB for reporting.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from beanie import Document, Indexed
from pydantic import Field


class TransactionReport(Document):
    ledger_entry_id: Indexed(int, unique=True)
    user_id: int
    transaction_type: str
    reference_id: Optional[str] = None
    status: str

    amount: Decimal
    admin_charge: Decimal = Decimal("0")
    agent_charge: Decimal = Decimal("0")
    platform_fee: Decimal = Decimal("0")
    gst_amount: Decimal = Decimal("0")
    total_deduction: Decimal = Decimal("0")
    balance_before: Decimal
    balance_after: Decimal
    wallet_balance_before: Optional[Decimal] = None
    wallet_balance_after: Optional[Decimal] = None

    utr: Optional[str] = None
    remark: Optional[str] = None
    beneficiary: Optional[dict[str, Any]] = None
    created_by: Optional[int] = None

    ledger_created_at: Optional[datetime] = None
    mirrored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "transaction_reports"
        indexes = [
            [("user_id", 1), ("ledger_created_at", -1)],
            [("reference_id", 1)],
        ]
