"""
Transaction Recorder.

Writes ledger entries and their outbox events into the caller's session so
they commit or roll back together with the balance mutation.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from paygate.app.core.exceptions import BusinessRuleError
from paygate.app.domain.billing.balance_mutator import BalanceSnapshot
from paygate.app.domain.billing.charge_calculator import ChargeBreakdown
from paygate.app.domain.billing.money import quantize_money, ZERO
from paygate.app.models.billing_enums import LedgerTransactionType, LedgerStatus
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.models.report_outbox import ReportOutbox

logger = logging.getLogger("paygate.ledger")

EVENT_ENTRY_CREATED = "ledger_entry.created"
EVENT_STATUS_CHANGED = "ledger_entry.status_changed"

_SERIALIZED_FIELDS = (
    "id", "user_id", "transaction_type", "reference_id", "status",
    "amount", "admin_charge", "agent_charge", "platform_fee", "gst_amount", "total_deduction",
    "balance_before", "balance_after", "wallet_balance_before", "wallet_balance_after",
    "utr", "remark", "beneficiary", "created_by", "created_at",
)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def serialize_entry(entry: LedgerEntry) -> Dict[str, Any]:
    """JSON-safe payload describing a ledger entry, as stored on the outbox."""
    return {field: _json_safe(getattr(entry, field)) for field in _SERIALIZED_FIELDS}


class TransactionRecorder:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        user_id: int,
        transaction_type: LedgerTransactionType,
        amount: Decimal,
        snapshot: BalanceSnapshot,
        breakdown: Optional[ChargeBreakdown] = None,
        status: LedgerStatus = LedgerStatus.PENDING,
        reference_id: Optional[str] = None,
        remark: Optional[str] = None,
        beneficiary: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        actor_id: Optional[int] = None,
    ) -> LedgerEntry:
        """
        Add a ledger entry and its outbox event to the session.

        Nothing is committed here. An IntegrityError on a reused reference_id
        surfaces from the flush.
        """
        now = datetime.now(timezone.utc)
        entry = LedgerEntry(
            user_id=user_id,
            transaction_type=transaction_type,
            reference_id=reference_id,
            amount=quantize_money(amount),
            admin_charge=breakdown.admin_charge if breakdown else ZERO,
            agent_charge=breakdown.agent_charge if breakdown else ZERO,
            platform_fee=breakdown.platform_fee if breakdown else ZERO,
            gst_amount=breakdown.gst_amount if breakdown else ZERO,
            total_deduction=breakdown.total_deduction if breakdown else quantize_money(amount),
            balance_before=snapshot.settlement_before,
            balance_after=snapshot.settlement_after,
            wallet_balance_before=snapshot.wallet_before,
            wallet_balance_after=snapshot.wallet_after,
            status=status,
            remark=remark,
            beneficiary=beneficiary,
            meta_data=metadata,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(entry)
        await self.db.flush()

        self._emit(EVENT_ENTRY_CREATED, entry)

        logger.info(
            "Ledger entry recorded",
            extra={
                "ledger_entry_id": entry.id,
                "user_id": user_id,
                "transaction_type": transaction_type.value,
                "reference_id": reference_id,
                "amount": str(entry.amount),
                "status": status.value,
            },
        )
        return entry

    async def mark_status(
        self,
        entry: LedgerEntry,
        new_status: LedgerStatus,
        utr: Optional[str] = None,
        gateway_response: Optional[Dict[str, Any]] = None,
        actor_id: Optional[int] = None,
    ) -> LedgerEntry:
        """
        Move a PENDING entry to COMPLETED or FAILED.

        Raises:
            BusinessRuleError: For any other transition.
        """
        if not entry.can_transition_to(new_status):
            raise BusinessRuleError(
                f"Cannot change transaction status from {entry.status.value} to {new_status.value}",
                error_code="ERR_TXN_002",
                details={"ledger_entry_id": entry.id},
            )

        previous = entry.status
        entry.status = new_status
        if utr is not None:
            entry.utr = utr
        if gateway_response is not None:
            entry.gateway_response = gateway_response
        if actor_id is not None:
            entry.updated_by = actor_id
        entry.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        self._emit(EVENT_STATUS_CHANGED, entry)

        logger.info(
            "Ledger status changed",
            extra={
                "ledger_entry_id": entry.id,
                "reference_id": entry.reference_id,
                "from_status": previous.value,
                "to_status": new_status.value,
            },
        )
        return entry

    def _emit(self, event_type: str, entry: LedgerEntry) -> ReportOutbox:
        event = ReportOutbox(
            event_type=event_type,
            aggregate_id=entry.id,
            payload=serialize_entry(entry),
            published=False,
            attempts=0,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(event)
        return event
