"""
Ledger Entry database model.

Immutable record of every balance movement.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, Text, JSON, event, inspect
from sqlalchemy.sql import func
from paygate.app.db.session import Base
from paygate.app.models.billing_enums import LedgerTransactionType, LedgerStatus


# Columns that may change after the entry is written
MUTABLE_FIELDS = frozenset({"status", "utr", "gateway_response", "updated_by", "updated_at"})

ALLOWED_TRANSITIONS = {
    LedgerStatus.PENDING: {LedgerStatus.COMPLETED, LedgerStatus.FAILED},
    LedgerStatus.COMPLETED: set(),
    LedgerStatus.FAILED: set(),
}


class LedgerImmutableError(Exception):
    """Raised when code tries to rewrite or delete a ledger entry."""


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Stores the charge breakdown and the balance snapshot taken under the row
    lock. `balance_before`/`balance_after` track the settlement balance, the
    wallet pair tracks the wallet. NO edits outside the status group and NO
    deletions allowed.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    transaction_type = Column(Enum(LedgerTransactionType), nullable=False, index=True)
    reference_id = Column(String(64), unique=True, nullable=True, index=True)

    # Financials
    amount = Column(Numeric(15, 2), nullable=False)
    admin_charge = Column(Numeric(15, 2), nullable=False, default=0)
    agent_charge = Column(Numeric(15, 2), nullable=False, default=0)
    platform_fee = Column(Numeric(15, 2), nullable=False, default=0)
    gst_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_deduction = Column(Numeric(15, 2), nullable=False, default=0)

    # Balance snapshot
    balance_before = Column(Numeric(15, 2), nullable=False)
    balance_after = Column(Numeric(15, 2), nullable=False)
    wallet_balance_before = Column(Numeric(15, 2), nullable=True)
    wallet_balance_after = Column(Numeric(15, 2), nullable=True)

    # Status group
    status = Column(Enum(LedgerStatus), nullable=False, default=LedgerStatus.PENDING, index=True)
    utr = Column(String(100), nullable=True)
    gateway_response = Column(JSON, nullable=True)

    remark = Column(Text, nullable=True)
    meta_data = Column("metadata", JSON, nullable=True)
    beneficiary = Column(JSON, nullable=True)

    # Audit
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def can_transition_to(self, new_status: LedgerStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS.get(self.status, set())

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, type='{self.transaction_type.value}', "
            f"reference_id={self.reference_id}, status='{self.status.value}')>"
        )


@event.listens_for(LedgerEntry, "before_update")
def _guard_ledger_update(mapper, connection, target):
    state = inspect(target)
    for attr in state.attrs:
        if attr.key in MUTABLE_FIELDS:
            continue
        if attr.history.has_changes():
            raise LedgerImmutableError(
                f"Ledger entry {target.id} is immutable; cannot change '{attr.key}'"
            )

    status_history = state.attrs.status.history
    if status_history.deleted and status_history.added:
        old_status = status_history.deleted[0]
        new_status = status_history.added[0]
        if new_status != old_status and new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
            raise LedgerImmutableError(
                f"Illegal ledger status transition {old_status.value} -> {new_status.value}"
            )


@event.listens_for(LedgerEntry, "before_delete")
def _guard_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} cannot be deleted")
