"""
Tests for balance mutation and ledger recording.

Balances only change through BalanceMutator, and every change is paired
with an immutable ledger entry.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from paygate.app.core.exceptions import BusinessRuleError, InsufficientBalanceError
from paygate.app.domain.billing.balance_mutator import BalanceMutator
from paygate.app.domain.billing.transaction_recorder import (
    EVENT_ENTRY_CREATED,
    EVENT_STATUS_CHANGED,
    TransactionRecorder,
)
from paygate.app.models.billing_enums import LedgerStatus, LedgerTransactionType
from paygate.app.models.enums import UserRole
from paygate.app.models.ledger_entry import LedgerEntry, LedgerImmutableError
from paygate.app.models.report_outbox import ReportOutbox
from paygate.app.services.accounts import register_account

from conftest import get_balances, set_balances


@pytest.fixture
async def account(db_session):
    user = await register_account(
        db_session, name="Merchant", username="merchant", email="merchant@test.com",
        password="secret123", role=UserRole.PAYOUT_ONLY,
    )
    await set_balances(db_session, user.id, wallet="300", settlement="100")
    return user


@pytest.mark.asyncio
async def test_debit_rejected_when_balance_too_low(db_session, session_factory, account):
    mutator = BalanceMutator(db_session)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await mutator.debit_settlement(account.id, Decimal("150"))
    await db_session.rollback()

    assert exc_info.value.message == "Insufficient balance"
    balances = await get_balances(session_factory, account.id)
    assert balances.settlement == Decimal("100.00")


@pytest.mark.asyncio
async def test_debit_returns_snapshot(db_session, session_factory, account):
    snapshot = await BalanceMutator(db_session).debit_settlement(account.id, Decimal("60.50"))
    await db_session.commit()

    assert snapshot.settlement_before == Decimal("100.00")
    assert snapshot.settlement_after == Decimal("39.50")
    assert snapshot.wallet_before == snapshot.wallet_after == Decimal("300.00")

    balances = await get_balances(session_factory, account.id)
    assert balances.settlement == Decimal("39.50")


@pytest.mark.asyncio
async def test_debit_of_entire_balance_is_allowed(db_session, account):
    snapshot = await BalanceMutator(db_session).debit_settlement(account.id, Decimal("100"))
    await db_session.commit()

    assert snapshot.settlement_after == Decimal("0.00")


@pytest.mark.asyncio
async def test_transfer_moves_wallet_to_settlement(db_session, session_factory, account):
    snapshot = await BalanceMutator(db_session).transfer_to_settlement(account.id, Decimal("200"))
    await db_session.commit()

    assert snapshot.wallet_after == Decimal("100.00")
    assert snapshot.settlement_after == Decimal("300.00")

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await BalanceMutator(db_session).transfer_to_settlement(account.id, Decimal("100.01"))
    await db_session.rollback()
    assert exc_info.value.message == "Insufficient wallet balance"

    balances = await get_balances(session_factory, account.id)
    assert balances.wallet == Decimal("100.00")
    assert balances.settlement == Decimal("300.00")


@pytest.mark.asyncio
async def test_zero_amount_is_rejected(db_session, account):
    with pytest.raises(BusinessRuleError) as exc_info:
        await BalanceMutator(db_session).credit_wallet(account.id, Decimal("0"))

    assert exc_info.value.error_code == "ERR_AMOUNT_001"


@pytest.mark.asyncio
async def test_recorder_writes_snapshot_and_outbox_event(db_session, account):
    snapshot = await BalanceMutator(db_session).debit_settlement(account.id, Decimal("40"))
    entry = await TransactionRecorder(db_session).record(
        user_id=account.id,
        transaction_type=LedgerTransactionType.PAYOUT,
        amount=Decimal("40"),
        snapshot=snapshot,
        reference_id="REF000000001",
    )
    await db_session.commit()

    assert entry.balance_before == Decimal("100.00")
    assert entry.balance_after == Decimal("60.00")
    assert entry.status == LedgerStatus.PENDING

    events = (await db_session.execute(select(ReportOutbox))).scalars().all()
    assert [event.event_type for event in events] == [EVENT_ENTRY_CREATED]
    assert events[0].aggregate_id == entry.id
    assert events[0].payload["reference_id"] == "REF000000001"
    assert events[0].payload["amount"] == "40.00"


@pytest.fixture
async def pending_entry(db_session, account):
    snapshot = await BalanceMutator(db_session).debit_settlement(account.id, Decimal("10"))
    entry = await TransactionRecorder(db_session).record(
        user_id=account.id,
        transaction_type=LedgerTransactionType.PAYOUT,
        amount=Decimal("10"),
        snapshot=snapshot,
        reference_id="REF000000002",
    )
    await db_session.commit()
    return entry


@pytest.mark.asyncio
async def test_ledger_amount_cannot_be_rewritten(db_session, pending_entry):
    pending_entry.amount = Decimal("1.00")

    with pytest.raises(LedgerImmutableError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_ledger_entry_cannot_be_deleted(db_session, pending_entry):
    await db_session.delete(pending_entry)

    with pytest.raises(LedgerImmutableError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_status_moves_forward_only(db_session, pending_entry):
    recorder = TransactionRecorder(db_session)
    entry_id = pending_entry.id

    await recorder.mark_status(pending_entry, LedgerStatus.COMPLETED, utr="UTR123")
    await db_session.commit()

    with pytest.raises(BusinessRuleError) as exc_info:
        await recorder.mark_status(pending_entry, LedgerStatus.FAILED)
    assert exc_info.value.error_code == "ERR_TXN_002"

    # Direct assignment is stopped at flush time as well
    pending_entry.status = LedgerStatus.PENDING
    with pytest.raises(LedgerImmutableError):
        await db_session.flush()
    await db_session.rollback()

    result = await db_session.execute(
        select(ReportOutbox.event_type).order_by(ReportOutbox.id)
    )
    assert result.scalars().all() == [EVENT_ENTRY_CREATED, EVENT_STATUS_CHANGED]

    stored = (await db_session.execute(
        select(LedgerEntry).where(LedgerEntry.id == entry_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert stored.status == LedgerStatus.COMPLETED
    assert stored.utr == "UTR123"
