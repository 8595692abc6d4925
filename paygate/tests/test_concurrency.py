"""
Concurrency tests for balance mutation.

Runs against a file-backed SQLite database where every transaction starts
with BEGIN IMMEDIATE, so writers serialize the way row locks serialize them
on PostgreSQL.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from paygate.app.core.exceptions import InsufficientBalanceError
from paygate.app.db.session import Base
from paygate.app.domain.billing.balance_mutator import BalanceMutator
from paygate.app.domain.billing.transaction_recorder import TransactionRecorder
from paygate.app.models.billing_enums import LedgerTransactionType
from paygate.app.models.enums import UserRole
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.services.accounts import register_account

from conftest import get_balances, set_balances


@pytest.fixture
async def locking_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"timeout": 30},
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # Let the begin hook below emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def funded_user(locking_factory):
    async with locking_factory() as session:
        user = await register_account(
            session, name="Merchant", username="merchant", email="merchant@test.com",
            password="secret123", role=UserRole.PAYOUT_ONLY,
        )
        await set_balances(session, user.id, settlement="1000")
    return user


async def debit_and_record(factory, user_id: int, index: int):
    async with factory() as session:
        try:
            snapshot = await BalanceMutator(session).debit_settlement(user_id, Decimal("100"))
            await TransactionRecorder(session).record(
                user_id=user_id,
                transaction_type=LedgerTransactionType.PAYOUT,
                amount=Decimal("100"),
                snapshot=snapshot,
                reference_id=f"REF{index:09d}",
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        return snapshot


@pytest.mark.asyncio
async def test_concurrent_debits_never_share_a_snapshot(locking_factory, funded_user):
    results = await asyncio.gather(
        *(debit_and_record(locking_factory, funded_user.id, i) for i in range(12)),
        return_exceptions=True,
    )

    snapshots = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]

    assert len(snapshots) == 10
    assert len(failures) == 2
    assert all(isinstance(f, InsufficientBalanceError) for f in failures)

    befores = sorted(s.settlement_before for s in snapshots)
    assert befores == [Decimal(100 * n) for n in range(1, 11)]

    balances = await get_balances(locking_factory, funded_user.id)
    assert balances.settlement == Decimal("0.00")

    # The ledger chains: each entry starts where the previous one ended
    async with locking_factory() as session:
        result = await session.execute(
            select(LedgerEntry).where(LedgerEntry.user_id == funded_user.id).order_by(LedgerEntry.id)
        )
        entries = result.scalars().all()

    assert len(entries) == 10
    for previous, current in zip(entries, entries[1:]):
        assert current.balance_before == previous.balance_after
