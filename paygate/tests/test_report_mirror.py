"""
Tests for the report outbox publisher.

The document store is replaced by a recording publisher function.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from paygate.app.main import app
from paygate.app.domain.billing.balance_mutator import BalanceMutator
from paygate.app.domain.billing.transaction_recorder import (
    EVENT_ENTRY_CREATED,
    EVENT_STATUS_CHANGED,
    TransactionRecorder,
)
from paygate.app.models.billing_enums import LedgerStatus, LedgerTransactionType
from paygate.app.models.enums import UserRole
from paygate.app.models.report_outbox import ReportOutbox
from paygate.app.services.accounts import register_account
from paygate.app.services.report_mirror import ReportMirrorPublisher, get_report_mirror, report_fields

from conftest import set_balances


class RecordingPublisher:
    def __init__(self, fail_on=None):
        self.events = []
        self.fail_on = fail_on

    async def __call__(self, event):
        if self.fail_on is not None and len(self.events) == self.fail_on:
            raise ConnectionError("mongo unavailable")
        self.events.append(event)


@pytest.fixture
async def outbox_events(db_session):
    """One payout entry created then completed, plus a second pending payout: three events."""
    user = await register_account(
        db_session, name="Merchant", username="merchant", email="merchant@test.com",
        password="secret123", role=UserRole.PAYOUT_ONLY,
    )
    await set_balances(db_session, user.id, settlement="1000")

    recorder = TransactionRecorder(db_session)
    mutator = BalanceMutator(db_session)

    first = await recorder.record(
        user_id=user.id,
        transaction_type=LedgerTransactionType.PAYOUT,
        amount=Decimal("100"),
        snapshot=await mutator.debit_settlement(user.id, Decimal("100")),
        reference_id="REF000000001",
    )
    await db_session.commit()
    await recorder.mark_status(first, LedgerStatus.COMPLETED, utr="UTR1")
    await db_session.commit()

    await recorder.record(
        user_id=user.id,
        transaction_type=LedgerTransactionType.PAYOUT,
        amount=Decimal("200"),
        snapshot=await mutator.debit_settlement(user.id, Decimal("200")),
        reference_id="REF000000002",
    )
    await db_session.commit()
    return user


async def outbox_rows(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(ReportOutbox).order_by(ReportOutbox.id))
        return result.scalars().all()


@pytest.mark.asyncio
async def test_events_are_published_in_order(session_factory, outbox_events):
    publisher_func = RecordingPublisher()
    publisher = ReportMirrorPublisher(publisher_func=publisher_func, session_factory=session_factory)

    published = await publisher.process_batch()

    assert published == 3
    assert [e["event_type"] for e in publisher_func.events] == [
        EVENT_ENTRY_CREATED, EVENT_STATUS_CHANGED, EVENT_ENTRY_CREATED,
    ]
    assert publisher_func.events[1]["payload"]["status"] == "COMPLETED"
    assert publisher_func.events[1]["payload"]["utr"] == "UTR1"

    rows = await outbox_rows(session_factory)
    assert all(row.published for row in rows)
    assert all(row.published_at is not None for row in rows)

    # Nothing left to do
    assert await publisher.process_batch() == 0


@pytest.mark.asyncio
async def test_failure_stops_the_batch(session_factory, outbox_events):
    publisher_func = RecordingPublisher(fail_on=1)
    publisher = ReportMirrorPublisher(publisher_func=publisher_func, session_factory=session_factory)

    assert await publisher.process_batch() == 1

    first, second, third = await outbox_rows(session_factory)
    assert first.published is True
    assert second.published is False
    assert second.attempts == 1
    assert second.last_error == "mongo unavailable"
    # Later events wait behind the failed one
    assert third.published is False
    assert third.attempts == 0

    publisher_func.fail_on = None
    assert await publisher.flush() == 2

    rows = await outbox_rows(session_factory)
    assert all(row.published for row in rows)
    assert rows[1].last_error is None


@pytest.mark.asyncio
async def test_flush_drains_in_batches(session_factory, outbox_events):
    publisher_func = RecordingPublisher()
    publisher = ReportMirrorPublisher(publisher_func=publisher_func, session_factory=session_factory, batch_size=2)

    assert await publisher.flush() == 3
    assert len(publisher_func.events) == 3


def test_report_fields_maps_payload():
    payload = {
        "id": 7,
        "user_id": 3,
        "transaction_type": "PAYOUT",
        "reference_id": "REF000000007",
        "status": "PENDING",
        "amount": "500.00",
        "created_at": "2026-01-05T10:00:00+00:00",
    }

    fields = report_fields(payload)

    assert fields["ledger_entry_id"] == 7
    assert fields["ledger_created_at"] == "2026-01-05T10:00:00+00:00"
    assert "id" not in fields
    assert "created_at" not in fields
    assert fields["mirrored_at"] is not None


@pytest.mark.asyncio
async def test_flush_endpoint(client, session_factory, outbox_events, admin_headers):
    publisher_func = RecordingPublisher()
    app.dependency_overrides[get_report_mirror] = lambda: ReportMirrorPublisher(
        publisher_func=publisher_func, session_factory=session_factory
    )

    response = await client.post("/v1/admin/ops/report-mirror/flush", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["published"] == 3
