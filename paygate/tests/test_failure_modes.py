"""
Failure mode tests: circuit breaker and DLQ reconciliation of payouts.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from paygate.app.core.reliability import CircuitBreaker, CircuitOpenError, payout_circuit_breaker
from paygate.app.models.billing_enums import LedgerStatus
from paygate.app.models.ledger_entry import LedgerEntry

from conftest import get_balances, payout_body


class Boom(Exception):
    pass


async def failing_call():
    raise Boom("gateway down")


async def ok_call():
    return "ok"


@pytest.mark.asyncio
async def test_circuit_opens_after_threshold():
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    for _ in range(2):
        with pytest.raises(Boom):
            await breaker.call(failing_call)

    assert breaker.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await breaker.call(ok_call)


@pytest.mark.asyncio
async def test_half_open_probe_closes_circuit():
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60)
    with pytest.raises(Boom):
        await breaker.call(failing_call)

    # Pretend the reset window has passed
    breaker.last_failure_time -= 61

    assert await breaker.call(ok_call) == "ok"
    assert breaker.state == "CLOSED"
    assert breaker.failures == 0


@pytest.mark.asyncio
async def test_failed_half_open_probe_reopens():
    breaker = CircuitBreaker(failure_threshold=3, reset_timeout=60)
    for _ in range(3):
        with pytest.raises(Boom):
            await breaker.call(failing_call)
    breaker.last_failure_time -= 61

    with pytest.raises(Boom):
        await breaker.call(failing_call)

    assert breaker.state == "OPEN"


@pytest.mark.asyncio
async def test_untracked_exceptions_do_not_count():
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60, tracked_exceptions=(ConnectionError,))

    with pytest.raises(Boom):
        await breaker.call(failing_call)

    assert breaker.state == "CLOSED"


@pytest.mark.asyncio
async def test_open_circuit_parks_payout_without_calling_gateway(client, merchant, merchant_headers, fake_gateway, admin_headers):
    payout_circuit_breaker.record_failure()
    payout_circuit_breaker.state = "OPEN"

    response = await client.post("/v1/payout", json=payout_body(), headers=merchant_headers)

    assert response.status_code == 503
    assert response.json()["error_code"] == "ERR_GATEWAY_002"
    assert fake_gateway.calls == []

    dlq = await client.get("/v1/admin/ops/dlq", headers=admin_headers)
    assert dlq.status_code == 200
    assert dlq.json()["total"] == 1
    assert dlq.json()["items"][0]["task_name"] == "payout_gateway_call"


@pytest.mark.asyncio
async def test_dlq_retry_completes_parked_payout(client, session_factory, merchant, merchant_headers, fake_gateway, admin_headers):
    fake_gateway.mode = "down"
    response = await client.post("/v1/payout", json=payout_body(), headers=merchant_headers)
    assert response.status_code == 503

    dlq_id = (await client.get("/v1/admin/ops/dlq", headers=admin_headers)).json()["items"][0]["id"]

    fake_gateway.mode = "success"
    retried = await client.post(f"/v1/admin/ops/dlq/{dlq_id}/retry", headers=admin_headers)

    assert retried.status_code == 200
    assert retried.json()["dlq_status"] == "PROCESSED"
    assert retried.json()["transaction_status"] == "COMPLETED"

    # Same reference sent both times; the gateway deduplicates on it
    assert [call.reference_id for call in fake_gateway.calls] == ["REF000000001", "REF000000001"]

    balances = await get_balances(session_factory, merchant.id)
    assert balances.settlement == Decimal("489.20")

    again = await client.post(f"/v1/admin/ops/dlq/{dlq_id}/retry", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["error_code"] == "ERR_DLQ_002"


@pytest.mark.asyncio
async def test_dlq_retry_rejected_reverses_payout(client, session_factory, merchant, merchant_headers, fake_gateway, admin_headers):
    fake_gateway.mode = "down"
    await client.post("/v1/payout", json=payout_body(), headers=merchant_headers)
    dlq_id = (await client.get("/v1/admin/ops/dlq", headers=admin_headers)).json()["items"][0]["id"]

    fake_gateway.mode = "reject"
    retried = await client.post(f"/v1/admin/ops/dlq/{dlq_id}/retry", headers=admin_headers)

    assert retried.status_code == 200
    assert retried.json()["dlq_status"] == "PROCESSED"
    assert retried.json()["transaction_status"] == "FAILED"

    balances = await get_balances(session_factory, merchant.id)
    assert balances.settlement == Decimal("1000.00")


@pytest.mark.asyncio
async def test_dlq_retry_while_gateway_still_down(client, session_factory, merchant, merchant_headers, fake_gateway, admin_headers):
    fake_gateway.mode = "down"
    await client.post("/v1/payout", json=payout_body(), headers=merchant_headers)
    dlq_id = (await client.get("/v1/admin/ops/dlq", headers=admin_headers)).json()["items"][0]["id"]

    retried = await client.post(f"/v1/admin/ops/dlq/{dlq_id}/retry", headers=admin_headers)
    assert retried.status_code == 503

    item = (await client.get("/v1/admin/ops/dlq", headers=admin_headers)).json()["items"][0]
    assert item["status"] == "FAILED"
    assert item["retry_count"] == 1

    async with session_factory() as session:
        entry = (await session.execute(select(LedgerEntry))).scalar_one()
    assert entry.status == LedgerStatus.PENDING


@pytest.mark.asyncio
async def test_report_mirror_disabled(client, admin_headers):
    response = await client.post("/v1/admin/ops/report-mirror/flush", headers=admin_headers)

    assert response.status_code == 503
    assert response.json()["message"] == "Report mirror is disabled"


@pytest.mark.asyncio
async def test_health_reports_redis_outage(client, mock_redis):
    healthy = await client.get("/health")
    assert healthy.json()["status"] == "healthy"

    await mock_redis.aclose()

    degraded = await client.get("/health")
    assert degraded.status_code == 200
    assert degraded.json()["status"] == "degraded"
    assert degraded.json()["redis"] == "down"


@pytest.mark.asyncio
async def test_gateway_outage_counts_against_breaker(client, merchant, merchant_headers, fake_gateway, mocker):
    spy = mocker.spy(payout_circuit_breaker, "record_failure")
    fake_gateway.mode = "down"

    response = await client.post("/v1/payout", json=payout_body(), headers=merchant_headers)

    assert response.status_code == 503
    spy.assert_called_once()
    assert payout_circuit_breaker.failures == 1


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "trace-123"})

    assert response.headers["X-Correlation-ID"] == "trace-123"
    assert float(response.headers["X-Process-Time"]) >= 0

    generated = await client.get("/health")
    assert len(generated.headers["X-Correlation-ID"]) == 32
