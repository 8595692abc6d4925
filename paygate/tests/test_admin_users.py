"""
Integration tests for account administration and agent access.
"""

import pytest

from paygate.app.models.enums import UserRole
from paygate.app.services.accounts import register_account

from conftest import auth_headers, get_balances, payout_body


def register_body(username: str, **overrides) -> dict:
    body = {
        "name": username.title(),
        "username": username,
        "email": f"{username}@test.com",
        "password": "secret123",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_admin_registers_merchant(client, session_factory, admin_headers, agent_user):
    response = await client.post(
        "/v1/admin/users/register",
        json=register_body("shopone", agent_id=agent_user.id, payout_gateway="unpay"),
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "PAYOUT_ONLY"
    assert data["agent_id"] == agent_user.id

    # Every account starts with zero balances and default flags
    balances = await get_balances(session_factory, data["id"])
    assert balances.wallet == 0
    assert balances.settlement == 0

    user_status = await client.get(f"/v1/admin/users/{data['id']}/status", headers=admin_headers)
    assert user_status.status_code == 200
    assert user_status.json()["payout_status"] is True
    assert user_status.json()["bank_deactive"] is False

    details = await client.get(f"/v1/admin/users/{data['id']}/merchant-details", headers=admin_headers)
    assert details.json()["payout_gateway"] == "unpay"


@pytest.mark.asyncio
async def test_duplicate_username_and_email(client, admin_headers, merchant):
    same_username = await client.post(
        "/v1/admin/users/register", json=register_body("merchant", email="other@test.com"), headers=admin_headers
    )
    assert same_username.status_code == 400
    assert same_username.json()["error_code"] == "ERR_USER_001"

    same_email = await client.post(
        "/v1/admin/users/register", json=register_body("another", email="merchant@test.com"), headers=admin_headers
    )
    assert same_email.status_code == 400
    assert same_email.json()["error_code"] == "ERR_USER_002"


@pytest.mark.asyncio
async def test_agent_id_must_reference_an_agent(client, admin_headers, merchant):
    response = await client.post(
        "/v1/admin/users/register", json=register_body("shoptwo", agent_id=merchant.id), headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_USER_003"


@pytest.mark.asyncio
async def test_list_users_by_role(client, admin_headers, merchant):
    response = await client.get("/v1/admin/users", params={"role": "AGENT"}, headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["users"][0]["username"] == "agent"


@pytest.mark.asyncio
async def test_staff_reads_but_cannot_write(client, db_session, merchant):
    staff = await register_account(
        db_session, name="Support", username="staff", email="staff@test.com",
        password="staff123", role=UserRole.STAFF,
    )
    headers = auth_headers(staff)

    listed = await client.get("/v1/admin/users", headers=headers)
    assert listed.status_code == 200

    registered = await client.post("/v1/admin/users/register", json=register_body("shopthree"), headers=headers)
    assert registered.status_code == 403

    audit = await client.get("/v1/admin/audit-logs", headers=headers)
    assert audit.status_code == 403


@pytest.mark.asyncio
async def test_update_status_flags(client, merchant, merchant_headers, admin_headers):
    response = await client.put(
        f"/v1/admin/users/{merchant.id}/status",
        json={"bank_deactive": True},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["bank_deactive"] is True
    # Flags not in the body are left alone
    assert response.json()["payout_status"] is True

    payout = await client.post("/v1/payout", json=payout_body(), headers=merchant_headers)
    assert payout.status_code == 400
    assert payout.json()["error_code"] == "ERR_ACCOUNT_002"


@pytest.mark.asyncio
async def test_ip_whitelist_management(client, merchant, admin_headers):
    base = f"/v1/admin/users/{merchant.id}/ips"

    added = await client.post(base, json={"ip_address": "203.0.113.7", "description": "Office"}, headers=admin_headers)
    assert added.status_code == 201

    duplicate = await client.post(base, json={"ip_address": "203.0.113.7"}, headers=admin_headers)
    assert duplicate.status_code == 409

    listed = await client.get(base, headers=admin_headers)
    assert [ip["ip_address"] for ip in listed.json()] == ["127.0.0.1", "203.0.113.7"]

    removed = await client.delete(f"{base}/{added.json()['id']}", headers=admin_headers)
    assert removed.status_code == 204

    listed = await client.get(base, headers=admin_headers)
    assert [ip["ip_address"] for ip in listed.json()] == ["127.0.0.1"]


@pytest.mark.asyncio
async def test_merchant_details_update(client, merchant, admin_headers):
    response = await client.post(
        f"/v1/admin/users/{merchant.id}/merchant-details",
        json={"payout_callback": "https://merchant.example/payout-hook"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["payout_callback"] == "https://merchant.example/payout-hook"
    assert response.json()["payout_gateway"] == "unpay"


@pytest.mark.asyncio
async def test_audit_log_lists_admin_actions(client, merchant, admin_headers):
    await client.put(f"/v1/admin/users/{merchant.id}/status", json={"technical_issue": True}, headers=admin_headers)

    response = await client.get("/v1/admin/audit-logs", params={"user_id": merchant.id}, headers=admin_headers)

    assert response.status_code == 200
    actions = [log["action"] for log in response.json()["logs"]]
    assert actions == ["USER_STATUS_UPDATED"]


@pytest.mark.asyncio
async def test_agent_registers_and_sees_referred_merchants(client, db_session, agent_user, merchant):
    headers = auth_headers(agent_user)

    created = await client.post("/v1/agent/users", json=register_body("referred"), headers=headers)
    assert created.status_code == 201
    assert created.json()["agent_id"] == agent_user.id

    not_a_merchant = await client.post(
        "/v1/agent/users", json=register_body("subagent", role="AGENT"), headers=headers
    )
    assert not_a_merchant.status_code == 403

    listed = await client.get("/v1/agent/users", headers=headers)
    assert listed.status_code == 200
    assert {u["username"] for u in listed.json()["users"]} == {"merchant", "referred"}

    own = await client.get(f"/v1/agent/users/{merchant.id}", headers=headers)
    assert own.status_code == 200


@pytest.mark.asyncio
async def test_agent_cannot_see_other_agents_merchants(client, db_session, merchant):
    other_agent = await register_account(
        db_session, name="Other Agent", username="agent2", email="agent2@test.com",
        password="agent123", role=UserRole.AGENT,
    )

    response = await client.get(f"/v1/agent/users/{merchant.id}", headers=auth_headers(other_agent))

    assert response.status_code == 403
