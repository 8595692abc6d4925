"""
Centralized Test Configuration.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, select, update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from paygate.app.main import app
from paygate.app.db.session import get_db, Base
from paygate.app.core.jwt import create_access_token, token_claims
from paygate.app.core.redis_client import get_redis
from paygate.app.core.reliability import payout_circuit_breaker
import paygate.app.core.redis_client as redis_client_module
from paygate.app.models.charge_bracket import ChargeBracket
from paygate.app.models.enums import UserRole
from paygate.app.models.financial_details import FinancialDetails
from paygate.app.models.platform_charge import PlatformCharge
from paygate.app.models.user_ip import UserIP
from paygate.app.services.accounts import register_account
from paygate.app.services.payout_gateway import (
    GatewayRegistry,
    GatewayResult,
    GatewayTransportError,
    get_gateway_registry,
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

MERCHANT_IP = "127.0.0.1"


def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeGateway:
    """
    Stand-in for the unpay client.

    mode: "success" answers TXN, "reject" answers a gateway decline,
    "down" raises GatewayTransportError like a network failure,
    "crash" raises an unexpected error from inside the client.
    """

    name = "unpay"

    def __init__(self):
        self.mode = "success"
        self.calls = []

    async def send_payout(self, instruction):
        self.calls.append(instruction)
        if self.mode == "down":
            raise GatewayTransportError("Connection refused")
        if self.mode == "crash":
            raise RuntimeError("client bug")
        if self.mode == "reject":
            raw = {"status": "FAILED", "message": "Beneficiary bank is offline"}
            return GatewayResult(success=False, status="FAILED", message=raw["message"], raw=raw)
        raw = {
            "status": "TXN",
            "message": "Transaction Successful",
            "txnid": f"UNP{len(self.calls):06d}",
            "refno": f"UTR{instruction.reference_id}",
        }
        return GatewayResult(
            success=True,
            status="TXN",
            message=raw["message"],
            txn_id=raw["txnid"],
            utr=raw["refno"],
            raw=raw,
        )


# Database (function scope: one fresh in-memory database per test)
@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(test_engine.sync_engine, "connect", set_sqlite_pragma)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    """The payout breaker is process-wide; every test starts with it closed."""
    payout_circuit_breaker.reset_state()
    yield
    payout_circuit_breaker.reset_state()


@pytest.fixture
async def client(session_factory, mock_redis, fake_gateway):
    """Async client for testing."""
    # Patch the global redis client used by token revocation
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_gateway_registry] = lambda: GatewayRegistry({"unpay": fake_gateway})

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


def auth_headers(user) -> dict:
    token = create_access_token(token_claims(user))
    return {"Authorization": f"Bearer {token}"}


async def get_balances(session_factory, user_id: int) -> FinancialDetails:
    """Read balances through a new session so no identity-map copy is returned."""
    async with session_factory() as session:
        result = await session.execute(select(FinancialDetails).where(FinancialDetails.user_id == user_id))
        return result.scalar_one()


async def set_balances(db: AsyncSession, user_id: int, wallet=None, settlement=None):
    values = {}
    if wallet is not None:
        values["wallet"] = Decimal(wallet)
    if settlement is not None:
        values["settlement"] = Decimal(settlement)
    await db.execute(
        update(FinancialDetails).where(FinancialDetails.user_id == user_id).values(**values)
    )
    await db.commit()


@pytest.fixture
async def admin_user(db_session):
    return await register_account(
        db_session,
        name="Back Office",
        username="admin",
        email="admin@test.com",
        password="admin123",
        role=UserRole.ADMIN,
    )


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
async def agent_user(db_session):
    return await register_account(
        db_session,
        name="Referral Agent",
        username="agent",
        email="agent@test.com",
        password="agent123",
        role=UserRole.AGENT,
    )


@pytest.fixture
async def merchant(db_session, agent_user):
    """
    Payout merchant ready to transact.

    Whitelisted for 127.0.0.1, bracket 0-1000 at 2% admin / 0.1% agent,
    platform charge 5% + 3% GST, wallet 500 and settlement 1000.
    """
    user = await register_account(
        db_session,
        name="Acme Traders",
        username="merchant",
        email="merchant@test.com",
        password="merchant123",
        role=UserRole.PAYOUT_ONLY,
        agent_id=agent_user.id,
        payout_gateway="unpay",
    )
    db_session.add(UserIP(user_id=user.id, ip_address=MERCHANT_IP, is_active=True))
    db_session.add(ChargeBracket(
        user_id=user.id,
        start_amount=Decimal("0"),
        end_amount=Decimal("1000"),
        admin_payout_charge=Decimal("2"),
        agent_payout_charge=Decimal("0.1"),
    ))
    db_session.add(PlatformCharge(charge=Decimal("5"), gst=Decimal("3"), is_active=True))
    await db_session.commit()

    await set_balances(db_session, user.id, wallet="500", settlement="1000")
    return user


@pytest.fixture
def merchant_headers(merchant):
    return auth_headers(merchant)


def payout_body(reference_id: str = "REF000000001", amount: str = "500", **overrides) -> dict:
    body = {
        "account_number": "123456789012",
        "account_ifsc": "HDFC0001234",
        "bank_name": "HDFC Bank",
        "beneficiary_name": "Ravi Kumar",
        "amount": amount,
        "reference_id": reference_id,
    }
    body.update(overrides)
    return body
