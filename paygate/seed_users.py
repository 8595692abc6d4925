"""
Database seeding script for initial accounts.

Creates an ADMIN, an AGENT and a PAYOUT_ONLY merchant referred by the agent,
with a charge bracket, an active platform charge and a whitelisted local IP.
Run this script after database is set up but before first use.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from paygate.app.db.session import AsyncSessionLocal, engine, Base
from paygate.app.domain.billing.platform_charges import PlatformChargeService
from paygate.app.models.billing_enums import ChargeType
from paygate.app.models.charge_bracket import ChargeBracket
from paygate.app.models.enums import UserRole
from paygate.app.models.user import User
from paygate.app.models.user_ip import UserIP
from paygate.app.services.accounts import register_account


async def seed_users():
    """
    Seed initial accounts.

    Creates:
    - 1 ADMIN user
    - 1 AGENT user
    - 1 PAYOUT_ONLY merchant (agent-referred, unpay gateway)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting account seeding...")

        result = await db.execute(select(User).where(User.username == "admin"))
        if result.scalar_one_or_none():
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return

        admin = await register_account(
            db, name="Administrator", username="admin", email="admin@paygate.local",
            password="admin123", role=UserRole.ADMIN,
        )
        print("✅ Created ADMIN user (username: admin, password: admin123)")

        agent = await register_account(
            db, name="Demo Agent", username="agent", email="agent@paygate.local",
            password="agent123", role=UserRole.AGENT, created_by=admin.id,
        )
        print("✅ Created AGENT user (username: agent, password: agent123)")

        merchant = await register_account(
            db, name="Demo Merchant", username="merchant", email="merchant@paygate.local",
            password="merchant123", role=UserRole.PAYOUT_ONLY, agent_id=agent.id,
            payout_gateway="unpay", created_by=admin.id,
        )
        print("✅ Created PAYOUT_ONLY merchant (username: merchant, password: merchant123)")

        db.add(ChargeBracket(
            user_id=merchant.id,
            start_amount=Decimal("100"),
            end_amount=Decimal("25000"),
            admin_payin_charge=Decimal("2"),
            admin_payout_charge=Decimal("2"),
            agent_payin_charge=Decimal("0.5"),
            agent_payout_charge=Decimal("0.5"),
            admin_payin_charge_type=ChargeType.PERCENTAGE,
            admin_payout_charge_type=ChargeType.PERCENTAGE,
            agent_payin_charge_type=ChargeType.PERCENTAGE,
            agent_payout_charge_type=ChargeType.PERCENTAGE,
            created_by=admin.id,
            updated_by=admin.id,
        ))
        db.add(UserIP(user_id=merchant.id, ip_address="127.0.0.1", description="local", created_by=admin.id))
        await PlatformChargeService.activate(db, Decimal("5"), Decimal("18"), actor_id=admin.id)
        await db.commit()

        print("\n🎉 Account seeding completed successfully!")
        print("\nSeeded users:")
        print("  - ADMIN:       admin / admin123")
        print("  - AGENT:       agent / agent123")
        print("  - PAYOUT_ONLY: merchant / merchant123")


if __name__ == "__main__":
    asyncio.run(seed_users())
