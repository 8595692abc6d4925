"""
Platform Charge Service.

The active platform charge is a database row. Activating a new configuration
deactivates every other row in the same transaction.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.app.core.exceptions import PlatformChargeConflictError, ResourceNotFoundError
from paygate.app.models.platform_charge import PlatformCharge


class PlatformChargeService:

    @staticmethod
    async def resolve_active(db: AsyncSession) -> Optional[PlatformCharge]:
        result = await db.execute(
            select(PlatformCharge)
            .where(PlatformCharge.is_active == True)
            .order_by(PlatformCharge.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[PlatformCharge]:
        result = await db.execute(select(PlatformCharge).order_by(PlatformCharge.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def activate(db: AsyncSession, charge: Decimal, gst: Decimal, actor_id: Optional[int] = None) -> PlatformCharge:
        """
        Store a new platform charge and make it the only active one.

        The caller commits; until then neither the deactivation nor the new
        row is visible to other sessions. Two concurrent activations cannot
        both commit: the single-active unique index rejects the later insert.
        """
        await db.execute(
            update(PlatformCharge)
            .where(PlatformCharge.is_active == True)
            .values(is_active=False, updated_by=actor_id)
        )

        platform_charge = PlatformCharge(
            charge=charge,
            gst=gst,
            is_active=True,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.add(platform_charge)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            raise PlatformChargeConflictError() from exc
        return platform_charge

    @staticmethod
    async def deactivate(db: AsyncSession, charge_id: int, actor_id: Optional[int] = None) -> PlatformCharge:
        platform_charge = await db.get(PlatformCharge, charge_id)
        if not platform_charge:
            raise ResourceNotFoundError("Platform charge", charge_id)

        platform_charge.is_active = False
        platform_charge.updated_by = actor_id
        await db.flush()
        return platform_charge
