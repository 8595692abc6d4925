"""
Admin Billing API Endpoints.

Per-user charge brackets and the global platform charge.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from paygate.app.db.session import get_db
from paygate.app.models.user import User
from paygate.app.models.charge_bracket import ChargeBracket
from paygate.app.models.enums import UserRole, BACK_OFFICE_ROLES
from paygate.app.schemas.billing import (
    ChargeBracketCreate, ChargeBracketUpdate, ChargeBracketResponse,
    PlatformChargeCreate, PlatformChargeResponse,
)
from paygate.app.core.guards import require_role
from paygate.app.domain.billing.bracket_resolver import BracketResolver
from paygate.app.domain.billing.platform_charges import PlatformChargeService
from paygate.app.services.audit import log_admin_action, AuditAction

router = APIRouter(prefix="/admin", tags=["Admin - Billing"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _get_bracket_or_404(db: AsyncSession, user_id: int, charge_id: int) -> ChargeBracket:
    bracket = await db.get(ChargeBracket, charge_id)
    if not bracket or bracket.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Charge bracket not found")
    return bracket


@router.get("/users/{user_id}/merchant-charges", response_model=List[ChargeBracketResponse])
async def list_merchant_charges(
    user_id: int = Path(..., description="Merchant user ID"),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """List a user's charge brackets in lookup order."""
    await _get_user_or_404(db, user_id)
    return await BracketResolver.load_brackets(db, user_id)


@router.post(
    "/users/{user_id}/merchant-charges",
    response_model=ChargeBracketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_merchant_charge(
    bracket_data: ChargeBracketCreate,
    user_id: int = Path(..., description="Merchant user ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a charge bracket.

    Rejected with 409 when the range intersects an existing bracket of the user.
    """
    target_user = await _get_user_or_404(db, user_id)
    await BracketResolver.ensure_no_overlap(
        db, user_id, bracket_data.start_amount, bracket_data.end_amount
    )

    bracket = ChargeBracket(
        user_id=user_id,
        **bracket_data.model_dump(),
        created_by=current_user["user_id"],
        updated_by=current_user["user_id"],
    )
    db.add(bracket)
    await db.commit()
    await db.refresh(bracket)

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.CHARGE_BRACKET_CREATED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={
            "charge_id": bracket.id,
            "start_amount": str(bracket.start_amount),
            "end_amount": str(bracket.end_amount),
        }
    )

    return bracket


@router.put("/users/{user_id}/merchant-charges/{charge_id}", response_model=ChargeBracketResponse)
async def update_merchant_charge(
    bracket_data: ChargeBracketUpdate,
    user_id: int = Path(...),
    charge_id: int = Path(...),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Replace a bracket's range and rates."""
    target_user = await _get_user_or_404(db, user_id)
    bracket = await _get_bracket_or_404(db, user_id, charge_id)

    await BracketResolver.ensure_no_overlap(
        db, user_id, bracket_data.start_amount, bracket_data.end_amount, exclude_id=charge_id
    )

    for field, value in bracket_data.model_dump().items():
        setattr(bracket, field, value)
    bracket.updated_by = current_user["user_id"]

    await db.commit()
    await db.refresh(bracket)

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.CHARGE_BRACKET_UPDATED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"charge_id": bracket.id}
    )

    return bracket


@router.delete("/users/{user_id}/merchant-charges/{charge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_merchant_charge(
    user_id: int = Path(...),
    charge_id: int = Path(...),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    target_user = await _get_user_or_404(db, user_id)
    bracket = await _get_bracket_or_404(db, user_id, charge_id)

    await db.delete(bracket)
    await db.commit()

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.CHARGE_BRACKET_DELETED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"charge_id": charge_id}
    )


@router.get("/platform-charges", response_model=List[PlatformChargeResponse])
async def list_platform_charges(
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """All platform charge records, newest first. At most one is active."""
    return await PlatformChargeService.list_all(db)


@router.post("/platform-charges", response_model=PlatformChargeResponse, status_code=status.HTTP_201_CREATED)
async def activate_platform_charge(
    charge_data: PlatformChargeCreate,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Store a new platform charge and make it the active one.

    Every previously active record is deactivated in the same transaction.
    """
    platform_charge = await PlatformChargeService.activate(
        db, charge_data.charge, charge_data.gst, actor_id=current_user["user_id"]
    )
    await db.commit()
    await db.refresh(platform_charge)

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.PLATFORM_CHARGE_ACTIVATED,
        metadata={
            "platform_charge_id": platform_charge.id,
            "charge": str(platform_charge.charge),
            "gst": str(platform_charge.gst),
        }
    )

    return platform_charge


@router.delete("/platform-charges/{charge_id}", response_model=PlatformChargeResponse)
async def deactivate_platform_charge(
    charge_id: int = Path(...),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate a platform charge. Payouts then carry no platform fee or GST."""
    platform_charge = await PlatformChargeService.deactivate(db, charge_id, actor_id=current_user["user_id"])
    await db.commit()
    await db.refresh(platform_charge)

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.PLATFORM_CHARGE_DEACTIVATED,
        metadata={"platform_charge_id": charge_id}
    )

    return platform_charge
