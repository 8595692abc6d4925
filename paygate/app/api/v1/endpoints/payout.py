"""
Payout API Endpoints.

Merchant-initiated bank payouts and the caller's payout history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from paygate.app.db.session import get_db
from paygate.app.models.user import User
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.models.billing_enums import LedgerTransactionType, LedgerStatus
from paygate.app.models.enums import PAYOUT_ROLES, BACK_OFFICE_ROLES
from paygate.app.schemas.billing import ChargeBreakdownResponse
from paygate.app.schemas.ledger import LedgerEntryResponse, LedgerListResponse
from paygate.app.schemas.payout import PayoutRequest, PayoutResponse, GatewayResultResponse
from paygate.app.core.dependencies import get_client_ip, get_current_user
from paygate.app.core.guards import require_role
from paygate.app.domain.billing.payout_service import PayoutService
from paygate.app.services.payout_gateway import GatewayRegistry, get_gateway_registry


router = APIRouter(prefix="/payout", tags=["Payout"])


@router.post("", response_model=PayoutResponse)
async def create_payout(
    payout_request: PayoutRequest,
    request: Request,
    current_user: dict = Depends(require_role(PAYOUT_ROLES)),
    gateway_registry: GatewayRegistry = Depends(get_gateway_registry),
    db: AsyncSession = Depends(get_db)
):
    """
    Initiate a bank payout.

    The settlement balance is debited by amount + charges before the gateway
    is called. A gateway rejection credits it back (502); an unreachable
    gateway leaves the transaction PENDING for reconciliation (503).
    """
    user = await db.get(User, current_user["user_id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    service = PayoutService(db, gateway_registry)
    result = await service.initiate(user, payout_request, get_client_ip(request))

    gateway = result.gateway_result
    return PayoutResponse(
        success=True,
        message=gateway.message or "Payout processed successfully",
        reference_id=result.entry.reference_id,
        charges=ChargeBreakdownResponse.model_validate(result.breakdown),
        transaction=LedgerEntryResponse.model_validate(result.entry),
        gateway=GatewayResultResponse(
            status=gateway.status,
            message=gateway.message,
            txn_id=gateway.txn_id,
            utr=gateway.utr,
        ),
    )


@router.get("/transactions", response_model=LedgerListResponse)
async def list_payouts(
    status_filter: Optional[LedgerStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's payouts, newest first. Back-office users see every payout."""
    filters = [LedgerEntry.transaction_type == LedgerTransactionType.PAYOUT]
    if current_user.get("role") not in [role.value for role in BACK_OFFICE_ROLES]:
        filters.append(LedgerEntry.user_id == current_user["user_id"])
    if status_filter is not None:
        filters.append(LedgerEntry.status == status_filter)

    total = (await db.execute(select(func.count(LedgerEntry.id)).where(*filters))).scalar()
    result = await db.execute(
        select(LedgerEntry)
        .where(*filters)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return LedgerListResponse(
        transactions=[LedgerEntryResponse.model_validate(entry) for entry in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/transactions/{reference_id}", response_model=LedgerEntryResponse)
async def get_payout(
    reference_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Look up one payout by the caller's reference_id."""
    result = await db.execute(
        select(LedgerEntry).where(
            LedgerEntry.reference_id == reference_id,
            LedgerEntry.transaction_type == LedgerTransactionType.PAYOUT,
        )
    )
    entry = result.scalar_one_or_none()

    is_back_office = current_user.get("role") in [role.value for role in BACK_OFFICE_ROLES]
    if not entry or (not is_back_office and entry.user_id != current_user["user_id"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    return LedgerEntryResponse.model_validate(entry)
