"""
Admin Settlement API Endpoints.

Moves wallet funds to the settlement balance and adjusts wallets.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from paygate.app.db.session import get_db
from paygate.app.models.enums import UserRole, BACK_OFFICE_ROLES
from paygate.app.models.financial_details import FinancialDetails
from paygate.app.schemas.admin import BalanceResponse
from paygate.app.schemas.ledger import (
    SettleAmountRequest, SettleAmountResponse, SettlementData,
    WalletAdjustRequest, WalletAdjustResponse,
    LedgerEntryResponse, LedgerListResponse,
)
from paygate.app.core.guards import require_role
from paygate.app.domain.billing.settlement_service import SettlementService
from paygate.app.services.audit import log_admin_action, AuditAction

router = APIRouter(prefix="/admin", tags=["Admin - Settlement"])


@router.post("/settle-amount", response_model=SettleAmountResponse)
async def settle_amount(
    request: SettleAmountRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Move an amount from a user's wallet to their settlement balance.

    The balance change and its SETTLEMENT ledger entry commit together.
    """
    service = SettlementService(db)
    snapshot, entry = await service.settle(
        request.user_id,
        request.settlement_amount,
        actor_id=current_user["user_id"],
        remark=request.remark,
    )

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.SETTLEMENT,
        target_user_id=request.user_id,
        metadata={"ledger_entry_id": entry.id, "amount": str(entry.amount)}
    )

    return SettleAmountResponse(
        success=True,
        message="Amount settled successfully",
        data=SettlementData(
            wallet_balance=snapshot.wallet_after,
            settlement_balance=snapshot.settlement_after,
            transaction=LedgerEntryResponse.model_validate(entry),
        ),
    )


@router.get("/settlement-history/{user_id}", response_model=LedgerListResponse)
async def settlement_history(
    user_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """SETTLEMENT ledger entries of a user, newest first."""
    entries, total = await SettlementService(db).history(user_id, page=page, page_size=page_size)
    return LedgerListResponse(
        transactions=[LedgerEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/users/{user_id}/wallet", response_model=BalanceResponse)
async def get_balances(
    user_id: int,
    current_user: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(FinancialDetails).where(FinancialDetails.user_id == user_id))
    details = result.scalar_one_or_none()
    if not details:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Financial details not found")
    return BalanceResponse.model_validate(details)


@router.post("/users/{user_id}/wallet", response_model=WalletAdjustResponse)
async def adjust_wallet(
    user_id: int,
    request: WalletAdjustRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Credit or debit a user's wallet (admin-only)."""
    credit = request.action == "credit"
    snapshot, entry = await SettlementService(db).adjust_wallet(
        user_id,
        request.amount,
        credit=credit,
        actor_id=current_user["user_id"],
        remark=request.remark,
    )

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.WALLET_CREDIT if credit else AuditAction.WALLET_DEBIT,
        target_user_id=user_id,
        metadata={"ledger_entry_id": entry.id, "amount": str(entry.amount)}
    )

    return WalletAdjustResponse(
        success=True,
        message="Wallet credited" if credit else "Wallet debited",
        wallet_balance=snapshot.wallet_after,
        settlement_balance=snapshot.settlement_after,
        transaction=LedgerEntryResponse.model_validate(entry),
    )
