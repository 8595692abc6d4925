"""
Ledger Schemas.

Transaction (ledger entry) responses shared by payout, settlement and
reporting endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from paygate.app.models.billing_enums import LedgerTransactionType, LedgerStatus


class LedgerEntryResponse(BaseModel):
    id: int
    user_id: int
    transaction_type: LedgerTransactionType
    reference_id: Optional[str] = None
    amount: Decimal
    admin_charge: Decimal
    agent_charge: Decimal
    platform_fee: Decimal
    gst_amount: Decimal
    total_deduction: Decimal
    balance_before: Decimal
    balance_after: Decimal
    wallet_balance_before: Optional[Decimal] = None
    wallet_balance_after: Optional[Decimal] = None
    status: LedgerStatus
    utr: Optional[str] = None
    remark: Optional[str] = None
    beneficiary: Optional[dict] = None
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerListResponse(BaseModel):
    transactions: List[LedgerEntryResponse]
    total: int
    page: int
    page_size: int


class SettleAmountRequest(BaseModel):
    """
    Body of POST /admin/settle-amount.

    `amount` is accepted as an alias of settlement_amount.
    """
    user_id: int
    settlement_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2, alias="amount")
    remark: Optional[str] = Field(None, max_length=255)

    model_config = {"populate_by_name": True}


class SettlementData(BaseModel):
    wallet_balance: Decimal
    settlement_balance: Decimal
    transaction: LedgerEntryResponse


class SettleAmountResponse(BaseModel):
    success: bool
    message: str
    data: SettlementData


class WalletAdjustRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    action: str = Field(..., pattern="^(credit|debit)$")
    remark: Optional[str] = Field(None, max_length=255)


class WalletAdjustResponse(BaseModel):
    success: bool
    message: str
    wallet_balance: Decimal
    settlement_balance: Decimal
    transaction: LedgerEntryResponse
