"""
Payout Schemas.
"""

from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional
from paygate.app.schemas.billing import ChargeBreakdownResponse
from paygate.app.schemas.ledger import LedgerEntryResponse


class PayoutRequest(BaseModel):
    """Body of POST /payout."""
    account_number: str = Field(..., min_length=6, max_length=34)
    account_ifsc: str = Field(..., min_length=11, max_length=11)
    bank_name: str = Field(..., min_length=1, max_length=100)
    beneficiary_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    reference_id: str = Field(..., min_length=12, max_length=12, description="Caller reference, exactly 12 characters")


class GatewayResultResponse(BaseModel):
    status: str
    message: Optional[str] = None
    txn_id: Optional[str] = None
    utr: Optional[str] = None


class PayoutResponse(BaseModel):
    success: bool
    message: str
    reference_id: str
    charges: ChargeBreakdownResponse
    transaction: LedgerEntryResponse
    gateway: Optional[GatewayResultResponse] = None
