"""
Billing Schemas.

Charge brackets, platform charges and the charge breakdown.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional
from paygate.app.models.billing_enums import ChargeType


def _check_rate(rate: Decimal, charge_type: ChargeType, field_name: str):
    if charge_type == ChargeType.PERCENTAGE and rate > 100:
        raise ValueError(f"{field_name} cannot exceed 100 percent")


class ChargeBracketCreate(BaseModel):
    """Schema for creating a charge bracket."""
    start_amount: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    end_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)

    admin_payin_charge: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    admin_payout_charge: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    agent_payin_charge: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    agent_payout_charge: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)

    admin_payin_charge_type: ChargeType = ChargeType.PERCENTAGE
    admin_payout_charge_type: ChargeType = ChargeType.PERCENTAGE
    agent_payin_charge_type: ChargeType = ChargeType.PERCENTAGE
    agent_payout_charge_type: ChargeType = ChargeType.PERCENTAGE

    @model_validator(mode="after")
    def check_range_and_rates(self):
        if self.start_amount > self.end_amount:
            raise ValueError("start_amount must not exceed end_amount")
        for prefix in ("admin_payin", "admin_payout", "agent_payin", "agent_payout"):
            _check_rate(
                getattr(self, f"{prefix}_charge"),
                getattr(self, f"{prefix}_charge_type"),
                f"{prefix}_charge",
            )
        return self


class ChargeBracketUpdate(ChargeBracketCreate):
    """Full replacement of a bracket's range and rates."""


class ChargeBracketResponse(BaseModel):
    """Schema for displaying a charge bracket."""
    id: int
    user_id: int
    start_amount: Decimal
    end_amount: Decimal
    admin_payin_charge: Decimal
    admin_payout_charge: Decimal
    agent_payin_charge: Decimal
    agent_payout_charge: Decimal
    admin_payin_charge_type: ChargeType
    admin_payout_charge_type: ChargeType
    agent_payin_charge_type: ChargeType
    agent_payout_charge_type: ChargeType
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PlatformChargeCreate(BaseModel):
    """Schema for activating a new platform charge."""
    charge: Decimal = Field(..., ge=0, le=100, max_digits=10, decimal_places=2)
    gst: Decimal = Field(..., ge=0, le=100, max_digits=10, decimal_places=2)


class PlatformChargeResponse(BaseModel):
    id: int
    charge: Decimal
    gst: Decimal
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChargeBreakdownResponse(BaseModel):
    amount: Decimal
    admin_charge: Decimal
    agent_charge: Decimal
    platform_fee: Decimal
    gst_amount: Decimal
    total_deduction: Decimal

    class Config:
        from_attributes = True
