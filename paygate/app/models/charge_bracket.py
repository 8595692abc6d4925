"""
Charge Bracket database model.

Per-user tiered pricing for payins and payouts.
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from paygate.app.db.session import Base
from paygate.app.domain.billing.money import to_decimal
from paygate.app.models.billing_enums import ChargeType, TransactionDirection


class ChargeBracket(Base):
    """
    Charge Bracket model.

    Covers the inclusive amount range [start_amount, end_amount] for one user.
    Each of the four rates (admin/agent x payin/payout) carries its own
    charge type: a percentage of the amount or a fixed fee.
    """
    __tablename__ = "merchant_charges"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Range (inclusive on both ends)
    start_amount = Column(Numeric(15, 2), nullable=False)
    end_amount = Column(Numeric(15, 2), nullable=False)

    # Rates
    admin_payin_charge = Column(Numeric(10, 2), nullable=False, default=0)
    admin_payout_charge = Column(Numeric(10, 2), nullable=False, default=0)
    agent_payin_charge = Column(Numeric(10, 2), nullable=False, default=0)
    agent_payout_charge = Column(Numeric(10, 2), nullable=False, default=0)

    admin_payin_charge_type = Column(Enum(ChargeType), nullable=False, default=ChargeType.PERCENTAGE)
    admin_payout_charge_type = Column(Enum(ChargeType), nullable=False, default=ChargeType.PERCENTAGE)
    agent_payin_charge_type = Column(Enum(ChargeType), nullable=False, default=ChargeType.PERCENTAGE)
    agent_payout_charge_type = Column(Enum(ChargeType), nullable=False, default=ChargeType.PERCENTAGE)

    # Audit
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def contains(self, amount) -> bool:
        """Inclusive on both ends."""
        return to_decimal(self.start_amount) <= to_decimal(amount) <= to_decimal(self.end_amount)

    def admin_rate(self, direction: TransactionDirection):
        """(rate, charge_type) the platform earns for this direction."""
        if direction == TransactionDirection.PAYOUT:
            return self.admin_payout_charge, self.admin_payout_charge_type
        return self.admin_payin_charge, self.admin_payin_charge_type

    def agent_rate(self, direction: TransactionDirection):
        """(rate, charge_type) the referring agent earns for this direction."""
        if direction == TransactionDirection.PAYOUT:
            return self.agent_payout_charge, self.agent_payout_charge_type
        return self.agent_payin_charge, self.agent_payin_charge_type

    def __repr__(self):
        return f"<ChargeBracket(id={self.id}, user_id={self.user_id}, range={self.start_amount}-{self.end_amount})>"
