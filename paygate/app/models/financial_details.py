"""
Financial Details database model.

Holds the balances of one user.
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class FinancialDetails(Base):
    """
    Financial Details model.

    `wallet` receives collections; `settlement` is what the merchant can pay
    out. Balances are only changed through BalanceMutator, under a row lock.
    """
    __tablename__ = "financial_details"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True, index=True)

    wallet = Column(Numeric(15, 2), nullable=False, default=0)
    settlement = Column(Numeric(15, 2), nullable=False, default=0)
    lien = Column(Numeric(15, 2), nullable=False, default=0)
    rolling_reserve = Column(Numeric(15, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<FinancialDetails(user_id={self.user_id}, wallet={self.wallet}, settlement={self.settlement})>"
