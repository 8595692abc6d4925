"""
Merchant Details database model.

Which upstream gateway serves a merchant, and where to call them back.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class MerchantDetails(Base):
    __tablename__ = "merchant_details"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True, index=True)

    payout_gateway = Column(String(50), nullable=True)  # e.g. "unpay"
    payin_gateway = Column(String(50), nullable=True)
    payout_callback = Column(String(255), nullable=True)
    payin_callback = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<MerchantDetails(user_id={self.user_id}, payout_gateway='{self.payout_gateway}')>"
