"""
User Status database model.

Per-account capability switches toggled by admins.
"""

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class UserStatus(Base):
    """
    One row per user.

    `status` is the master switch; the others gate individual capabilities.
    `bank_deactive` and `technical_issue` are set when the upstream bank
    blocks the merchant or payouts are paused for maintenance.
    """
    __tablename__ = "user_status"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True, index=True)

    status = Column(Boolean, default=True, nullable=False)
    payout_status = Column(Boolean, default=True, nullable=False)
    payin_status = Column(Boolean, default=True, nullable=False)
    api_status = Column(Boolean, default=True, nullable=False)
    technical_issue = Column(Boolean, default=False, nullable=False)
    bank_deactive = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserStatus(user_id={self.user_id}, status={self.status}, payout={self.payout_status})>"
