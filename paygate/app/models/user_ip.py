"""
User IP whitelist database model.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class UserIP(Base):
    """
    Source address allowed to call the payout API for a user.
    """
    __tablename__ = "user_ips"
    __table_args__ = (
        UniqueConstraint("user_id", "ip_address", name="uq_user_ips_user_ip"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    ip_address = Column(String(45), nullable=False)  # fits IPv6
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserIP(user_id={self.user_id}, ip='{self.ip_address}', active={self.is_active})>"
