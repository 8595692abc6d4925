"""
Audit Log Database Model.

Tracks admin actions on accounts, charges and balances.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for admin and security events.

    Events logged:
    - USER_REGISTERED / USER_BLOCKED / USER_UNBLOCKED / USER_STATUS_UPDATED
    - LOGIN_SUCCESS / LOGIN_FAILED
    - IP_WHITELISTED / IP_REMOVED
    - CHARGE_BRACKET_* / PLATFORM_CHARGE_*
    - SETTLEMENT / WALLET_CREDIT / WALLET_DEBIT
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)

    meta_data = Column(JSON, nullable=True)
    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, target={self.target_username})>"
