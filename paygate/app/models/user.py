"""
User database model.

Back-office accounts: admins, staff, agents and merchants.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from paygate.app.db.session import Base
from paygate.app.models.enums import UserRole


class User(Base):
    """
    User model for authentication and account management.

    Merchants are linked to the agent that referred them through `agent_id`.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    mobile = Column(String(15), nullable=True)
    company_name = Column(String(100), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)

    role = Column(Enum(UserRole), nullable=False)

    # Referring agent (merchants only)
    agent_id = Column(Integer, ForeignKey('users.id'), index=True, nullable=True)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role.value}')>"
