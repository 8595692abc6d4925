"""
Account service.

Creates users together with the per-user rows every account needs.
"""

import logging
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.app.core.exceptions import BusinessRuleError, ResourceNotFoundError
from paygate.app.core.security import get_password_hash
from paygate.app.models.enums import UserRole
from paygate.app.models.financial_details import FinancialDetails
from paygate.app.models.merchant_details import MerchantDetails
from paygate.app.models.user import User
from paygate.app.models.user_status import UserStatus

logger = logging.getLogger("paygate.accounts")


async def register_account(
    db: AsyncSession,
    name: str,
    username: str,
    email: str,
    password: str,
    role: UserRole,
    mobile: Optional[str] = None,
    company_name: Optional[str] = None,
    agent_id: Optional[int] = None,
    payout_gateway: Optional[str] = None,
    created_by: Optional[int] = None,
) -> User:
    """
    Create a user with its status flags, zero balances and merchant details.

    Everything is written in one transaction.

    Raises:
        BusinessRuleError: Username or email already taken, or agent_id is not an agent
    """
    result = await db.execute(
        select(User).where(or_(User.username == username, User.email == email))
    )
    existing_user = result.scalar_one_or_none()
    if existing_user:
        if existing_user.username == username:
            raise BusinessRuleError("Username already registered", error_code="ERR_USER_001")
        raise BusinessRuleError("Email already registered", error_code="ERR_USER_002")

    if agent_id is not None:
        agent = await db.get(User, agent_id)
        if not agent:
            raise ResourceNotFoundError("Agent", agent_id)
        if agent.role != UserRole.AGENT:
            raise BusinessRuleError("Assigned user is not an agent", error_code="ERR_USER_003")

    user = User(
        name=name,
        username=username,
        email=email,
        mobile=mobile,
        company_name=company_name,
        hashed_password=get_password_hash(password),
        role=role,
        agent_id=agent_id,
        is_active=True,
        is_superuser=role == UserRole.ADMIN,
        created_by=created_by,
    )
    db.add(user)
    await db.flush()

    db.add(UserStatus(user_id=user.id))
    db.add(FinancialDetails(user_id=user.id, wallet=0, settlement=0, lien=0, rolling_reserve=0))
    db.add(MerchantDetails(user_id=user.id, payout_gateway=payout_gateway))

    await db.commit()
    await db.refresh(user)

    logger.info("Account registered", extra={"user_id": user.id, "role": role.value, "agent_id": agent_id})
    return user
