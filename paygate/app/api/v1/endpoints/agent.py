"""
Agent API Endpoints.

Agents register merchants and see the merchants they referred.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from paygate.app.db.session import get_db
from paygate.app.models.user import User
from paygate.app.models.enums import UserRole, MERCHANT_ROLES
from paygate.app.schemas.admin import UserListItem, UserListResponse, UserRegisterRequest
from paygate.app.core.guards import require_role, ownership_guard
from paygate.app.services.accounts import register_account
from paygate.app.services.audit import log_admin_action, AuditAction

router = APIRouter(prefix="/agent", tags=["Agent"])


@router.get("/users", response_model=UserListResponse)
async def list_referred_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(require_role([UserRole.AGENT])),
    db: AsyncSession = Depends(get_db)
):
    """Merchants referred by the calling agent."""
    column, value = ownership_guard.filter_by_ownership(current_user)
    owner_filter = getattr(User, column) == value

    total = (await db.execute(select(func.count(User.id)).where(owner_filter))).scalar()
    result = await db.execute(
        select(User)
        .where(owner_filter)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return UserListResponse(
        users=[UserListItem.model_validate(user) for user in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/users", response_model=UserListItem, status_code=status.HTTP_201_CREATED)
async def register_referred_user(
    user_data: UserRegisterRequest,
    current_user: dict = Depends(require_role([UserRole.AGENT])),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a merchant under the calling agent.

    Only merchant roles can be created; agent_id is always the caller.
    """
    if user_data.role not in MERCHANT_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agents can only register merchant accounts"
        )

    user = await register_account(
        db,
        name=user_data.name,
        username=user_data.username,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        mobile=user_data.mobile,
        company_name=user_data.company_name,
        agent_id=current_user["user_id"],
        payout_gateway=user_data.payout_gateway,
        created_by=current_user["user_id"],
    )

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.USER_REGISTERED,
        target_user_id=user.id,
        target_username=user.username,
        metadata={"role": user.role.value, "agent_id": user.agent_id}
    )

    return UserListItem.model_validate(user)


@router.get("/users/{user_id}", response_model=UserListItem)
async def get_referred_user(
    user_id: int,
    current_user: dict = Depends(require_role([UserRole.AGENT])),
    db: AsyncSession = Depends(get_db)
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    ownership_guard.enforce(user, current_user, "user")
    return UserListItem.model_validate(user)
