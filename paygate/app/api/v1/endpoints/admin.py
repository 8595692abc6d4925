"""
Admin API Endpoints.

Account management: users, service flags, gateway details and IP whitelist,
with audit logging.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from paygate.app.db.session import get_db
from paygate.app.models.user import User
from paygate.app.models.user_ip import UserIP
from paygate.app.models.user_status import UserStatus
from paygate.app.models.merchant_details import MerchantDetails
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.models.billing_enums import LedgerTransactionType, LedgerStatus
from paygate.app.models.enums import UserRole, BACK_OFFICE_ROLES
from paygate.app.schemas.admin import (
    UserListResponse, UserListItem, UserRegisterRequest, BlockUserRequest, UnblockUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse,
    UserStatusUpdate, UserStatusResponse, MerchantDetailsUpdate, MerchantDetailsResponse,
    UserIPCreate, UserIPResponse,
)
from paygate.app.schemas.ledger import LedgerEntryResponse, LedgerListResponse
from paygate.app.core.guards import require_admin, require_role
from paygate.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from paygate.app.services.accounts import register_account
from paygate.app.services.audit import log_admin_action, AuditAction, get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    admin: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    List users (admin and staff).

    Returns paginated user list with role and status information.
    """
    count_query = select(func.count(User.id))
    query = select(User)
    if role:
        count_query = count_query.where(User.role == role)
        query = query.where(User.role == role)

    total = (await db.execute(count_query)).scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(page_size)
    )
    users = result.scalars().all()

    return UserListResponse(
        users=[UserListItem.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/users/register", response_model=UserListItem, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: UserRegisterRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new account (admin-only).

    Creates the user with its status flags, zero balances and merchant details.
    """
    user = await register_account(
        db,
        name=user_data.name,
        username=user_data.username,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        mobile=user_data.mobile,
        company_name=user_data.company_name,
        agent_id=user_data.agent_id,
        payout_gateway=user_data.payout_gateway,
        created_by=admin["user_id"],
    )

    await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.USER_REGISTERED,
        target_user_id=user.id,
        target_username=user.username,
        metadata={"role": user.role.value, "agent_id": user.agent_id}
    )

    return UserListItem.model_validate(user)


@router.get("/users/{user_id}", response_model=UserListItem)
async def get_user(
    user_id: int,
    admin: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Get detailed information about a specific user."""
    user = await _get_user_or_404(db, user_id)
    return UserListItem.model_validate(user)


@router.post("/users/{user_id}/block", response_model=AdminActionResponse)
async def block_user(
    user_id: int,
    request: BlockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Block a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions.
    """
    target_user = await _get_user_or_404(db, user_id)

    if target_user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot block another admin user"
        )

    if target_user.id == admin["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot block yourself"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already blocked"
        )

    target_user.is_active = False
    await db.commit()

    await revoke_all_user_tokens(user_id)

    audit_log = await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.USER_BLOCKED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been blocked",
        user_id=user_id,
        action=AuditAction.USER_BLOCKED,
        audit_log_id=audit_log.id
    )


@router.post("/users/{user_id}/unblock", response_model=AdminActionResponse)
async def unblock_user(
    user_id: int,
    request: UnblockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Unblock a user and clear token revocations (admin-only).

    User will be able to login again and generate new tokens.
    """
    target_user = await _get_user_or_404(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    await clear_user_token_revocation(user_id)

    audit_log = await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.USER_UNBLOCKED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been unblocked",
        user_id=user_id,
        action=AuditAction.USER_UNBLOCKED,
        audit_log_id=audit_log.id
    )


@router.get("/users/{user_id}/status", response_model=UserStatusResponse)
async def get_user_status(
    user_id: int,
    admin: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(UserStatus).where(UserStatus.user_id == user_id))
    user_status = result.scalar_one_or_none()
    if not user_status:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User status not found")
    return UserStatusResponse.model_validate(user_status)


@router.put("/users/{user_id}/status", response_model=UserStatusResponse)
async def update_user_status(
    user_id: int,
    update: UserStatusUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Toggle a user's service flags (admin-only).

    Only the flags present in the body are changed.
    """
    target_user = await _get_user_or_404(db, user_id)

    result = await db.execute(select(UserStatus).where(UserStatus.user_id == user_id))
    user_status = result.scalar_one_or_none()
    if not user_status:
        user_status = UserStatus(user_id=user_id)
        db.add(user_status)

    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user_status, field, value)

    await db.commit()
    await db.refresh(user_status)

    await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.USER_STATUS_UPDATED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata=changes
    )

    return UserStatusResponse.model_validate(user_status)


@router.get("/users/{user_id}/merchant-details", response_model=MerchantDetailsResponse)
async def get_merchant_details(
    user_id: int,
    admin: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(MerchantDetails).where(MerchantDetails.user_id == user_id))
    details = result.scalar_one_or_none()
    if not details:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Merchant details not found")
    return MerchantDetailsResponse.model_validate(details)


@router.post("/users/{user_id}/merchant-details", response_model=MerchantDetailsResponse)
async def upsert_merchant_details(
    user_id: int,
    update: MerchantDetailsUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Set the payout/payin gateway and callback URLs of a user (admin-only)."""
    target_user = await _get_user_or_404(db, user_id)

    result = await db.execute(select(MerchantDetails).where(MerchantDetails.user_id == user_id))
    details = result.scalar_one_or_none()
    if not details:
        details = MerchantDetails(user_id=user_id)
        db.add(details)

    changes = update.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(details, field, value)

    await db.commit()
    await db.refresh(details)

    await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.MERCHANT_DETAILS_UPDATED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata=changes
    )

    return MerchantDetailsResponse.model_validate(details)


@router.get("/users/{user_id}/ips", response_model=List[UserIPResponse])
async def list_user_ips(
    user_id: int,
    admin: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    await _get_user_or_404(db, user_id)
    result = await db.execute(
        select(UserIP).where(UserIP.user_id == user_id).order_by(UserIP.id)
    )
    return [UserIPResponse.model_validate(ip) for ip in result.scalars().all()]


@router.post("/users/{user_id}/ips", response_model=UserIPResponse, status_code=status.HTTP_201_CREATED)
async def whitelist_ip(
    user_id: int,
    ip_data: UserIPCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Whitelist a source IP for a user's API calls (admin-only)."""
    target_user = await _get_user_or_404(db, user_id)

    result = await db.execute(
        select(UserIP).where(UserIP.user_id == user_id, UserIP.ip_address == ip_data.ip_address)
    )
    user_ip = result.scalar_one_or_none()
    if user_ip and user_ip.is_active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="IP address already whitelisted")

    if user_ip:
        user_ip.is_active = True
        user_ip.description = ip_data.description
        user_ip.updated_by = admin["user_id"]
    else:
        user_ip = UserIP(
            user_id=user_id,
            ip_address=ip_data.ip_address,
            description=ip_data.description,
            is_active=True,
            created_by=admin["user_id"],
            updated_by=admin["user_id"],
        )
        db.add(user_ip)

    await db.commit()
    await db.refresh(user_ip)

    await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.IP_WHITELISTED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"ip_address": user_ip.ip_address}
    )

    return UserIPResponse.model_validate(user_ip)


@router.delete("/users/{user_id}/ips/{ip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_ip(
    user_id: int,
    ip_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Remove an IP from a user's whitelist (admin-only)."""
    target_user = await _get_user_or_404(db, user_id)

    user_ip = await db.get(UserIP, ip_id)
    if not user_ip or user_ip.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="IP address not found")

    ip_address = user_ip.ip_address
    await db.delete(user_ip)
    await db.commit()

    await log_admin_action(
        db=db,
        admin=admin,
        action=AuditAction.IP_REMOVED,
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"ip_address": ip_address}
    )


@router.get("/transactions", response_model=LedgerListResponse)
async def list_transactions(
    user_id: Optional[int] = Query(None, description="Filter by user"),
    transaction_type: Optional[LedgerTransactionType] = Query(None),
    status_filter: Optional[LedgerStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    admin: dict = Depends(require_role(BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Ledger entries across all users, newest first."""
    filters = []
    if user_id is not None:
        filters.append(LedgerEntry.user_id == user_id)
    if transaction_type is not None:
        filters.append(LedgerEntry.transaction_type == transaction_type)
    if status_filter is not None:
        filters.append(LedgerEntry.status == status_filter)

    total = (await db.execute(select(func.count(LedgerEntry.id)).where(*filters))).scalar()
    result = await db.execute(
        select(LedgerEntry)
        .where(*filters)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return LedgerListResponse(
        transactions=[LedgerEntryResponse.model_validate(entry) for entry in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: int = Query(None, description="Filter by target user ID"),
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).
    """
    logs = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
