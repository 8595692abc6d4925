"""
Admin API Schema Definitions.

Pydantic schemas for account management endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from paygate.app.models.enums import UserRole


class UserListItem(BaseModel):
    """Schema for user in list response."""
    id: int
    name: str
    username: str
    email: str
    mobile: Optional[str] = None
    company_name: Optional[str] = None
    role: UserRole
    agent_id: Optional[int] = None
    is_active: bool
    is_superuser: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Schema for list users response."""
    users: List[UserListItem]
    total: int
    page: int
    page_size: int


class UserRegisterRequest(BaseModel):
    """
    Schema for account registration by an admin or agent.

    Agents may only register merchant roles; their own id becomes agent_id.
    """
    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    mobile: Optional[str] = Field(None, max_length=15)
    company_name: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.PAYOUT_ONLY
    agent_id: Optional[int] = None
    payout_gateway: Optional[str] = Field(None, max_length=50)


class BlockUserRequest(BaseModel):
    """Schema for blocking a user."""
    reason: Optional[str] = Field(None, description="Reason for blocking (for audit log)")


class UnblockUserRequest(BaseModel):
    """Schema for unblocking a user."""
    reason: Optional[str] = Field(None, description="Reason for unblocking (for audit log)")


class AdminActionResponse(BaseModel):
    """Schema for admin action response."""
    success: bool
    message: str
    user_id: int
    action: str
    audit_log_id: int


class UserStatusUpdate(BaseModel):
    """Partial update of the per-user service flags."""
    status: Optional[bool] = None
    payout_status: Optional[bool] = None
    payin_status: Optional[bool] = None
    api_status: Optional[bool] = None
    technical_issue: Optional[bool] = None
    bank_deactive: Optional[bool] = None


class UserStatusResponse(BaseModel):
    user_id: int
    status: bool
    payout_status: bool
    payin_status: bool
    api_status: bool
    technical_issue: bool
    bank_deactive: bool

    class Config:
        from_attributes = True


class MerchantDetailsUpdate(BaseModel):
    payout_gateway: Optional[str] = Field(None, max_length=50)
    payin_gateway: Optional[str] = Field(None, max_length=50)
    payout_callback: Optional[str] = Field(None, max_length=255)
    payin_callback: Optional[str] = Field(None, max_length=255)


class MerchantDetailsResponse(BaseModel):
    user_id: int
    payout_gateway: Optional[str] = None
    payin_gateway: Optional[str] = None
    payout_callback: Optional[str] = None
    payin_callback: Optional[str] = None

    class Config:
        from_attributes = True


class UserIPCreate(BaseModel):
    ip_address: str = Field(..., min_length=3, max_length=45)
    description: Optional[str] = Field(None, max_length=255)


class UserIPResponse(BaseModel):
    id: int
    user_id: int
    ip_address: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    user_id: int
    wallet: Decimal
    settlement: Decimal
    lien: Decimal
    rolling_reserve: Decimal

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    target_user_id: Optional[int]
    target_username: Optional[str]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
