"""
Audit logging service for tracking security events and admin actions.

Provides centralized logging for compliance and security monitoring.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from paygate.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    USER_REGISTERED = "USER_REGISTERED"
    USER_BLOCKED = "USER_BLOCKED"
    USER_UNBLOCKED = "USER_UNBLOCKED"
    USER_STATUS_UPDATED = "USER_STATUS_UPDATED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"

    MERCHANT_DETAILS_UPDATED = "MERCHANT_DETAILS_UPDATED"
    IP_WHITELISTED = "IP_WHITELISTED"
    IP_REMOVED = "IP_REMOVED"

    # Charges
    CHARGE_BRACKET_CREATED = "CHARGE_BRACKET_CREATED"
    CHARGE_BRACKET_UPDATED = "CHARGE_BRACKET_UPDATED"
    CHARGE_BRACKET_DELETED = "CHARGE_BRACKET_DELETED"
    PLATFORM_CHARGE_ACTIVATED = "PLATFORM_CHARGE_ACTIVATED"
    PLATFORM_CHARGE_DEACTIVATED = "PLATFORM_CHARGE_DEACTIVATED"

    # Balances
    SETTLEMENT = "SETTLEMENT"
    WALLET_CREDIT = "WALLET_CREDIT"
    WALLET_DEBIT = "WALLET_DEBIT"

    # Ops
    DLQ_RETRIED = "DLQ_RETRIED"
    REPORT_MIRROR_FLUSHED = "REPORT_MIRROR_FLUSHED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log a security or admin event to the audit log.

    Commits the session; call it after the audited change has committed.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_user_id: ID of user being acted upon (if applicable)
        target_username: Username of target
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_admin_action(
    db: AsyncSession,
    admin: dict,
    action: str,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an action performed by an authenticated back-office user.

    Args:
        admin: JWT payload of the acting user (user_id, sub)
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=admin.get("user_id"),
        actor_username=admin.get("sub"),
        target_user_id=target_user_id,
        target_username=target_username,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an authentication event (login success/failure)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_user_id:
        query = query.where(AuditLog.target_user_id == target_user_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
