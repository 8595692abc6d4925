"""
Admin Operations API Endpoints.

Reconciliation of payouts with an unknown gateway outcome and on-demand
report mirror flushing.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from paygate.app.db.session import get_db
from paygate.app.models.dlq import DeadLetterQueue, DLQStatus
from paygate.app.models.enums import UserRole
from paygate.app.schemas.ops import DLQItemResponse, DLQListResponse, DLQRetryResponse, MirrorFlushResponse
from paygate.app.core.guards import require_role
from paygate.app.domain.billing.payout_service import PayoutService
from paygate.app.services.audit import log_admin_action, AuditAction
from paygate.app.services.payout_gateway import GatewayRegistry, get_gateway_registry
from paygate.app.services.report_mirror import ReportMirrorPublisher, get_report_mirror

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.get("/dlq", response_model=DLQListResponse)
async def list_dlq_items(
    status_filter: Optional[DLQStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List Dead Letter Queue items, newest first."""
    filters = []
    if status_filter is not None:
        filters.append(DeadLetterQueue.status == status_filter)

    total = (await db.execute(select(func.count(DeadLetterQueue.id)).where(*filters))).scalar()
    result = await db.execute(
        select(DeadLetterQueue).where(*filters).order_by(DeadLetterQueue.id.desc()).limit(limit)
    )
    return DLQListResponse(
        items=[DLQItemResponse.model_validate(item) for item in result.scalars().all()],
        total=total,
    )


@router.post("/dlq/{dlq_id}/retry", response_model=DLQRetryResponse)
async def retry_dlq_item(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    gateway_registry: GatewayRegistry = Depends(get_gateway_registry),
    db: AsyncSession = Depends(get_db)
):
    """
    Re-send a parked payout to its gateway.

    A rejection on retry is a final answer (the payout is reversed); the item
    is then PROCESSED like a success. An unreachable gateway keeps it queued.
    """
    item = await db.get(DeadLetterQueue, dlq_id)
    if not item:
        raise HTTPException(status_code=404, detail="DLQ item not found")

    service = PayoutService(db, gateway_registry)
    entry = await service.retry_parked(item)

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.DLQ_RETRIED,
        target_user_id=entry.user_id,
        metadata={"dlq_id": item.id, "ledger_entry_id": entry.id, "status": entry.status.value}
    )

    return DLQRetryResponse(
        message=f"Task {item.task_name} retried",
        dlq_id=item.id,
        dlq_status=item.status,
        transaction_status=entry.status.value,
    )


@router.post("/report-mirror/flush", response_model=MirrorFlushResponse)
async def flush_report_mirror(
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    publisher: ReportMirrorPublisher = Depends(get_report_mirror),
    db: AsyncSession = Depends(get_db)
):
    """Publish every pending outbox event to the reporting store now."""
    published = await publisher.flush()

    await log_admin_action(
        db=db,
        admin=current_user,
        action=AuditAction.REPORT_MIRROR_FLUSHED,
        metadata={"published": published}
    )

    return MirrorFlushResponse(message="Report mirror flushed", published=published)
