"""
Ops Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from paygate.app.models.dlq import DLQStatus


class DLQItemResponse(BaseModel):
    id: int
    task_name: str
    ledger_entry_id: Optional[int] = None
    reference_id: Optional[str] = None
    gateway: Optional[str] = None
    error_message: str
    payload: Optional[dict] = None
    status: DLQStatus
    retry_count: int
    created_at: datetime
    last_retry_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DLQListResponse(BaseModel):
    items: List[DLQItemResponse]
    total: int


class DLQRetryResponse(BaseModel):
    message: str
    dlq_id: int
    dlq_status: DLQStatus
    transaction_status: str


class MirrorFlushResponse(BaseModel):
    message: str
    published: int
