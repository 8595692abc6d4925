"""
Dead Letter Queue (DLQ) Model.

A payout lands here when the gateway call failed in transit (network error,
5xx or open circuit) and its outcome is unknown. The ledger entry stays
PENDING and the settlement stays debited until an operator retries it.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum, ForeignKey
from sqlalchemy.sql import func
from paygate.app.db.session import Base


DLQ_MAX_RETRIES = 5


class DLQStatus(str, enum.Enum):
    FAILED = "FAILED"        # Waiting for a retry
    RETRYING = "RETRYING"    # Retry in flight
    PROCESSED = "PROCESSED"  # Gateway gave a definite answer
    ARCHIVED = "ARCHIVED"    # Retries exhausted, needs manual reconciliation


class DeadLetterQueue(Base):
    __tablename__ = "dead_letter_queue"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    task_name = Column(String(100), nullable=False, index=True)
    ledger_entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=True, index=True)
    reference_id = Column(String(100), nullable=True, index=True)
    gateway = Column(String(50), nullable=True)

    error_message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(Enum(DLQStatus), default=DLQStatus.FAILED, nullable=False, index=True)
    retry_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_settled(self) -> bool:
        return self.status in (DLQStatus.PROCESSED, DLQStatus.ARCHIVED)

    def start_retry(self) -> None:
        self.retry_count += 1
        self.last_retry_at = datetime.now(timezone.utc)
        self.status = DLQStatus.RETRYING

    def retry_failed(self, error: str) -> None:
        self.error_message = error
        self.status = DLQStatus.ARCHIVED if self.retry_count >= DLQ_MAX_RETRIES else DLQStatus.FAILED

    def __repr__(self):
        return f"<DLQ(id={self.id}, reference='{self.reference_id}', status='{self.status}')>"
