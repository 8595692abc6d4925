"""
Report Outbox database model.

Events written next to ledger changes, drained into the reporting store.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Boolean
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class ReportOutbox(Base):
    """
    Transactional outbox.

    A row is added in the same transaction as the ledger write it describes,
    so the mirror sees an event exactly when the ledger change committed.
    """
    __tablename__ = "report_outbox"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    event_type = Column(String(100), nullable=False, index=True)
    aggregate_id = Column(Integer, nullable=False, index=True)  # ledger_entries.id
    payload = Column(JSON, nullable=False)

    published = Column(Boolean, default=False, nullable=False, index=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ReportOutbox(id={self.id}, event='{self.event_type}', published={self.published})>"
