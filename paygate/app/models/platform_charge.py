"""
Platform Charge database model.

Global fee and GST percentages applied on top of the admin charge.
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, Boolean, ForeignKey, Index, text
from sqlalchemy.sql import func
from paygate.app.db.session import Base


class PlatformCharge(Base):
    """
    Platform Charge model.

    Only one record is active at a time. Rows are never edited in place:
    a new configuration is a new row, activated in the same transaction
    that deactivates the previous one.
    """
    __tablename__ = "platform_charges"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    charge = Column(Numeric(10, 2), nullable=False)  # % of admin charge
    gst = Column(Numeric(10, 2), nullable=False)  # % of admin charge
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Audit
    created_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # At most one active row, enforced by the database
    __table_args__ = (
        Index(
            "uq_platform_charges_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    def __repr__(self):
        return f"<PlatformCharge(id={self.id}, charge={self.charge}, gst={self.gst}, active={self.is_active})>"
