from __future__ import annotations
"""SQLAlchemy model for fee obligations assigned to an enrolment."""
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from sqlalchemy import Integer, Numeric, Text, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship, Mapped, mapped_column, synonym

if TYPE_CHECKING:  # pragma: no cover
    from .students import StudentEnroll
from sqlalchemy.sql import func
from campus_scheduler.database import Base
from .enums import FeeStatus

class Fee(Base):
    __tablename__ = "fees"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_enroll_id: Mapped[int] = mapped_column(Integer, ForeignKey("student_enrolls.id"), nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    fine_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_at = synonym("due_date")
    pay_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[FeeStatus] = mapped_column(Enum(FeeStatus), default=FeeStatus.UNPAID, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    student_enroll: Mapped["StudentEnroll"] = relationship("StudentEnroll", back_populates="fees")

    __table_args__ = (
        Index("ix_fees_status_due_date", "status", "due_date"),
    )
