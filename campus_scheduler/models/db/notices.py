from __future__ import annotations
"""SQLAlchemy model for notices posted to students and staff."""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column, synonym
from sqlalchemy.sql import func
from campus_scheduler.database import Base
from .publishable import PublishableMixin

class Notice(PublishableMixin, Base):
    __tablename__ = "notices"
    kind = "notice"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    notice_no: Mapped[str] = mapped_column(String, nullable=False, index=True)
    program_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scheduled_at = synonym("date")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_notices_status_date", "status", "date"),
    )
