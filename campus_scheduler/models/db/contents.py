from __future__ import annotations
"""SQLAlchemy model for course content items (study material, downloads)."""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, synonym
from sqlalchemy.sql import func
from campus_scheduler.database import Base
from .publishable import PublishableMixin

class Content(PublishableMixin, Base):
    __tablename__ = "contents"
    kind = "content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Publish date; content stays in draft until it has passed.
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_at = synonym("date")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
