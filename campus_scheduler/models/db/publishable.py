"""Shared capability of records that go from draft to published on a schedule.

Concrete models keep their own schedule column and expose it as the
``scheduled_at`` synonym, so eligibility queries and the transition applier
only ever touch ``status``, ``scheduled_at``, ``id`` and ``display_label``.
"""
from __future__ import annotations

from typing import ClassVar

from sqlalchemy import Enum
from sqlalchemy.orm import Mapped, mapped_column

from .enums import PublishStatus


class PublishableMixin:
    kind: ClassVar[str] = "entity"

    status: Mapped[PublishStatus] = mapped_column(
        Enum(PublishStatus), default=PublishStatus.DRAFT, index=True, nullable=False
    )

    @property
    def display_label(self) -> str:
        title = getattr(self, "title", None)
        return title or f"{self.kind} #{getattr(self, 'id', '?')}"


__all__ = ["PublishableMixin"]
