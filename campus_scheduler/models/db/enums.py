"""Central Enum definitions for record states and notification kinds."""
from __future__ import annotations
import enum


class PublishStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class FeeStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class RecordStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class NotificationKind(str, enum.Enum):
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    GENERAL = "general"


__all__ = [
    "PublishStatus",
    "FeeStatus",
    "RecordStatus",
    "NotificationKind",
]
