"""
Pydantic schemas for notification recipients and job payloads.
"""
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, ConfigDict, TypeAdapter, field_validator

from campus_scheduler.models.db.enums import NotificationKind


class Recipient(BaseModel):
    """
    A person to notify, resolved from a fee owner or a staff/student roster.

    Either contact channel may be absent; an absent channel is skipped for
    this recipient, it is not a failure.
    """
    identity: str = Field(min_length=1, description="Student or staff record id")
    display_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    # Message data (fee amount, due date, free-text message)
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator("identity", mode="before")
    @classmethod
    def _coerce_identity(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("email", "phone", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @property
    def channels(self) -> List[str]:
        available = []
        if self.email:
            available.append("email")
        if self.phone:
            available.append("sms")
        return available


class DispatchSummary(BaseModel):
    """Outcome counts of one fan-out over a recipient batch."""
    kind: NotificationKind
    total: int = Field(ge=0)
    sent: int = Field(ge=0, description="Recipients reached on at least one channel")
    skipped: int = Field(ge=0, description="Recipients with no contact channel")
    failed: int = Field(ge=0, description="Recipients whose every attempted channel failed")

    @property
    def skipped_or_failed(self) -> int:
        return self.skipped + self.failed


RecipientBatch = TypeAdapter(List[Recipient])


def parse_recipient_batch(raw: Any) -> List[Recipient]:
    """Validate a raw batch (Recipient objects or plain dicts).

    Raises pydantic.ValidationError for a malformed batch; a bare string or
    mapping is rejected instead of being iterated.
    """
    if isinstance(raw, (str, bytes, dict)):
        raise TypeError(f"Recipient batch must be a sequence, got {type(raw).__name__}")
    return RecipientBatch.validate_python(list(raw))
