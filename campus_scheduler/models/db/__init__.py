from .users import User
from .students import Student, StudentEnroll
from .fees import Fee
from .contents import Content
from .notices import Notice
from .publishable import PublishableMixin
from .enums import PublishStatus, FeeStatus, RecordStatus, NotificationKind

__all__ = [
    "User",
    "Student",
    "StudentEnroll",
    "Fee",
    "Content",
    "Notice",
    "PublishableMixin",
    "PublishStatus",
    "FeeStatus",
    "RecordStatus",
    "NotificationKind",
]
