import secrets
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root on sys.path so 'campus_scheduler' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from campus_scheduler.database import Base  # type: ignore
"""Pytest fixtures and factories.

Important: SQLAlchemy relationship configuration requires all model modules to be imported
before Base.metadata.create_all(), otherwise back_populates targets might not exist yet.
"""
from campus_scheduler.models.db import (
    Content, Notice, Student, StudentEnroll, Fee, User,
)
from campus_scheduler.models.db.enums import FeeStatus, PublishStatus, RecordStatus
from campus_scheduler.errors import ChannelSendFailure
from campus_scheduler.jobs.base import JobHandle, QueuedJob
from campus_scheduler.jobs.queue import PriorityDelayQueue
from campus_scheduler.jobs.worker import JobQueue

# Fixed query boundary so window edges are exact.
NOW = datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc)

# Single shared in-memory connection; job worker threads never touch the store.
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# ---------- Fakes ----------

class RecordingChannel:
    """Channel sender that records calls; addresses listed in fail_* raise."""

    def __init__(self, *, fail_email=(), fail_sms=()):
        self.fail_email = set(fail_email)
        self.fail_sms = set(fail_sms)
        self.calls: list[tuple[str, str]] = []
        self.messages: list[tuple[str, str, str]] = []
        self.sms: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def send_message(self, address: str, subject: str, body: str) -> None:
        with self._lock:
            self.calls.append(("email", address))
        if address in self.fail_email:
            raise ChannelSendFailure("email", f"mailbox {address} rejected")
        with self._lock:
            self.messages.append((address, subject, body))

    def send_sms(self, phone_number: str, text: str) -> None:
        with self._lock:
            self.calls.append(("sms", phone_number))
        if phone_number in self.fail_sms:
            raise ChannelSendFailure("sms", f"gateway refused {phone_number}")
        with self._lock:
            self.sms.append((phone_number, text))


class RecordingQueue:
    """Stand-in for JobQueue that keeps submitted jobs without running them."""

    def __init__(self):
        self.jobs: list[QueuedJob] = []

    def submit(self, job: QueuedJob) -> JobHandle:
        self.jobs.append(job)
        return JobHandle(job)


@dataclass(kw_only=True)
class ScriptedJob(QueuedJob):
    """Job whose attempts follow a script: each entry is raised if it is an
    exception, otherwise returned. The last entry repeats."""

    script: list[Any] = field(default_factory=lambda: ["ok"])
    sleep_first: float = 0.0
    calls: int = 0
    terminal_errors: list[BaseException | None] = field(default_factory=list)
    hook_raises: bool = False
    hook_sleep: float = 0.0

    def handle(self) -> Any:
        self.calls += 1
        if self.sleep_first and self.calls == 1:
            threading.Event().wait(self.sleep_first)
        step = self.script[min(self.calls, len(self.script)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step

    def on_terminal_failure(self, last_error):
        if self.hook_sleep:
            threading.Event().wait(self.hook_sleep)
        self.terminal_errors.append(last_error)
        if self.hook_raises:
            raise RuntimeError("hook exploded")


@pytest.fixture()
def recording_channel():
    return RecordingChannel()


@pytest.fixture()
def recording_queue():
    return RecordingQueue()


@pytest.fixture()
def job_queue():
    """Real job queue with one worker and no delay between attempts."""
    queue = JobQueue(PriorityDelayQueue(), worker_count=1, poll_timeout=0.05, backoff=lambda attempt: 0.0)
    queue.start()
    yield queue
    queue.shutdown(wait=False)


# ---------- Data factory helpers ----------

@pytest.fixture()
def content_factory(db_session):
    def _create(title: str, scheduled_at: datetime, *, status: PublishStatus = PublishStatus.DRAFT):
        c = Content(title=title, date=scheduled_at, status=status)
        db_session.add(c)
        db_session.commit()
        db_session.refresh(c)
        return c
    return _create


@pytest.fixture()
def notice_factory(db_session):
    def _create(title: str, scheduled_at: datetime, *, status: PublishStatus = PublishStatus.DRAFT):
        n = Notice(title=title, notice_no=f"N-{secrets.token_hex(3)}", date=scheduled_at, status=status)
        db_session.add(n)
        db_session.commit()
        db_session.refresh(n)
        return n
    return _create


@pytest.fixture()
def student_factory(db_session):
    def _create(
        first_name: str = "Asha",
        *,
        last_name: str | None = "Rao",
        email: str | None = None,
        phone: str | None = None,
        program_id: int | None = 1,
        status: RecordStatus = RecordStatus.ACTIVE,
    ):
        s = Student(
            student_id=f"S-{secrets.token_hex(4)}",
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            program_id=program_id,
            status=status,
        )
        db_session.add(s)
        db_session.flush()
        db_session.add(StudentEnroll(student_id=s.id, program_id=program_id))
        db_session.commit()
        db_session.refresh(s)
        return s
    return _create


@pytest.fixture()
def fee_factory(db_session, student_factory):
    def _create(
        due_at: datetime,
        *,
        student: Student | None = None,
        amount: str = "1500.00",
        status: FeeStatus = FeeStatus.UNPAID,
    ):
        if student is None:
            student = student_factory(email=f"{secrets.token_hex(4)}@example.com")
        enroll = db_session.query(StudentEnroll).filter_by(student_id=student.id).first()
        f = Fee(student_enroll_id=enroll.id, fee_amount=Decimal(amount), due_date=due_at, status=status)
        db_session.add(f)
        db_session.commit()
        db_session.refresh(f)
        return f
    return _create


@pytest.fixture()
def staff_factory(db_session):
    def _create(
        first_name: str = "Ravi",
        *,
        email: str | None = None,
        phone: str | None = None,
        status: RecordStatus = RecordStatus.ACTIVE,
    ):
        u = User(
            staff_id=f"T-{secrets.token_hex(4)}",
            first_name=first_name,
            last_name="Staff",
            email=email if email is not None else f"{secrets.token_hex(4)}@college.example",
            phone=phone,
            status=status,
        )
        db_session.add(u)
        db_session.commit()
        db_session.refresh(u)
        return u
    return _create


def days(n: float) -> timedelta:
    return timedelta(days=n)
