"""Email channel: SMTP delivery or log-only.

A single send is attempted once; retrying is the job queue's business.
Addresses are logged, message bodies are not.
"""
from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Mapping, Optional

from campus_scheduler.errors import ChannelSendFailure
from campus_scheduler.utils import get_logger

logger = get_logger(__name__)


class LogMailer:
    """Mail driver that records the message in the log instead of sending."""

    def send_message(self, address: str, subject: str, body: str) -> None:
        logger.info("Mail (log driver)", to=address, subject=subject, body_length=len(body))


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        encryption: str = "tls",
        sender_email: str = "noreply@college.local",
        sender_name: Optional[str] = None,
        reply_email: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if encryption not in {"tls", "ssl", "none"}:
            raise ValueError(f"Unknown mail encryption '{encryption}'")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.encryption = encryption
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.reply_email = reply_email
        self.timeout_seconds = timeout_seconds

    def _build(self, address: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.sender_name, self.sender_email)) if self.sender_name else self.sender_email
        msg["To"] = address
        if self.reply_email:
            msg["Reply-To"] = self.reply_email
        msg.set_content(body)
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.encryption == "ssl":
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds, context=ssl.create_default_context())
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
        if self.encryption == "tls":
            server.starttls(context=ssl.create_default_context())
        return server

    def send_message(self, address: str, subject: str, body: str) -> None:
        msg = self._build(address, subject, body)
        try:
            with self._connect() as server:
                if self.username:
                    server.login(self.username, self.password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send failed", to=address, host=self.host, error=str(e))
            raise ChannelSendFailure("email", str(e)) from e
        logger.debug("SMTP message sent", to=address, host=self.host)


def create_mailer(settings: Mapping[str, Any]):
    driver = str(settings.get("driver") or "log").lower()
    if driver == "log":
        return LogMailer()
    if driver == "smtp":
        return SmtpMailer(
            str(settings.get("host") or "localhost"),
            int(settings.get("port") or 587),
            username=settings.get("username"),  # type: ignore[arg-type]
            password=settings.get("password"),  # type: ignore[arg-type]
            encryption=str(settings.get("encryption") or "tls").lower(),
            sender_email=str(settings.get("sender_email") or "noreply@college.local"),
            sender_name=settings.get("sender_name"),  # type: ignore[arg-type]
            reply_email=settings.get("reply_email"),  # type: ignore[arg-type]
            timeout_seconds=float(settings.get("timeout_seconds") or 30.0),
        )
    raise ValueError(f"Unknown mail driver '{driver}'")


__all__ = ["LogMailer", "SmtpMailer", "create_mailer"]
