"""Channel-send capability consumed by the notification fan-out."""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MessageSender(Protocol):
    def send_message(self, address: str, subject: str, body: str) -> None: ...


@runtime_checkable
class SmsSender(Protocol):
    def send_sms(self, phone_number: str, text: str) -> None: ...


@runtime_checkable
class ChannelSender(MessageSender, SmsSender, Protocol):
    """Both channels. Each call raises ChannelSendFailure on failure."""


class ChannelGateway:
    """Pairs a mail sender and an SMS sender behind one ChannelSender."""

    def __init__(self, mailer: MessageSender, sms: SmsSender):
        self.mailer = mailer
        self.sms = sms

    def send_message(self, address: str, subject: str, body: str) -> None:
        self.mailer.send_message(address, subject, body)

    def send_sms(self, phone_number: str, text: str) -> None:
        self.sms.send_sms(phone_number, text)


__all__ = ["MessageSender", "SmsSender", "ChannelSender", "ChannelGateway"]
