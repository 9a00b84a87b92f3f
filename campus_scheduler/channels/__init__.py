"""Notification delivery channels (email-like and SMS-like)."""
from campus_scheduler.config import MAIL_SETTINGS, SMS_SETTINGS

from .base import ChannelGateway, ChannelSender, MessageSender, SmsSender
from .mail import LogMailer, SmtpMailer, create_mailer
from .sms import SmsGateway, create_sms_gateway


def create_channel_gateway() -> ChannelGateway:
    """Build the configured mail + SMS senders."""
    return ChannelGateway(create_mailer(MAIL_SETTINGS), create_sms_gateway(SMS_SETTINGS))


__all__ = [
    "ChannelGateway",
    "ChannelSender",
    "MessageSender",
    "SmsSender",
    "LogMailer",
    "SmtpMailer",
    "SmsGateway",
    "create_mailer",
    "create_sms_gateway",
    "create_channel_gateway",
]
