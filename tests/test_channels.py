import smtplib
from unittest.mock import MagicMock, patch

import aiohttp
import pytest

from campus_scheduler.channels import ChannelGateway, LogMailer, SmsGateway, SmtpMailer, create_mailer, create_sms_gateway
from campus_scheduler.channels.sms import NEXMO_URL, segment_count
from campus_scheduler.errors import ChannelSendFailure


def test_smtp_mailer_sends_with_starttls_and_login():
    mailer = SmtpMailer(
        "smtp.college.example",
        587,
        username="mailer",
        password="secret",
        sender_email="office@college.example",
        sender_name="Accounts Office",
        reply_email="accounts@college.example",
    )
    with patch("campus_scheduler.channels.mail.smtplib.SMTP") as smtp_cls:
        mailer.send_message("asha@example.com", "Fee Payment Reminder", "Dear Asha, ...")

    smtp_cls.assert_called_once_with("smtp.college.example", 587, timeout=30.0)
    server = smtp_cls.return_value
    server.starttls.assert_called_once()
    session = server.__enter__.return_value
    session.login.assert_called_once_with("mailer", "secret")
    (msg,), _ = session.send_message.call_args
    assert msg["To"] == "asha@example.com"
    assert msg["Subject"] == "Fee Payment Reminder"
    assert msg["Reply-To"] == "accounts@college.example"
    assert "Accounts Office" in msg["From"]


def test_smtp_failure_becomes_channel_send_failure():
    mailer = SmtpMailer("smtp.college.example", 465, encryption="ssl")
    with patch("campus_scheduler.channels.mail.smtplib.SMTP_SSL") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
        with pytest.raises(ChannelSendFailure) as exc:
            mailer.send_message("nobody@example.com", "s", "b")
    assert exc.value.channel == "email"


def test_mailer_factory():
    assert isinstance(create_mailer({"driver": "log"}), LogMailer)
    smtp = create_mailer({"driver": "smtp", "host": "mail.example", "port": 2525, "encryption": "none"})
    assert isinstance(smtp, SmtpMailer) and smtp.port == 2525
    with pytest.raises(ValueError):
        create_mailer({"driver": "carrier-pigeon"})


def test_simulation_sms_never_calls_out():
    gateway = SmsGateway("simulation")
    gateway._post_form = MagicMock(side_effect=AssertionError("no HTTP in simulation"))
    gateway.send_sms("+15551234567", "hello")


def test_provider_credentials_required():
    with pytest.raises(ValueError):
        SmsGateway("twilio", twilio_sid="AC1")
    with pytest.raises(ValueError):
        create_sms_gateway({"provider": "nexmo", "nexmo_key": "k"})
    with pytest.raises(ValueError):
        SmsGateway("pager")


def _twilio() -> SmsGateway:
    return SmsGateway("twilio", twilio_sid="AC123", twilio_auth_token="tok", twilio_number="+15550009999")


def test_twilio_posts_form_with_basic_auth():
    gateway = _twilio()
    seen = {}

    async def fake_post(url, data, auth=None):
        seen.update(url=url, data=data, auth=auth)
        return 201, {"sid": "SM1", "status": "queued"}

    gateway._post_form = fake_post
    gateway.send_sms("+15551234567", "Your fee is due")

    assert seen["url"].endswith("/Accounts/AC123/Messages.json")
    assert seen["data"] == {"From": "+15550009999", "To": "+15551234567", "Body": "Your fee is due"}
    assert seen["auth"].login == "AC123"


def test_twilio_http_error_is_send_failure():
    gateway = _twilio()

    async def fake_post(url, data, auth=None):
        return 400, {"message": "invalid number"}

    gateway._post_form = fake_post
    with pytest.raises(ChannelSendFailure) as exc:
        gateway.send_sms("+1", "x")
    assert exc.value.channel == "sms"


def test_transport_error_is_send_failure():
    gateway = _twilio()

    async def fake_post(url, data, auth=None):
        raise aiohttp.ClientConnectionError("connection reset")

    gateway._post_form = fake_post
    with pytest.raises(ChannelSendFailure):
        gateway.send_sms("+15551234567", "x")


def test_nexmo_rejection_in_body_is_send_failure():
    gateway = SmsGateway("nexmo", nexmo_key="k", nexmo_secret="s", nexmo_sender_name="COLLEGE")
    seen = {}

    async def rejected(url, data, auth=None):
        seen.update(url=url, data=data)
        return 200, {"messages": [{"status": "2", "error-text": "Missing to param"}]}

    gateway._post_form = rejected
    with pytest.raises(ChannelSendFailure) as exc:
        gateway.send_sms("+15551234567", "x")
    assert "Missing to param" in str(exc.value)
    assert seen["url"] == NEXMO_URL
    assert seen["data"]["to"] == "15551234567"


def test_segment_count():
    assert segment_count("") == 1
    assert segment_count("a" * 160) == 1
    assert segment_count("a" * 161) == 2


def test_gateway_routes_each_channel():
    mailer, sms = MagicMock(), MagicMock()
    gateway = ChannelGateway(mailer, sms)
    gateway.send_message("a@example.com", "subject", "body")
    gateway.send_sms("+1555", "text")
    mailer.send_message.assert_called_once_with("a@example.com", "subject", "body")
    sms.send_sms.assert_called_once_with("+1555", "text")
