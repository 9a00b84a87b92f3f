"""SMS channel via gateway HTTP APIs.

Providers:
    simulation  log only (default for development)
    twilio      POST https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json
    nexmo       POST https://rest.nexmo.com/sms/json

Sends are synchronous from the caller's point of view (job bodies run on a
worker thread); the HTTP exchange itself uses aiohttp.
"""
from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Tuple

import aiohttp

from campus_scheduler.errors import ChannelSendFailure
from campus_scheduler.utils import get_logger

logger = get_logger(__name__)

SMS_MAX_GSM7 = 160

TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
NEXMO_URL = "https://rest.nexmo.com/sms/json"

PROVIDERS = ("simulation", "twilio", "nexmo")


def _mask(phone: str) -> str:
    return f"***{phone[-4:]}" if len(phone) > 4 else "***"


def segment_count(text: str) -> int:
    return max(1, 1 + (len(text) - 1) // SMS_MAX_GSM7)


class SmsGateway:
    def __init__(
        self,
        provider: str = "simulation",
        *,
        twilio_sid: Optional[str] = None,
        twilio_auth_token: Optional[str] = None,
        twilio_number: Optional[str] = None,
        nexmo_key: Optional[str] = None,
        nexmo_secret: Optional[str] = None,
        nexmo_sender_name: Optional[str] = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown SMS provider '{provider}'")
        if provider == "twilio" and not (twilio_sid and twilio_auth_token and twilio_number):
            raise ValueError("Twilio provider requires sid, auth token and number")
        if provider == "nexmo" and not (nexmo_key and nexmo_secret and nexmo_sender_name):
            raise ValueError("Nexmo provider requires key, secret and sender name")
        self.provider = provider
        self.twilio_sid = twilio_sid
        self.twilio_auth_token = twilio_auth_token
        self.twilio_number = twilio_number
        self.nexmo_key = nexmo_key
        self.nexmo_secret = nexmo_secret
        self.nexmo_sender_name = nexmo_sender_name
        self.timeout_seconds = timeout_seconds

    async def _post_form(
        self, url: str, data: dict[str, str], auth: Optional[aiohttp.BasicAuth] = None
    ) -> Tuple[int, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, data=data, auth=auth) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = await response.text()
                return response.status, payload

    def _request(self, phone_number: str, text: str) -> Tuple[str, dict[str, str], Optional[aiohttp.BasicAuth]]:
        if self.provider == "twilio":
            url = TWILIO_URL.format(sid=self.twilio_sid)
            data = {"From": str(self.twilio_number), "To": phone_number, "Body": text}
            return url, data, aiohttp.BasicAuth(str(self.twilio_sid), str(self.twilio_auth_token))
        data = {
            "api_key": str(self.nexmo_key),
            "api_secret": str(self.nexmo_secret),
            "from": str(self.nexmo_sender_name),
            "to": phone_number.lstrip("+"),
            "text": text,
        }
        return NEXMO_URL, data, None

    @staticmethod
    def _check_nexmo(payload: Any) -> Optional[str]:
        # Nexmo answers 200 even for rejected messages; status "0" means accepted.
        if not isinstance(payload, dict):
            return "unexpected response body"
        for message in payload.get("messages", []):
            if str(message.get("status")) != "0":
                return str(message.get("error-text") or f"status {message.get('status')}")
        return None

    def send_sms(self, phone_number: str, text: str) -> None:
        if self.provider == "simulation":
            logger.info(
                "SMS (simulation)",
                phone=_mask(phone_number),
                length=len(text),
                segments=segment_count(text),
            )
            return

        url, data, auth = self._request(phone_number, text)
        try:
            status, payload = asyncio.run(self._post_form(url, data, auth))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("SMS gateway request failed", provider=self.provider, phone=_mask(phone_number), error=str(e))
            raise ChannelSendFailure("sms", f"{self.provider} request failed: {e}") from e

        if status >= 300:
            logger.warning("SMS gateway rejected message", provider=self.provider, phone=_mask(phone_number), status=status)
            raise ChannelSendFailure("sms", f"{self.provider} returned HTTP {status}")
        if self.provider == "nexmo":
            problem = self._check_nexmo(payload)
            if problem:
                raise ChannelSendFailure("sms", f"nexmo rejected message: {problem}")
        logger.debug("SMS sent", provider=self.provider, phone=_mask(phone_number), segments=segment_count(text))


def create_sms_gateway(settings: Mapping[str, Any]) -> SmsGateway:
    return SmsGateway(
        str(settings.get("provider") or "simulation").lower(),
        twilio_sid=settings.get("twilio_sid"),
        twilio_auth_token=settings.get("twilio_auth_token"),
        twilio_number=settings.get("twilio_number"),
        nexmo_key=settings.get("nexmo_key"),
        nexmo_secret=settings.get("nexmo_secret"),
        nexmo_sender_name=settings.get("nexmo_sender_name"),
        timeout_seconds=float(settings.get("timeout_seconds") or 15.0),
    )


__all__ = ["SmsGateway", "create_sms_gateway", "segment_count"]
