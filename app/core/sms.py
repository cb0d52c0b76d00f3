import logging
from dataclasses import dataclass
from typing import Optional

import requests

from app.config import Settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


@dataclass
class SmsResult:
    success: bool
    sid: Optional[str] = None
    error: Optional[str] = None


class TwilioSmsSender:
    """Sends claim links through the Twilio REST API."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str, timeout: float = 10.0):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings) -> Optional["TwilioSmsSender"]:
        if not config.sms_configured:
            return None
        return cls(
            config.TWILIO_ACCOUNT_SID,
            config.TWILIO_AUTH_TOKEN,
            config.TWILIO_FROM_NUMBER,
        )

    def send(self, to: str, body: str) -> SmsResult:
        try:
            resp = requests.post(
                TWILIO_MESSAGES_URL.format(sid=self.account_sid),
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("sms send failed: %s", exc.__class__.__name__)
            return SmsResult(success=False, error="SMS provider unreachable")

        if resp.status_code >= 400:
            logger.warning("sms send rejected with status %s", resp.status_code)
            return SmsResult(success=False, error="SMS provider rejected the message")

        return SmsResult(success=True, sid=resp.json().get("sid"))
