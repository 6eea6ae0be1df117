"""Alert senders - the delivery side of the alert dispatcher.

Every sender exposes ``send(destination, message) -> bool``. Delivery
problems are raised internally as ``DispatchError``, logged, and reported
as ``False``; they never propagate into the monitoring core.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..errors import DispatchError

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

# Twilio rejects bodies longer than this
MAX_SMS_LENGTH = 1600


class AlertSender(ABC):
    """Delivers one message to one destination."""

    channel = "unknown"

    @abstractmethod
    async def _deliver(self, destination: str, message: str):
        """Deliver the message or raise DispatchError."""

    async def send(self, destination: str, message: str) -> bool:
        try:
            await self._deliver(destination, message)
            return True
        except DispatchError as e:
            logger.error(f"Failed to send {self.channel} alert to {destination}: {e}")
            return False


class LogSender(AlertSender):
    """Writes the alert to the log; used when no delivery channel is configured."""

    channel = "log"

    async def _deliver(self, destination: str, message: str):
        logger.warning(f"ALERT for {destination}: {message}")


class TwilioSmsSender(AlertSender):
    """Sends SMS alerts through the Twilio Messages API."""

    channel = "sms"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_phone: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: int = 10,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_phone = from_phone
        self.transport = transport
        self.timeout = timeout

    @staticmethod
    def _e164(phone: str) -> str:
        return phone if phone.startswith("+") else f"+{phone}"

    async def _deliver(self, destination: str, message: str):
        if not all([self.account_sid, self.auth_token, self.from_phone]):
            raise DispatchError("Twilio not configured")

        url = TWILIO_API_URL.format(sid=self.account_sid)
        data = {
            "From": self._e164(self.from_phone),
            "To": self._e164(destination),
            "Body": message[:MAX_SMS_LENGTH],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url,
                    data=data,
                    auth=(self.account_sid, self.auth_token),
                )
        except httpx.HTTPError as e:
            raise DispatchError(f"Twilio request failed: {e}") from e

        if response.status_code >= 400:
            raise DispatchError(f"Twilio returned {response.status_code}: {response.text[:200]}")
        logger.info(f"SMS sent to {data['To']}")
