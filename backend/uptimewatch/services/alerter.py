"""Alerter service - composes and delivers alerts for confirmed state changes.

Delivery is best-effort. By the time ``notify`` is called the transition is
already durable; a failed send is logged and recorded on the user's
last-known alert status, never rolled back.
"""
import logging
import secrets
from datetime import datetime
from typing import Optional, Tuple

from ..config import Settings
from ..errors import StorageError
from ..schemas import AlertRecord, CheckRecord, UserRecord
from ..utils.clock import utcnow
from ..utils.locks import KeyedLocks
from .email_sender import EmailConfig, SmtpEmailSender
from .senders import AlertSender, LogSender, TwilioSmsSender
from .storage import ALERTS, USERS, PersistenceGateway

logger = logging.getLogger(__name__)


class AlerterService:
    """Service for sending alerts over SMS, email, or the log."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        sms_sender: Optional[AlertSender] = None,
        email_sender: Optional[AlertSender] = None,
        fallback: Optional[AlertSender] = None,
        user_locks: Optional[KeyedLocks] = None,
    ):
        self.gateway = gateway
        self.sms_sender = sms_sender
        self.email_sender = email_sender
        self.fallback = fallback or LogSender()
        # Shared with the account service, which also rewrites user records
        self.user_locks = user_locks or KeyedLocks()

    def compose_message(self, check: CheckRecord, old_state: str, new_state: str) -> str:
        """Build the alert text."""
        return (
            f"Alert: your check for {check.method} {check.url} "
            f"is now {new_state.upper()} (was {old_state})"
        )

    def choose_channel(self, user: UserRecord) -> Tuple[AlertSender, str]:
        """Pick the sender and destination for ``user``.

        SMS to the user's phone when configured, then email, then the log.
        """
        if self.sms_sender is not None:
            return self.sms_sender, user.phone
        if self.email_sender is not None and user.email:
            return self.email_sender, user.email
        return self.fallback, user.phone

    async def notify(
        self,
        user: UserRecord,
        check: CheckRecord,
        old_state: str,
        new_state: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Send one alert for ``check`` going from ``old_state`` to ``new_state``."""
        now = now or utcnow()
        sender, destination = self.choose_channel(user)
        message = self.compose_message(check, old_state, new_state)

        success = await sender.send(destination, message)
        if success:
            logger.info(f"Alert sent via {sender.channel} for check {check.id}: {old_state} -> {new_state}")

        await self._record(user, check, old_state, new_state, sender.channel, message, success, now)
        return success

    async def _record(
        self,
        user: UserRecord,
        check: CheckRecord,
        old_state: str,
        new_state: str,
        channel: str,
        message: str,
        success: bool,
        now: datetime,
    ):
        """Log the attempt and update the user's last-known alert status."""
        alert = AlertRecord(
            id=secrets.token_hex(10),
            check_id=check.id,
            user_id=user.id,
            old_state=old_state,
            new_state=new_state,
            channel=channel,
            message=message,
            success=success,
            sent_at=now,
        )
        try:
            await self.gateway.put(ALERTS, alert.id, alert.model_dump())

            async with self.user_locks(user.id):
                current = await self.gateway.get(USERS, user.id)
                if current is not None:
                    current.update(last_alert_at=now, last_alert_ok=success)
                    await self.gateway.put(USERS, user.id, current)
        except StorageError as e:
            logger.error(f"Failed to record alert for check {check.id}: {e}")


def build_alerter(gateway: PersistenceGateway, settings: Settings) -> AlerterService:
    """Create an alerter with the channels enabled in ``settings``."""
    sms_sender = None
    if settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_phone:
        sms_sender = TwilioSmsSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_phone=settings.twilio_from_phone,
        )

    email_sender = None
    if settings.smtp_host:
        email_sender = SmtpEmailSender(EmailConfig(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.alert_email_from,
        ))

    if sms_sender is None and email_sender is None:
        logger.warning("No alert channel configured - alerts will only be logged")

    return AlerterService(gateway, sms_sender=sms_sender, email_sender=email_sender)
