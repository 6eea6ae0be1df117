"""Email sender - delivers alerts via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from dataclasses import dataclass

from ..errors import DispatchError
from .senders import AlertSender

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    from_address: str = ""


class SmtpEmailSender(AlertSender):
    """Alert sender that emails the check owner."""

    channel = "email"

    def __init__(self, config: EmailConfig):
        self.config = config

    def _build_message(self, destination: str, message: str) -> MIMEText:
        msg = MIMEText(message, "plain")
        msg["Subject"] = message.splitlines()[0][:120]
        msg["From"] = self.config.from_address or self.config.username
        msg["To"] = destination
        return msg

    def _send_blocking(self, destination: str, message: str):
        config = self.config
        msg = self._build_message(destination, message)
        from_addr = config.from_address or config.username

        logger.info(f"Connecting to {config.host}:{config.port} (tls={config.use_tls})...")
        with smtplib.SMTP(config.host, config.port, timeout=30) as server:
            if config.use_tls:
                server.starttls(context=ssl.create_default_context())
            if config.username and config.password:
                server.login(config.username, config.password)
            server.sendmail(from_addr, [destination], msg.as_string())

    async def _deliver(self, destination: str, message: str):
        if not self.config.host:
            raise DispatchError("Email not configured - missing SMTP host")

        try:
            # smtplib is blocking; keep it off the event loop
            await asyncio.to_thread(self._send_blocking, destination, message)
        except smtplib.SMTPAuthenticationError as e:
            raise DispatchError(f"SMTP authentication failed for user '{self.config.username}': {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            raise DispatchError(f"Recipient refused by server: {e}") from e
        except smtplib.SMTPException as e:
            raise DispatchError(f"SMTP error: {type(e).__name__}: {e}") from e
        except (ConnectionRefusedError, TimeoutError) as e:
            raise DispatchError(f"Cannot reach {self.config.host}:{self.config.port}: {e}") from e
        except OSError as e:
            raise DispatchError(f"Network error sending email: {e}") from e

        logger.info(f"Email sent to {destination}")
