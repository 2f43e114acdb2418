"""
notifiers.py
------------
Outbound notification channels used by the donation flow.

Each sender wraps one third-party capability behind a single ``send`` call
and turns provider failures into a ``DeliveryError`` carrying the provider's
own message, so callers can record the failure instead of crashing.
"""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

logger = logging.getLogger(__name__)


# ============================================================
# ERRORS
# ============================================================

class DeliveryError(Exception):
    """A notification could not be delivered by its provider."""

    channel = "notification"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EmailDeliveryError(DeliveryError):
    channel = "email"


class MessagingDeliveryError(DeliveryError):
    channel = "whatsapp"

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


# ============================================================
# EMAIL
# ============================================================

def _smtp_error_text(exc: Exception) -> str:
    # SMTPResponseException keeps the server reply as bytes
    smtp_error = getattr(exc, "smtp_error", None)
    if isinstance(smtp_error, bytes):
        return smtp_error.decode("utf-8", errors="replace")
    if smtp_error:
        return str(smtp_error)
    return str(exc)


class EmailSender:
    """Sends plain-text mail over SMTP-over-SSL from the organisation's account."""

    def __init__(self, user: str, password: str, sender_name: str,
                 host: str = "smtp.gmail.com", port: int = 465, timeout: float = 30):
        self.user = user
        self.password = password
        self.sender_name = sender_name
        self.host = host
        self.port = port
        self.timeout = timeout

    @property
    def from_address(self) -> str:
        return formataddr((self.sender_name, self.user))

    def send(self, to: str, subject: str, body: str) -> None:
        try:
            msg = EmailMessage()
            msg["From"] = self.from_address
            msg["To"] = to
            msg["Subject"] = subject
            msg.set_content(body)

            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except smtplib.SMTPAuthenticationError as exc:
            raise EmailDeliveryError(f"Invalid login: {_smtp_error_text(exc)}") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(_smtp_error_text(exc)) from exc
        except ValueError as exc:
            # malformed header such as an address with an embedded newline
            raise EmailDeliveryError(str(exc)) from exc


# ============================================================
# WHATSAPP
# ============================================================

class WhatsAppSender:
    """Sends WhatsApp messages through the Twilio REST API."""

    def __init__(self, client: Client, from_number: str):
        self.client = client
        self.from_number = from_number

    @classmethod
    def from_credentials(cls, account_sid: str, auth_token: str, from_number: str) -> "WhatsAppSender":
        return cls(Client(account_sid, auth_token), from_number)

    def send(self, to: str, body: str) -> str:
        """Send ``body`` to ``to`` (``whatsapp:+<digits>``) and return the message SID."""
        try:
            message = self.client.messages.create(from_=self.from_number, to=to, body=body)
        except TwilioRestException as exc:
            raise MessagingDeliveryError(exc.msg, code=exc.code) from exc
        except TwilioException as exc:
            raise MessagingDeliveryError(str(exc)) from exc
        except requests.exceptions.RequestException as exc:
            raise MessagingDeliveryError(str(exc)) from exc
        return message.sid
