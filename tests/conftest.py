import os

import pytest

os.environ.setdefault("TWILIO_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("EMAIL_USER", "rotibank@example.com")
os.environ.setdefault("EMAIL_PASS", "test-pass")

from app import create_app
from config import TWILIO_SANDBOX_NUMBER
from donation import DonationNotifier
from notifiers import EmailDeliveryError, MessagingDeliveryError


class FakeEmailSender:
    def __init__(self, error: str | None = None):
        self.error = error
        self.sent = []

    def send(self, to, subject, body):
        self.sent.append({"to": to, "subject": subject, "body": body})
        if self.error:
            raise EmailDeliveryError(self.error)


class FakeWhatsAppSender:
    def __init__(self, from_number=TWILIO_SANDBOX_NUMBER, error: str | None = None, code=None):
        self.from_number = from_number
        self.error = error
        self.code = code
        self.sent = []

    def send(self, to, body):
        self.sent.append({"to": to, "body": body})
        if self.error:
            raise MessagingDeliveryError(self.error, code=self.code)
        return "SM123"


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def whatsapp_sender():
    return FakeWhatsAppSender()


@pytest.fixture
def make_notifier():
    def _make(email_error=None, whatsapp_error=None, whatsapp_code=None,
              from_number=TWILIO_SANDBOX_NUMBER, **kwargs):
        email = FakeEmailSender(error=email_error)
        whatsapp = FakeWhatsAppSender(from_number=from_number, error=whatsapp_error, code=whatsapp_code)
        return DonationNotifier(email, whatsapp, **kwargs)

    return _make


@pytest.fixture
def notifier(email_sender, whatsapp_sender):
    return DonationNotifier(email_sender, whatsapp_sender)


@pytest.fixture
def app(notifier, tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "REPLIES_FILE": None,
            "CONVERSATION_LOG_FILE": str(tmp_path / "turns.jsonl"),
        },
        notifier=notifier,
    )
    return app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c
