"""
config.py
---------
Environment-driven settings for the Roti Bank fulfillment webhook.
Values are read once at import (after loading ``.env``) and copied into
``app.config`` by ``create_app``.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


TWILIO_SANDBOX_NUMBER = "whatsapp:+14155238886"

VALIDATION_POLICIES = ("strict", "lenient")
RESPONSE_POLICIES = ("all_or_nothing", "best_effort")


def _choice(key: str, allowed: tuple, default: str) -> str:
    value = (os.getenv(key) or "").strip().lower()
    if not value:
        return default
    if value not in allowed:
        logger.warning("Unknown %s=%r (expected one of %s), using %r", key, value, ", ".join(allowed), default)
        return default
    return value


class Config:
    # Email (SMTP)
    EMAIL_USER = os.getenv("EMAIL_USER", "")
    EMAIL_PASS = os.getenv("EMAIL_PASS", "")
    EMAIL_HOST = os.getenv("EMAIL_HOST", "smtp.gmail.com")
    EMAIL_PORT = int(os.getenv("EMAIL_PORT", "465"))
    EMAIL_TIMEOUT = float(os.getenv("EMAIL_TIMEOUT", "30"))

    # WhatsApp (Twilio)
    TWILIO_SID = os.getenv("TWILIO_SID", "")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", TWILIO_SANDBOX_NUMBER)
    TWILIO_SANDBOX_JOIN_CODE = os.getenv("TWILIO_SANDBOX_JOIN_CODE", "")

    ORG_NAME = os.getenv("ORG_NAME", "Saylani Roti Bank")
    DONATION_VALIDATION = _choice("DONATION_VALIDATION", VALIDATION_POLICIES, "strict")
    DONATION_RESPONSE_POLICY = _choice(
        "DONATION_RESPONSE_POLICY", RESPONSE_POLICIES, "all_or_nothing"
    )

    REPLIES_FILE = os.getenv("REPLIES_FILE", "intents.yaml")
    CONVERSATION_LOG_FILE = os.getenv("CONVERSATION_LOG_FILE", "")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    PORT = int(os.getenv("PORT", "8080"))
