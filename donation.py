"""
donation.py
-----------
Donation intent fulfillment.

Turns the raw Dialogflow parameters of a "Donate" turn into a typed
``DonationRequest``, sends the email receipt and the WhatsApp message
one after the other, and composes the single reply the donor sees.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

from config import TWILIO_SANDBOX_NUMBER
from notifiers import DeliveryError, EmailSender, MessagingDeliveryError, WhatsAppSender

logger = logging.getLogger(__name__)

# ============================================================
# CONSTANTS
# ============================================================

COUNTRY_CODE = "92"
LOCAL_NUMBER_MAX_DIGITS = 11
WHATSAPP_PREFIX = "whatsapp:+"

DEFAULT_DONATION_TYPE = "donation"
DEFAULT_DONOR_NAME = "Donor"
UNSPECIFIED_AMOUNT = "an unspecified amount"
PLACEHOLDER_EMAIL = "donor@example.com"
TEST_PHONE_NUMBER = "923001234567"

EMAIL_SUBJECT = "Donation Confirmation"
BLESSING = "May Allah bless you! 🤲"

MISSING_DETAILS_MESSAGE = "❗ Some details are missing. Please provide all required donation info."

INVALID_NUMBER_MARKER = "not a valid phone number"
TWILIO_INVALID_TO_NUMBER = 21211

# Parameter names in order of precedence
DONATION_TYPE_KEYS = ("any", "donation_type")
AMOUNT_KEYS = ("number", "amount")
NAME_KEYS = ("person", "given-name")
EMAIL_KEYS = ("email",)
PHONE_KEYS = ("phone-number", "phone")


class MissingFieldError(Exception):
    """Raised by strict validation when required donation fields are empty."""

    def __init__(self, fields: list):
        super().__init__(f"Missing donation fields: {', '.join(fields)}")
        self.fields = fields


# ============================================================
# NORMALIZATION
# ============================================================

def normalize_phone(raw: Any) -> str:
    """
    Reduce a phone number to bare digits with the Pakistani country code.

    Local numbers (11 digits or fewer, not already starting with 92) lose
    their leading zeros and get the 92 prefix: "0300-1234567" -> "923001234567".
    """
    if raw is None:
        return ""
    digits = re.sub(r"\D", "", str(raw))
    if digits and len(digits) <= LOCAL_NUMBER_MAX_DIGITS and not digits.startswith(COUNTRY_CODE):
        digits = COUNTRY_CODE + digits.lstrip("0")
    return digits


def resolve_name(person: Any) -> str:
    if isinstance(person, Mapping):
        return str(person.get("name") or "")
    if person:
        return str(person)
    return ""


def _first(params: Mapping, keys: tuple) -> Any:
    for key in keys:
        value = params.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_amount(value: Any) -> str | None:
    """Return a printable amount, or None when it is missing or not numeric."""
    if isinstance(value, Mapping):
        # unit-currency entity: {"amount": 500, "currency": "PKR"}
        amount = _parse_amount(value.get("amount"))
        currency = value.get("currency")
        if amount and currency:
            return f"{amount} {currency}"
        return amount
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return _format_number(value) if value else None
    try:
        number = float(str(value).replace(",", "").strip())
    except ValueError:
        return None
    return _format_number(number) if number else None


# ============================================================
# DATA
# ============================================================

@dataclass
class DonationRequest:
    donation_type: str
    amount: str
    donor_name: str
    email: str
    phone_raw: str
    phone_normalized: str

    @classmethod
    def from_parameters(cls, params: Mapping | None, lenient: bool = False) -> "DonationRequest":
        """
        Resolve the Dialogflow parameter bag once.

        In lenient mode absent fields fall back to placeholders so that the
        notifications are always attempted; in strict mode they stay empty and
        ``validate`` reports them.
        """
        params = params or {}

        donation_type = str(_first(params, DONATION_TYPE_KEYS) or DEFAULT_DONATION_TYPE)

        raw_amount = _first(params, AMOUNT_KEYS)
        amount = _parse_amount(raw_amount)
        if lenient:
            amount = amount or UNSPECIFIED_AMOUNT
        elif not amount:
            # strict mode passes free-text amounts through, never a unit-currency object
            is_text = raw_amount and not isinstance(raw_amount, Mapping)
            amount = str(raw_amount) if is_text else ""

        donor_name = ""
        for key in NAME_KEYS:
            donor_name = resolve_name(params.get(key))
            if donor_name:
                break
        donor_name = donor_name or DEFAULT_DONOR_NAME

        email = str(_first(params, EMAIL_KEYS) or "").strip()
        phone_raw = _first(params, PHONE_KEYS)
        phone_raw = str(phone_raw) if phone_raw is not None else ""
        phone = normalize_phone(phone_raw)

        if lenient:
            email = email or PLACEHOLDER_EMAIL
            phone = phone or TEST_PHONE_NUMBER

        return cls(
            donation_type=donation_type,
            amount=amount,
            donor_name=donor_name,
            email=email,
            phone_raw=phone_raw,
            phone_normalized=phone,
        )

    def validate(self) -> None:
        missing = [
            name for name in ("donation_type", "amount", "donor_name", "email", "phone_normalized")
            if not getattr(self, name)
        ]
        if missing:
            raise MissingFieldError(missing)


@dataclass
class NotificationOutcome:
    email: str
    phone: str
    email_sent: bool = False
    email_error: str | None = None
    whatsapp_sent: bool = False
    whatsapp_error: str | None = None
    whatsapp_sid: str | None = None

    @property
    def all_sent(self) -> bool:
        return self.email_sent and self.whatsapp_sent

    @property
    def any_sent(self) -> bool:
        return self.email_sent or self.whatsapp_sent

    def sent_channels(self) -> list:
        channels = []
        if self.email_sent:
            channels.append(self.email)
        if self.whatsapp_sent:
            channels.append(f"WhatsApp +{self.phone}")
        return channels

    def error_lines(self) -> list:
        lines = []
        if not self.email_sent:
            lines.append(f"- Email error: {self.email_error}")
        if not self.whatsapp_sent:
            lines.append(f"- WhatsApp error: {self.whatsapp_error}")
        return lines


# ============================================================
# NOTIFIER
# ============================================================

class DonationNotifier:
    """Sends both donation confirmations and builds the reply for the donor."""

    def __init__(
        self,
        email_sender: EmailSender,
        whatsapp_sender: WhatsAppSender,
        org_name: str = "Saylani Roti Bank",
        validation: str = "strict",
        response_policy: str = "all_or_nothing",
        sandbox_join_code: str = "",
    ):
        self.email_sender = email_sender
        self.whatsapp_sender = whatsapp_sender
        self.org_name = org_name
        self.validation = validation
        self.response_policy = response_policy
        self.sandbox_join_code = sandbox_join_code

    @property
    def lenient(self) -> bool:
        return self.validation == "lenient"

    @property
    def uses_sandbox(self) -> bool:
        return self.whatsapp_sender.from_number == TWILIO_SANDBOX_NUMBER

    def handle_parameters(self, params: Mapping | None) -> str:
        return self.handle(DonationRequest.from_parameters(params, lenient=self.lenient))

    def handle(self, request: DonationRequest) -> str:
        logger.info(
            "📦 Donation details: type=%s amount=%s name=%s email=%s phone=%s",
            request.donation_type, request.amount, request.donor_name,
            request.email, request.phone_normalized,
        )

        if not self.lenient:
            try:
                request.validate()
            except MissingFieldError as exc:
                logger.warning("Donation rejected: %s", exc)
                return MISSING_DETAILS_MESSAGE

        body = self.message_text(request)
        outcome = NotificationOutcome(email=request.email, phone=request.phone_normalized)

        try:
            self.email_sender.send(request.email, EMAIL_SUBJECT, body)
            outcome.email_sent = True
            logger.info("✅ Email sent to: %s", request.email)
        except DeliveryError as exc:
            outcome.email_error = exc.message
            logger.error("❌ Email error: %s", exc.message)

        try:
            outcome.whatsapp_sid = self.whatsapp_sender.send(WHATSAPP_PREFIX + request.phone_normalized, body)
            outcome.whatsapp_sent = True
            logger.info("✅ WhatsApp sent to: %s (sid=%s)", request.phone_normalized, outcome.whatsapp_sid)
        except DeliveryError as exc:
            outcome.whatsapp_error = self.describe_whatsapp_error(exc)
            logger.error("❌ WhatsApp error: %s", exc.message)

        return self.compose_response(request, outcome)

    def message_text(self, request: DonationRequest) -> str:
        return (
            f"Dear {request.donor_name}, thank you for your generous donation of "
            f"{request.amount} via {request.donation_type}. "
            f"Your support helps {self.org_name} feed those in need."
        )

    def describe_whatsapp_error(self, exc: DeliveryError) -> str:
        is_invalid_number = INVALID_NUMBER_MARKER in exc.message.lower() or (
            isinstance(exc, MessagingDeliveryError) and exc.code == TWILIO_INVALID_TO_NUMBER
        )
        if not is_invalid_number:
            return exc.message
        return f"{exc.message} ({self.invalid_number_hint()})"

    def invalid_number_hint(self) -> str:
        if self.uses_sandbox:
            join = f"'join {self.sandbox_join_code}'" if self.sandbox_join_code else "'join <your sandbox code>'"
            sandbox = TWILIO_SANDBOX_NUMBER.replace("whatsapp:", "")
            return (
                "You are using the Twilio WhatsApp sandbox: the recipient must first "
                f"send {join} to {sandbox} on WhatsApp."
            )
        return (
            "Check that the number is registered on WhatsApp and that the sender "
            "is an approved WhatsApp Business number."
        )

    def compose_response(self, request: DonationRequest, outcome: NotificationOutcome) -> str:
        if self.response_policy == "best_effort":
            succeeded = outcome.any_sent
        else:
            succeeded = outcome.all_sent

        if succeeded:
            return (
                f"🌟 Thank you, {request.donor_name}! Your {request.donation_type} of "
                f"{request.amount} has been recorded.\n"
                f"Confirmation sent to {' and '.join(outcome.sent_channels())}. {BLESSING}"
            )

        return "Some issues occurred:\n" + "\n".join(outcome.error_lines()) + "\n\nPlease check and try again."
