"""
bot.py
------
Intent routing for the Roti Bank Dialogflow agent.
Maps each classified intent to a handler, serves the static replies
(optionally overridden from a YAML file) and logs every fulfilled turn.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Mapping

import yaml

from donation import DonationNotifier

logger = logging.getLogger(__name__)

# ============================================================
# INTENT NAMES + STATIC REPLIES
# ============================================================

WELCOME_INTENT = "Default Welcome Intent"
INFO_INTENT = "Roti Bank Info"
TIMINGS_INTENT = "Meal Timings"
DONATE_INTENT = "Donate"

DEFAULT_REPLIES = {
    WELCOME_INTENT: "Hello! I’m the virtual assistant for Saylani Roti Bank. How can I assist you today?",
    INFO_INTENT: (
        "Saylani Roti Bank provides free meals daily. "
        "You can support us by donating food or money to help the needy."
    ),
    TIMINGS_INTENT: "Meals are served daily from 12:00 PM to 3:00 PM and 6:00 PM to 9:00 PM.",
}

FALLBACK_REPLY = "Sorry, I didn't get that. Could you say that again?"
UNAVAILABLE_REPLY = "⚠️ Our service is temporarily unavailable. Please try again later."

RESPONSE_PREVIEW_LEN = 100


def load_replies(path: str | None) -> dict:
    """Static replies, with any ``intent: text`` overrides from a YAML file."""
    replies = dict(DEFAULT_REPLIES)
    if not path:
        return replies
    try:
        with open(path, "r", encoding="utf-8") as f:
            overrides = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.debug("Reply file not found: %s, using built-in replies", path)
        return replies

    if not isinstance(overrides, Mapping):
        logger.warning("Ignoring reply file %s: expected a mapping of intent -> text", path)
        return replies

    for intent, text in overrides.items():
        if intent in replies and isinstance(text, str) and text.strip():
            replies[intent] = text.strip()
    logger.info("✅ Loaded reply overrides from %s", path)
    return replies


# ============================================================
# ROUTER
# ============================================================

class IntentRouter:
    """Dispatches one Dialogflow intent to its handler and returns the reply text."""

    def __init__(self, notifier: DonationNotifier, replies: Mapping | None = None,
                 log_file: str | None = None):
        self.notifier = notifier
        self.replies = dict(replies or DEFAULT_REPLIES)
        self.log_file = log_file
        self.handlers: dict[str, Callable[[Mapping], str]] = {
            WELCOME_INTENT: self._static(WELCOME_INTENT),
            INFO_INTENT: self._static(INFO_INTENT),
            TIMINGS_INTENT: self._static(TIMINGS_INTENT),
            DONATE_INTENT: self.notifier.handle_parameters,
        }

    def _static(self, intent: str) -> Callable[[Mapping], str]:
        return lambda params: self.replies[intent]

    def handle(self, intent: str | None, params: Mapping | None = None) -> str:
        logger.info("🔔 Intent triggered: %s", intent)
        handler = self.handlers.get(intent or "")
        if handler is None:
            response = FALLBACK_REPLY
        else:
            response = handler(params or {})
        self.log_conversation(intent, response)
        return response

    def log_conversation(self, intent: str | None, response: str):
        """Append the turn to the JSONL conversation log, if one is configured."""
        if not self.log_file:
            return
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "intent": intent,
            "response": response[:RESPONSE_PREVIEW_LEN],
        }
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning("Conversation log error: %s", e)
