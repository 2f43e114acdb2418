'''Flask application that acts as the Dialogflow fulfillment webhook for the
Saylani Roti Bank chatbot. It receives classified intents, forwards them to the
bot logic, and returns the generated reply as a fulfillment payload.'''

import logging

from flask import Flask, jsonify, request

from bot import UNAVAILABLE_REPLY, IntentRouter, load_replies
from config import Config
from donation import DonationNotifier
from notifiers import EmailSender, WhatsAppSender

logger = logging.getLogger(__name__)


def build_notifier(config) -> DonationNotifier:
    email_sender = EmailSender(
        user=config["EMAIL_USER"],
        password=config["EMAIL_PASS"],
        sender_name=config["ORG_NAME"],
        host=config["EMAIL_HOST"],
        port=config["EMAIL_PORT"],
        timeout=config["EMAIL_TIMEOUT"],
    )
    whatsapp_sender = WhatsAppSender.from_credentials(
        config["TWILIO_SID"],
        config["TWILIO_AUTH_TOKEN"],
        config["TWILIO_PHONE_NUMBER"],
    )
    return DonationNotifier(
        email_sender,
        whatsapp_sender,
        org_name=config["ORG_NAME"],
        validation=config["DONATION_VALIDATION"],
        response_policy=config["DONATION_RESPONSE_POLICY"],
        sandbox_join_code=config["TWILIO_SANDBOX_JOIN_CODE"],
    )


def fulfillment(text: str):
    return jsonify({
        "fulfillmentText": text,
        "fulfillmentMessages": [{"text": {"text": [text]}}],
    })


def create_app(config_overrides=None, notifier: DonationNotifier | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    router = IntentRouter(
        notifier or build_notifier(app.config),
        replies=load_replies(app.config["REPLIES_FILE"]),
        log_file=app.config["CONVERSATION_LOG_FILE"],
    )
    app.extensions["intent_router"] = router

    @app.route("/webhook", methods=["POST"])
    def webhook():
        """
        Dialogflow v2 fulfillment webhook.
        Reads queryResult.intent.displayName and queryResult.parameters.
        """
        payload = request.get_json(silent=True) or {}
        query_result = payload.get("queryResult") or {}
        intent = (query_result.get("intent") or {}).get("displayName")
        params = query_result.get("parameters") or {}

        try:
            text = router.handle(intent, params)
        except Exception:
            logger.exception("Unhandled error while fulfilling intent %s", intent)
            text = UNAVAILABLE_REPLY

        return fulfillment(text)

    @app.route("/healthz", methods=["GET"])
    def healthz():
        return jsonify({"ok": True})

    logger.info("🚀 %s webhook ready", app.config["ORG_NAME"])
    return app


if __name__ == "__main__":
    application = create_app()
    application.run(host="0.0.0.0", port=application.config["PORT"])
