"""Flask receiver for Linear webhooks."""
from flask import Flask, Response, request

from linear_reminder.intake import IntakeHandler
from linear_reminder.signature import SIGNATURE_HEADER


def create_app(handler: IntakeHandler) -> Flask:
    """Create the Flask application that feeds webhook deliveries to the handler.

    Args:
        handler: Intake handler applying each delivery to the queue

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.intake_handler = handler

    @app.post("/webhook")
    def webhook():
        # Signature covers the exact bytes, so read them before any JSON decoding
        raw_body = request.get_data(cache=False)
        outcome = app.intake_handler.handle(raw_body, request.headers.get(SIGNATURE_HEADER))
        return Response(status=outcome.status_code)

    @app.get("/health")
    def health():
        return Response("ok", status=200, mimetype="text/plain")

    return app
