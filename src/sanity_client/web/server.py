import os, json, logging
from typing import Any, Callable, Dict, Optional

from flask import Flask, request, jsonify
from dotenv import load_dotenv

from ..clients.errors import InvalidSignatureError
from ..clients.webhook_auth import SIGNATURE_HEADER_NAME, is_valid_request
from ..config.config import ConfigurationError

log = logging.getLogger("sanity.webhooks")

WebhookHandler = Callable[[Dict[str, Any]], None]


def create_app(webhook_secret: Optional[str] = None, handler: Optional[WebhookHandler] = None) -> Flask:
    """Build the Flask app receiving signed Sanity webhooks.

    Args:
        webhook_secret: Shared secret; defaults to SANITY_WEBHOOK_SECRET.
        handler: Optional callable invoked with each verified JSON payload.

    Raises:
        ConfigurationError: If no webhook secret is available.
    """
    load_dotenv()
    secret = webhook_secret or os.getenv("SANITY_WEBHOOK_SECRET", "").strip()
    if not secret:
        raise ConfigurationError("Missing required environment variables: SANITY_WEBHOOK_SECRET")

    app = Flask(__name__)

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.post("/webhooks/sanity")
    def sanity_webhook():
        try:
            valid = is_valid_request(request, secret)
        except InvalidSignatureError as e:
            log.warning("Rejected webhook with malformed %s header: %s", SIGNATURE_HEADER_NAME, e)
            return jsonify({"error": str(e)}), 400
        if not valid:
            return jsonify({"error": "signature mismatch"}), 401

        # The body stays readable after verification
        payload = request.get_json(silent=True) or {}
        log.info("Webhook payload received: %s", json.dumps(payload)[:500])

        if handler is not None:
            handler(payload)
        return jsonify({"received": True, "document_id": payload.get("_id")})

    return app


if __name__ == "__main__":
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("SERVER_PORT", "8080"))
    create_app().run(host="0.0.0.0", port=port)
