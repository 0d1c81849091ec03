"""Webhooks blueprint — /donation/webhooks/*

Receives Stripe webhook events on two endpoints, each configured in Stripe
with its own signing secret. CSRF-exempt; the raw body is required for
signature verification.

Route Map:
  POST /donation/webhooks/chargeable     — source.chargeable only, queues charge
  POST /donation/webhooks/payment-event  — every payment event, logged
"""

import logging

import stripe
from flask import Blueprint, jsonify, request

from crowdaction.errors import DonationError, SignatureVerificationError
from crowdaction.services.webhook_service import (
    handle_chargeable_webhook,
    handle_payment_event_webhook,
)

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/donation/webhooks")


def _dispatch(handler):
    """Run a webhook handler and map its outcome to a status code.

    400 on a bad signature, 500 on processing errors so Stripe redelivers,
    200 otherwise.
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")

    try:
        handler(payload, sig_header)
    except SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": e.message}), 400
    except (DonationError, stripe.StripeError) as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return jsonify({"error": str(e)}), 500

    return jsonify({"status": "processed"}), 200


@webhooks_bp.route("/chargeable", methods=["POST"])
def chargeable():
    """Stripe reports a source (iDeal) as chargeable."""
    return _dispatch(handle_chargeable_webhook)


@webhooks_bp.route("/payment-event", methods=["POST"])
def payment_event():
    """Stripe reports any payment event; all are logged for audit."""
    return _dispatch(handle_payment_event_webhook)
