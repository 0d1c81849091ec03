"""Webhook service — verification and dispatch for the two Stripe webhooks.

- Chargeable webhook (own signing secret): only source.chargeable events.
  Queues a charge job; the job logs the resulting charge, not this handler.
- Payment-event webhook (own signing secret): every event is logged as an
  external entry first. charge.succeeded additionally triggers the
  thank-you email.

A payload that fails signature verification is rejected before anything
is logged or queued.
"""

import json
import logging

import stripe
from flask import current_app

from crowdaction.errors import (
    SignatureVerificationError,
    UnexpectedEventError,
    gateway_errors,
)
from crowdaction.services import event_log_service
from crowdaction.services.email_service import send_donation_thank_you
from crowdaction.services.gateway_service import api_key, stripe_field
from crowdaction.tasks import charge_source

logger = logging.getLogger(__name__)

EVENT_SOURCE_CHARGEABLE = "source.chargeable"
EVENT_CHARGE_SUCCEEDED = "charge.succeeded"


def _construct_event(payload, sig_header, secret_name):
    """Verify the Stripe signature with the named secret and parse the event.

    Raises SignatureVerificationError on a bad signature or payload.
    """
    secret = current_app.config[secret_name]
    if not sig_header:
        raise SignatureVerificationError("Missing signature")
    try:
        return stripe.Webhook.construct_event(payload, sig_header, secret)
    except (stripe.SignatureVerificationError, ValueError) as e:
        raise SignatureVerificationError(f"Invalid signature: {e}") from e


# ──────────────────────────────────────────────
# Chargeable webhook
# ──────────────────────────────────────────────

def handle_chargeable_webhook(payload, sig_header):
    """Queue a charge for a source.chargeable event.

    Returns the queued source id.
    Raises UnexpectedEventError for any other event type.
    """
    logger.info("Received chargeable")
    event = _construct_event(payload, sig_header, "STRIPE_CHARGEABLE_WEBHOOK_SECRET")

    if event["type"] != EVENT_SOURCE_CHARGEABLE:
        raise UnexpectedEventError(
            f"invalid event sent to source.chargeable webhook: {event['type']} ({event['id']})"
        )

    source_id = event["data"]["object"]["id"]
    charge_source.delay(source_id)
    logger.info(f"Queued charge for source {source_id}")
    return source_id


# ──────────────────────────────────────────────
# Payment-event webhook
# ──────────────────────────────────────────────

def handle_payment_event_webhook(payload, sig_header):
    """Log a verified payment event; thank the donor on charge.succeeded.

    Returns the logged DonationEventLog entry.
    """
    logger.info("Received payment event")
    event = _construct_event(
        payload, sig_header, "STRIPE_PAYMENT_EVENT_WEBHOOK_SECRET"
    )

    entry = event_log_service.append_external(json.loads(payload))

    if event["type"] == EVENT_CHARGE_SUCCEEDED:
        _handle_charge_succeeded(event["data"]["object"])

    return entry


def _handle_charge_succeeded(charge):
    """Send the thank-you email, framed as recurring if the donor subscribes."""
    customer_id = stripe_field(charge, "customer")
    if not customer_id:
        logger.warning(
            f"charge.succeeded {stripe_field(charge, 'id')} has no customer, no thank-you sent"
        )
        return

    with gateway_errors():
        subscriptions = stripe.Subscription.list(
            customer=customer_id, status="active", api_key=api_key()
        )
        customer = stripe.Customer.retrieve(customer_id, api_key=api_key())

    email = stripe_field(customer, "email")
    if not email:
        logger.warning(f"Stripe customer {customer.id} has no email, no thank-you sent")
        return

    send_donation_thank_you(email, has_subscriptions=len(subscriptions.data) > 0)
