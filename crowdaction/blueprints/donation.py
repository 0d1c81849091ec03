"""Donation blueprint — /donation/*

JSON API used by the donation pages of the frontend.

Route Map:
  POST /donation/checkout/card                  — start a (recurring) card checkout
  POST /donation/checkout/sepa                  — start a SEPA direct debit subscription
  POST /donation/checkout/ideal                 — attach an iDeal source
  GET  /donation/ideal/<source_id>/status       — poll iDeal result (?client_secret=)
  GET  /donation/stripe-public-key              — publishable key for stripe.js
  GET  /donation/subscriptions                  — recurring donations of current user
  POST /donation/subscriptions/<id>/cancel      — cancel one of them

Errors are DonationError subclasses, rendered by the app's error handler.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from crowdaction.errors import ValidationError
from crowdaction.extensions import limiter
from crowdaction.services import checkout_service, subscription_service
from crowdaction.services.checkout_requests import (
    CardCheckout,
    IDealCheckout,
    SepaCheckout,
)

logger = logging.getLogger(__name__)

donation_bp = Blueprint("donation", __name__, url_prefix="/donation")


def _request_data():
    """Accept JSON or form-encoded bodies. A JSON body must be an object."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError([("body", "must be a JSON object")])
        return data
    return request.form.to_dict()


def _amount(value):
    """Whole-number strings from form posts become ints; anything else is
    passed through for the request's own validation to reject."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _flag(value):
    if isinstance(value, bool):
        return value
    return str(value or "").lower() in ("1", "true", "yes", "on")


# ──────────────────────────────────────────────
# Checkout flows
# ──────────────────────────────────────────────

@donation_bp.route("/checkout/card", methods=["POST"])
@limiter.limit("10 per minute")
def card_checkout():
    """Create a Stripe Checkout session; the client redirects with its id."""
    data = _request_data()
    checkout = CardCheckout.create(
        recurring=_flag(data.get("recurring")),
        amount=_amount(data.get("amount")),
        currency=data.get("currency"),
        name=data.get("name"),
        email=data.get("email"),
        success_url=data.get("success_url"),
        cancel_url=data.get("cancel_url"),
    )
    session_id = checkout_service.initialize_card_checkout(checkout)
    return jsonify(ok=True, session_id=session_id), 200


@donation_bp.route("/checkout/sepa", methods=["POST"])
@limiter.limit("10 per minute")
def sepa_checkout():
    data = _request_data()
    checkout = SepaCheckout(
        amount=_amount(data.get("amount")),
        currency=data.get("currency"),
        name=data.get("name"),
        email=data.get("email"),
        source_id=data.get("source_id"),
    )
    checkout_service.initialize_sepa_direct(checkout)
    return jsonify(ok=True), 200


@donation_bp.route("/checkout/ideal", methods=["POST"])
@limiter.limit("10 per minute")
def ideal_checkout():
    data = _request_data()
    checkout = IDealCheckout(
        amount=_amount(data.get("amount")),
        currency=data.get("currency"),
        name=data.get("name"),
        email=data.get("email"),
        source_id=data.get("source_id"),
    )
    checkout_service.initialize_ideal_checkout(checkout)
    return jsonify(ok=True), 200


@donation_bp.route("/ideal/<source_id>/status")
@limiter.limit("60 per minute")
def ideal_status(source_id):
    """Polled by the iDeal return page until the payment is confirmed."""
    client_secret = request.args.get("client_secret", "")
    succeeded = checkout_service.has_ideal_payment_succeeded(source_id, client_secret)
    return jsonify(ok=True, succeeded=succeeded), 200


@donation_bp.route("/stripe-public-key")
def stripe_public_key():
    return jsonify(ok=True, key=current_app.config.get("STRIPE_PUBLISHABLE_KEY")), 200


# ──────────────────────────────────────────────
# Recurring donations of the logged-in user
# ──────────────────────────────────────────────

@donation_bp.route("/subscriptions")
@login_required
def subscriptions():
    found = subscription_service.list_subscriptions_for(current_user)
    return jsonify(
        ok=True,
        subscriptions=[subscription_service.subscription_summary(s) for s in found],
    ), 200


@donation_bp.route("/subscriptions/<subscription_id>/cancel", methods=["POST"])
@login_required
def cancel_subscription(subscription_id):
    subscription = subscription_service.cancel_subscription(subscription_id, current_user)
    return jsonify(
        ok=True,
        subscription=subscription_service.subscription_summary(subscription),
    ), 200
