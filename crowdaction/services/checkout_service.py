"""Checkout service — starts the four donation flows.

There are 4 donation flows:

* One-time iDeal
  - The client creates an iDeal source and sends it here; we attach it to
    the donor's Stripe customer (can't be done with the publishable key).
  - The client redirects to the bank; afterwards it polls
    has_ideal_payment_succeeded().
  - Stripe POSTs source.chargeable to the chargeable webhook, which queues
    the actual charge (see charge_service).
* One-time credit card
  - A Stripe Checkout session with a single line item; Checkout charges the
    card itself, no webhook needed.
* Recurring SEPA direct debit
  - The client creates a SEPA source; we attach it and subscribe the
    customer to a fresh monthly plan, auto-charged by Stripe Billing.
* Recurring credit card
  - A Stripe Checkout session in subscription mode on a fresh monthly plan.
    Stripe creates the customer from the email at checkout time.

Every gateway response that matters is appended to the donation event log
before the function returns.
"""

import hmac
import logging

import stripe

from crowdaction.errors import gateway_errors
from crowdaction.models.user import find_user_by_email
from crowdaction.services import event_log_service
from crowdaction.services.gateway_service import (
    api_key,
    create_recurring_plan,
    donation_description,
    get_or_create_customer,
    stripe_field,
)

logger = logging.getLogger(__name__)

STATUS_CHARGEABLE = "chargeable"
STATUS_CONSUMED = "consumed"


def _user_id_for(email):
    user = find_user_by_email(email)
    return user.id if user else None


# ──────────────────────────────────────────────
# Credit card (Stripe Checkout)
# ──────────────────────────────────────────────

def initialize_card_checkout(checkout):
    """Create a Stripe Checkout session for a card donation.

    Args:
        checkout: OneTimeCardCheckout or RecurringCardCheckout.

    Returns the checkout session id (the client redirects with stripe.js).
    Raises ValidationError before any gateway call if fields are invalid.
    """
    checkout.validate()

    session_params = {
        "success_url": checkout.success_url,
        "cancel_url": checkout.cancel_url,
        "payment_method_types": ["card"],
    }

    if checkout.recurring:
        logger.info("Initializing recurring credit card checkout session")
        plan = create_recurring_plan(checkout.amount, checkout.currency)
        session_params.update(
            mode="subscription",
            customer_email=checkout.email,
            line_items=[{"price": plan.id, "quantity": 1}],
        )
    else:
        logger.info("Initializing credit card checkout session")
        customer = get_or_create_customer(checkout.name, checkout.email)
        session_params.update(
            mode="payment",
            customer=customer.id,
            line_items=[{
                "price_data": {
                    "currency": checkout.currency,
                    "unit_amount": checkout.amount,
                    "product_data": {
                        "name": "donation",
                        "description": donation_description(),
                    },
                },
                "quantity": 1,
            }],
        )

    with gateway_errors():
        session = stripe.checkout.Session.create(**session_params, api_key=api_key())

    event_log_service.append_internal(session, user_id=_user_id_for(checkout.email))
    logger.info(f"Done initializing credit card checkout session {session.id}")
    return session.id


# ──────────────────────────────────────────────
# Source-based flows (SEPA, iDeal)
# ──────────────────────────────────────────────

def _attach_source(customer_id, source_id):
    with gateway_errors():
        return stripe.Customer.create_source(
            customer_id, source=source_id, api_key=api_key()
        )


def initialize_sepa_direct(checkout):
    """Attach a SEPA source and subscribe the donor to a monthly plan.

    Steps are not rolled back: a failure after attaching leaves an attached
    source without subscription, visible through the event log.
    """
    logger.info("Initializing sepa direct")
    checkout.validate()

    user_id = _user_id_for(checkout.email)
    customer = get_or_create_customer(checkout.name, checkout.email)
    source = _attach_source(customer.id, checkout.source_id)
    plan = create_recurring_plan(checkout.amount, checkout.currency)

    with gateway_errors():
        subscription = stripe.Subscription.create(
            customer=customer.id,
            default_source=source.id,
            collection_method="charge_automatically",
            items=[{"plan": plan.id, "quantity": 1}],
            api_key=api_key(),
        )

    event_log_service.append_internal(subscription, user_id=user_id)
    logger.info(f"Done initializing sepa direct, subscription {subscription.id}")


def initialize_ideal_checkout(checkout):
    """Attach a client-created iDeal source to the donor's customer.

    The charge itself happens once Stripe reports the source chargeable.
    """
    logger.info("Initializing iDeal")
    checkout.validate()

    user_id = _user_id_for(checkout.email)
    customer = get_or_create_customer(checkout.name, checkout.email)
    source = _attach_source(customer.id, checkout.source_id)

    event_log_service.append_internal(source, user_id=user_id)
    logger.info(f"Done initializing iDeal, source {source.id}")


def has_ideal_payment_succeeded(source_id, client_secret):
    """Polled by the client after the bank redirect.

    True when the source is chargeable or already consumed and the
    client secret matches the source's.
    """
    with gateway_errors():
        source = stripe.Source.retrieve(source_id, api_key=api_key())

    if source.status not in (STATUS_CHARGEABLE, STATUS_CONSUMED):
        return False
    expected = stripe_field(source, "client_secret", "")
    if not client_secret or not expected:
        return False
    return hmac.compare_digest(client_secret.encode("utf-8"), expected.encode("utf-8"))
