"""Gateway service — shared Stripe helpers for the donation flows.

Responsible for:
- Resolving (or creating) the Stripe customer for a donor email
- Getting or creating the single "Recurring Donation" product
- Minting monthly plans under that product

Every call passes the API key explicitly; no module-level stripe state
is set per request.
"""

import logging

import stripe
from flask import current_app

from crowdaction.errors import gateway_errors

logger = logging.getLogger(__name__)

NAME_KEY = "name"
RECURRING_DONATION_PRODUCT = "Recurring Donation Stichting CollAction"
RECURRING_DONATION_DESCRIPTOR = "Donation CollAction"


def api_key():
    return current_app.config["STRIPE_SECRET_KEY"]


def stripe_field(obj, key, default=None):
    """Optional field of a Stripe object (or plain mapping), `default` if absent.

    StripeObject is not a dict on current stripe-python, so there is no
    .get(); membership and item access work on every version.
    """
    if obj is None or key not in obj:
        return default
    value = obj[key]
    return default if value is None else value


def donation_description():
    name = current_app.config.get("DONATION_ORGANIZATION_NAME", "Stichting CollAction")
    return f"A donation to {name}"


def get_or_create_customer(name, email):
    """Return the Stripe customer for `email`, creating it if absent.

    At most one customer per email is created by this helper. When the
    stored metadata name differs (case-sensitive) it is updated in place.
    Two concurrent first-time requests for the same email can still both
    create one; see DESIGN.md.
    """
    metadata = {NAME_KEY: name}

    with gateway_errors():
        existing = stripe.Customer.list(email=email, limit=1, api_key=api_key())
        customer = existing.data[0] if existing.data else None

        if customer is None:
            customer = stripe.Customer.create(
                email=email, metadata=metadata, api_key=api_key()
            )
            logger.info(f"Created Stripe customer {customer.id} for {email}")
        elif stripe_field(stripe_field(customer, "metadata"), NAME_KEY) != name:
            customer = stripe.Customer.modify(
                customer.id, metadata=metadata, api_key=api_key()
            )
            logger.info(f"Updated name metadata on Stripe customer {customer.id}")

    return customer


def get_or_create_recurring_product():
    """Return the active recurring donation product, creating it once."""
    with gateway_errors():
        products = stripe.Product.list(active=True, limit=100, api_key=api_key())
        for product in products.auto_paging_iter():
            if product.name == RECURRING_DONATION_PRODUCT:
                return product

        product = stripe.Product.create(
            active=True,
            name=RECURRING_DONATION_PRODUCT,
            statement_descriptor=RECURRING_DONATION_DESCRIPTOR,
            api_key=api_key(),
        )
    logger.info(f"Created recurring donation product {product.id}")
    return product


def create_recurring_plan(amount, currency):
    """Mint a monthly plan for `amount` (minor units) in `currency`.

    Plans are not deduplicated; each recurring checkout gets a fresh one.
    """
    product = get_or_create_recurring_product()
    with gateway_errors():
        plan = stripe.Plan.create(
            product=product.id,
            active=True,
            amount=amount,
            currency=currency,
            interval="month",
            interval_count=1,
            billing_scheme="per_unit",
            usage_type="licensed",
            api_key=api_key(),
        )
    logger.info(f"Created monthly plan {plan.id} ({amount} {currency})")
    return plan
