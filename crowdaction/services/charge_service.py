"""Charge service — charges a chargeable source.

Runs inside the charge_source background job (see crowdaction.tasks),
never inline in the webhook request. Safe to run more than once for the
same source: the status is re-checked first, and once charged the source
is `consumed`, so a redelivery fails with StateConflictError instead of
charging twice.
"""

import logging

import stripe

from crowdaction.errors import (
    DonationError,
    StateConflictError,
    gateway_errors,
)
from crowdaction.models.user import find_user_by_email
from crowdaction.services import event_log_service
from crowdaction.services.checkout_service import STATUS_CHARGEABLE
from crowdaction.services.gateway_service import (
    api_key,
    donation_description,
    stripe_field,
)

logger = logging.getLogger(__name__)


def charge(source_id):
    """Charge the full amount of `source_id` to its customer.

    Returns the Stripe charge.
    Raises StateConflictError if the source is not chargeable,
    GatewayTransientError on retryable gateway failures.
    """
    logger.info(f"Processing chargeable source {source_id}")

    with gateway_errors():
        source = stripe.Source.retrieve(source_id, api_key=api_key())

    if source.status != STATUS_CHARGEABLE:
        logger.error(
            f"Invalid chargeable received: source {source_id} has status {source.status}"
        )
        raise StateConflictError(
            f"source: {source_id} is not chargeable, something went wrong in the payment flow"
        )

    try:
        with gateway_errors():
            charge_obj = stripe.Charge.create(
                amount=source.amount,
                currency=source.currency,
                source=source_id,
                customer=source.customer,
                description=donation_description(),
                api_key=api_key(),
            )
    except (DonationError, stripe.StripeError):
        logger.error(f"Error processing chargeable source {source_id}", exc_info=True)
        raise

    user_id = _user_id_for_customer(charge_obj.customer)
    event_log_service.append_internal(charge_obj, user_id=user_id)
    logger.info(f"Charged source {source_id}: charge {charge_obj.id}")
    return charge_obj


def _user_id_for_customer(customer_id):
    """Best-effort: local user id for a Stripe customer's email, or None."""
    if not customer_id:
        return None
    try:
        with gateway_errors():
            customer = stripe.Customer.retrieve(customer_id, api_key=api_key())
    except (DonationError, stripe.StripeError) as e:
        logger.warning(f"Could not resolve customer {customer_id} for event log: {e}")
        return None

    user = find_user_by_email(stripe_field(customer, "email"))
    return user.id if user else None
