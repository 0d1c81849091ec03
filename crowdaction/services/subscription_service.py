"""Subscription service — recurring donations of the logged-in user.

A subscription belongs to whoever owns the Stripe customer's email.
Nothing here touches a subscription before confirming that email matches
the requesting user.
"""

import logging

import stripe

from crowdaction.errors import AuthorizationError, gateway_errors
from crowdaction.services import event_log_service
from crowdaction.services.gateway_service import api_key, stripe_field

logger = logging.getLogger(__name__)


def list_subscriptions_for(user):
    """All subscriptions of every Stripe customer sharing the user's email.

    Usually zero or one customer; duplicates (see the customer creation
    race in DESIGN.md) are flattened into one list.
    """
    with gateway_errors():
        customers = stripe.Customer.list(email=user.email, api_key=api_key())
        subscriptions = []
        for customer in customers.auto_paging_iter():
            found = stripe.Subscription.list(customer=customer.id, api_key=api_key())
            subscriptions.extend(found.auto_paging_iter())
    return subscriptions


def cancel_subscription(subscription_id, user):
    """Cancel `subscription_id` on behalf of `user`.

    Raises AuthorizationError (before any gateway mutation) when the
    subscription's customer email differs from the user's, ignoring case.
    Raises NotFoundError if the subscription or its customer is unknown.
    """
    with gateway_errors():
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=api_key())
        customer = stripe.Customer.retrieve(subscription.customer, api_key=api_key())

    customer_email = stripe_field(customer, "email", "")
    if customer_email.lower() != (user.email or "").lower():
        logger.warning(
            f"User {user.id} tried to cancel subscription {subscription_id} "
            f"owned by another customer"
        )
        raise AuthorizationError(
            f"User {user.email} doesn't match subscription e-mail"
        )

    with gateway_errors():
        subscription = stripe.Subscription.cancel(subscription_id, api_key=api_key())

    event_log_service.append_internal(subscription, user_id=user.id)
    logger.info(f"Subscription {subscription_id} cancelled by user {user.id}")
    return subscription


def subscription_summary(subscription):
    """JSON-friendly view of a subscription for the donation API."""
    plan = stripe_field(subscription, "plan")
    return {
        "id": subscription.id,
        "status": stripe_field(subscription, "status"),
        "amount": stripe_field(plan, "amount"),
        "currency": stripe_field(plan, "currency"),
        "interval": stripe_field(plan, "interval"),
        "start_date": stripe_field(subscription, "start_date"),
        "canceled_at": stripe_field(subscription, "canceled_at"),
    }
