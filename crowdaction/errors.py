"""Donation error taxonomy.

Every error raised by the donation services derives from DonationError
and carries the HTTP status the blueprints answer with.

- ValidationError: malformed checkout request, per-field messages
- NotFoundError: source / subscription / customer unknown to Stripe
- StateConflictError: source is not chargeable at charge time
- AuthorizationError: subscription belongs to another email
- SignatureVerificationError: webhook signature invalid
- GatewayTransientError: network / 5xx / rate limit from Stripe
- UnexpectedEventError: chargeable webhook received another event type
"""

from contextlib import contextmanager

import stripe


class DonationError(Exception):
    """Base class for donation orchestration failures."""

    status_code = 500

    def __init__(self, message=""):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"ok": False, "error": self.message}


class ValidationError(DonationError):
    """One or more checkout fields violate their constraints.

    `errors` is a list of (field, message) pairs.
    """

    status_code = 400

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(
            ",".join(f"{field}: {message}" for field, message in self.errors)
        )

    def to_dict(self):
        data = super().to_dict()
        data["errors"] = [
            {"field": field, "message": message} for field, message in self.errors
        ]
        return data


class NotFoundError(DonationError):
    status_code = 404


class StateConflictError(DonationError):
    status_code = 409


class AuthorizationError(DonationError):
    status_code = 403


class SignatureVerificationError(DonationError):
    status_code = 400


class GatewayTransientError(DonationError):
    status_code = 502


class UnexpectedEventError(DonationError):
    status_code = 500


@contextmanager
def gateway_errors():
    """Translate stripe-python exceptions into the donation taxonomy.

    Missing resources become NotFoundError, connection / rate limit /
    API errors become GatewayTransientError. Anything else propagates.
    """
    try:
        yield
    except stripe.InvalidRequestError as e:
        if e.code == "resource_missing":
            raise NotFoundError(e.user_message or str(e)) from e
        raise
    except (stripe.APIConnectionError, stripe.RateLimitError) as e:
        raise GatewayTransientError(str(e)) from e
    except stripe.APIError as e:
        raise GatewayTransientError(str(e)) from e
