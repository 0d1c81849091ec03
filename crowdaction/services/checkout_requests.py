"""Checkout request variants.

One class per donation flow, sharing a validated core (amount, currency,
name, email):

- OneTimeCardCheckout / RecurringCardCheckout: Stripe Checkout flows,
  need success and cancel URLs.
- SepaCheckout: recurring SEPA direct debit on a client-created source,
  always in euros.
- IDealCheckout: one-time iDeal payment on a client-created source.

Amounts are positive integers in minor currency units (cents).
validate() raises ValidationError listing every offending field.
"""

import re
from dataclasses import dataclass
from typing import ClassVar, List, Tuple
from urllib.parse import urlparse

from crowdaction.errors import ValidationError

# Simple email regex, a sanity check only
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_RE = re.compile(r"^[a-z]{3}$")
SOURCE_ID_RE = re.compile(r"^src_[A-Za-z0-9]+$")

MAX_NAME_LENGTH = 200
MAX_AMOUNT = 99999999  # Stripe's upper bound for a single amount
NOT_A_STRING = "must be a string"


def _clean(value):
    """Strip strings, map None to "". Other types are left for errors() to report."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


def _is_http_url(value):
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _url_error(field, value):
    if value is not None and not isinstance(value, str):
        return (field, NOT_A_STRING)
    if not _is_http_url(value or ""):
        return (field, "must be an absolute http(s) URL")
    return None


@dataclass
class CheckoutRequest:
    amount: int
    currency: str
    name: str
    email: str

    kind: ClassVar[str] = "checkout"

    def __post_init__(self):
        self.currency = _clean(self.currency)
        if isinstance(self.currency, str):
            self.currency = self.currency.lower()
        self.name = _clean(self.name)
        self.email = _clean(self.email)

    def errors(self) -> List[Tuple[str, str]]:
        errors = []
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            errors.append(("amount", "must be a whole number of cents"))
        elif self.amount <= 0:
            errors.append(("amount", "must be positive"))
        elif self.amount > MAX_AMOUNT:
            errors.append(("amount", "is too large"))
        if not isinstance(self.currency, str):
            errors.append(("currency", NOT_A_STRING))
        elif not CURRENCY_RE.match(self.currency):
            errors.append(("currency", "must be a three-letter ISO 4217 code"))
        if not isinstance(self.name, str):
            errors.append(("name", NOT_A_STRING))
        elif not self.name:
            errors.append(("name", "is required"))
        elif len(self.name) > MAX_NAME_LENGTH:
            errors.append(("name", "is too long"))
        if not isinstance(self.email, str):
            errors.append(("email", NOT_A_STRING))
        elif not EMAIL_RE.match(self.email):
            errors.append(("email", "must be a valid email address"))
        return errors

    def validate(self):
        errors = self.errors()
        if errors:
            raise ValidationError(errors)
        return self


@dataclass
class CardCheckout(CheckoutRequest):
    success_url: str = ""
    cancel_url: str = ""

    recurring: ClassVar[bool] = False

    def errors(self):
        errors = super().errors()
        for field in ("success_url", "cancel_url"):
            error = _url_error(field, getattr(self, field))
            if error:
                errors.append(error)
        return errors

    @staticmethod
    def create(recurring, **fields):
        cls = RecurringCardCheckout if recurring else OneTimeCardCheckout
        return cls(**fields)


@dataclass
class OneTimeCardCheckout(CardCheckout):
    kind: ClassVar[str] = "one_time_card"
    recurring: ClassVar[bool] = False


@dataclass
class RecurringCardCheckout(CardCheckout):
    kind: ClassVar[str] = "recurring_card"
    recurring: ClassVar[bool] = True


@dataclass
class SourceCheckout(CheckoutRequest):
    source_id: str = ""

    def errors(self):
        errors = super().errors()
        if self.source_id is not None and not isinstance(self.source_id, str):
            errors.append(("source_id", NOT_A_STRING))
        elif not SOURCE_ID_RE.match(self.source_id or ""):
            errors.append(("source_id", "must be a Stripe source id"))
        return errors


@dataclass
class SepaCheckout(SourceCheckout):
    kind: ClassVar[str] = "sepa"

    def __post_init__(self):
        self.currency = self.currency or "eur"
        super().__post_init__()

    def errors(self):
        errors = super().errors()
        if isinstance(self.currency, str) and self.currency != "eur":
            errors.append(("currency", "SEPA direct debit only supports eur"))
        return errors


@dataclass
class IDealCheckout(SourceCheckout):
    kind: ClassVar[str] = "ideal"

    def __post_init__(self):
        self.currency = self.currency or "eur"
        super().__post_init__()
