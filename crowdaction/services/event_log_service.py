"""Donation event log — append / read-by-filter.

The only write path into donation_event_log. Each append commits
immediately so that a service call returning success implies its
gateway response is durably logged.
"""

import json
import logging

import stripe

from crowdaction.extensions import db
from crowdaction.models.donation_event_log import DonationEventLog, DonationEventType

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100


def payload_of(obj):
    """Snapshot a Stripe object (or plain mapping) as JSON-compatible data."""
    if isinstance(obj, stripe.StripeObject):
        # str() of a StripeObject is its full recursive JSON representation
        return json.loads(str(obj))
    if isinstance(obj, (str, bytes)):
        return json.loads(obj)
    return json.loads(json.dumps(obj))


def append_event(event_type, event_data, user_id=None):
    """Append one entry and commit. Returns the new DonationEventLog."""
    if event_type not in DonationEventType.ALL:
        raise ValueError(f"Unknown donation event type: {event_type}")

    entry = DonationEventLog(
        type=event_type,
        user_id=user_id,
        event_data=payload_of(event_data),
    )
    db.session.add(entry)
    db.session.commit()
    logger.info(f"Donation event {entry.id} logged ({event_type}, user={user_id})")
    return entry


def append_internal(event_data, user_id=None):
    return append_event(DonationEventType.INTERNAL, event_data, user_id=user_id)


def append_external(event_data):
    return append_event(DonationEventType.EXTERNAL, event_data)


def list_events(event_type=None, user_id=None, limit=DEFAULT_LIST_LIMIT):
    """Return entries newest first, optionally filtered by type and user."""
    query = DonationEventLog.query
    if event_type:
        query = query.filter_by(type=event_type)
    if user_id:
        query = query.filter_by(user_id=user_id)
    return query.order_by(DonationEventLog.id.desc()).limit(limit).all()
