"""Admin blueprint — /admin/*

Read-only access to the donation event log for reconciliation.
All routes protected by @admin_required decorator.

Route Map:
  GET  /admin/donation-events   — newest entries (?type=internal|external&user_id=&limit=)
"""

from flask import Blueprint, jsonify, request

from crowdaction.decorators import admin_required
from crowdaction.models.donation_event_log import DonationEventType
from crowdaction.services import event_log_service

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

MAX_LIMIT = 500


@admin_bp.route("/donation-events")
@admin_required
def donation_events():
    event_type = request.args.get("type") or None
    if event_type and event_type not in DonationEventType.ALL:
        return jsonify(ok=False, error=f"Unknown event type: {event_type}"), 400

    limit = request.args.get("limit", event_log_service.DEFAULT_LIST_LIMIT, type=int)
    limit = max(1, min(limit, MAX_LIMIT))

    entries = event_log_service.list_events(
        event_type=event_type,
        user_id=request.args.get("user_id") or None,
        limit=limit,
    )
    return jsonify(ok=True, events=[e.to_dict() for e in entries]), 200
