"""Tests for the donation event log and its admin view.

Covers:
- Append internal / external entries, Stripe objects stored verbatim
- Entries cannot be updated or deleted
- Unknown entry type rejected
- Listing newest first, filtered by type / user
- /admin/donation-events access control and filters
"""

import pytest
import sqlalchemy as sa
import stripe

from crowdaction.extensions import db
from crowdaction.models.donation_event_log import DonationEventLog, DonationEventType
from crowdaction.models.user import User
from crowdaction.services.event_log_service import (
    append_event,
    append_external,
    append_internal,
    list_events,
    payload_of,
)

from stripe_fakes import source, stripe_obj, subscription


class TestAppend:

    def test_stripe_object_stored_verbatim(self, donor):
        src = source(id="src_logged", amount=4200)

        entry = append_internal(src, user_id=donor)

        stored = db.session.get(DonationEventLog, entry.id)
        assert stored.type == DonationEventType.INTERNAL
        assert stored.user_id == donor
        assert stored.created_at is not None
        assert stored.event_data["id"] == "src_logged"
        assert stored.event_data["amount"] == 4200
        assert stored.event_data["object"] == "source"

    def test_nested_objects_survive(self):
        sub = stripe_obj(stripe.Subscription, **subscription(amount=750))

        entry = append_internal(sub)

        assert entry.event_data["plan"]["amount"] == 750
        assert entry.event_data["plan"]["interval"] == "month"

    def test_external_entry_has_no_user(self):
        event = {"id": "evt_1", "object": "event", "type": "invoice.paid"}

        entry = append_external(event)

        assert entry.type == DonationEventType.EXTERNAL
        assert entry.user_id is None
        assert entry.event_data == event

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            append_event("audit", {"id": "x"})

        assert DonationEventLog.query.count() == 0

    def test_payload_of_accepts_raw_json(self):
        assert payload_of('{"id": "evt_1", "data": {"n": 1}}') == {
            "id": "evt_1",
            "data": {"n": 1},
        }

    def test_ids_increase(self):
        first = append_external({"id": "evt_1"})
        second = append_external({"id": "evt_2"})

        assert second.id > first.id


class TestAppendOnly:

    def test_update_refused(self):
        entry = append_external({"id": "evt_1"})

        entry.event_data = {"id": "evt_tampered"}
        with pytest.raises(RuntimeError, match="append-only"):
            db.session.commit()
        db.session.rollback()

        assert db.session.get(DonationEventLog, entry.id).event_data == {"id": "evt_1"}

    def test_delete_refused(self):
        entry = append_external({"id": "evt_1"})

        db.session.delete(entry)
        with pytest.raises(RuntimeError, match="append-only"):
            db.session.commit()
        db.session.rollback()

        assert DonationEventLog.query.count() == 1

    def test_bulk_update_refused(self):
        entry = append_external({"id": "evt_1"})

        with pytest.raises(RuntimeError, match="append-only"):
            DonationEventLog.query.filter_by(id=entry.id).update(
                {"type": DonationEventType.INTERNAL}
            )
        db.session.rollback()

        assert db.session.get(DonationEventLog, entry.id).type == DonationEventType.EXTERNAL

    def test_bulk_delete_refused(self):
        append_external({"id": "evt_1"})

        with pytest.raises(RuntimeError, match="append-only"):
            db.session.execute(sa.delete(DonationEventLog))
        db.session.rollback()

        assert DonationEventLog.query.count() == 1

    def test_bulk_statements_on_other_tables_allowed(self, donor):
        db.session.execute(
            sa.update(User).where(User.id == donor).values(full_name="Alice B.")
        )
        db.session.commit()

        assert db.session.get(User, donor).full_name == "Alice B."


class TestListEvents:

    def test_newest_first_with_filters(self, donor, other_user):
        append_internal({"id": "a"}, user_id=donor)
        append_external({"id": "b"})
        append_internal({"id": "c"}, user_id=other_user)
        append_internal({"id": "d"}, user_id=donor)

        assert [e.event_data["id"] for e in list_events()] == ["d", "c", "b", "a"]
        assert [e.event_data["id"] for e in list_events(event_type="external")] == ["b"]
        assert [e.event_data["id"] for e in list_events(user_id=donor)] == ["d", "a"]
        assert [e.event_data["id"] for e in list_events(limit=2)] == ["d", "c"]


class TestAdminDonationEvents:

    URL = "/admin/donation-events"

    def test_requires_login(self, client):
        resp = client.get(self.URL)
        assert resp.status_code == 401

    def test_requires_admin(self, client, donor, login):
        login(donor)

        resp = client.get(self.URL)

        assert resp.status_code == 403

    def test_admin_lists_entries(self, client, admin_user, donor, login):
        append_internal({"id": "src_1", "object": "source"}, user_id=donor)
        append_external({"id": "evt_1", "object": "event"})
        login(admin_user)

        resp = client.get(self.URL)

        assert resp.status_code == 200
        events = resp.get_json()["events"]
        assert [e["event_data"]["id"] for e in events] == ["evt_1", "src_1"]
        assert events[1]["user_id"] == donor
        assert events[1]["type"] == "internal"

    def test_admin_filters(self, client, admin_user, donor, login):
        append_internal({"id": "src_1"}, user_id=donor)
        append_external({"id": "evt_1"})
        append_internal({"id": "ch_1"})
        login(admin_user)

        by_type = client.get(f"{self.URL}?type=internal").get_json()["events"]
        by_user = client.get(f"{self.URL}?user_id={donor}").get_json()["events"]
        limited = client.get(f"{self.URL}?limit=1").get_json()["events"]

        assert [e["event_data"]["id"] for e in by_type] == ["ch_1", "src_1"]
        assert [e["event_data"]["id"] for e in by_user] == ["src_1"]
        assert [e["event_data"]["id"] for e in limited] == ["ch_1"]

    def test_unknown_type_is_bad_request(self, client, admin_user, login):
        login(admin_user)

        resp = client.get(f"{self.URL}?type=bogus")

        assert resp.status_code == 400
        assert resp.get_json()["ok"] is False
