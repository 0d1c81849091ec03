"""Donation event log model (append-only audit trail).

Every gateway interaction is recorded here: internal entries for calls
this service made (checkout sessions, attached sources, subscriptions,
charges, cancellations) and external entries for every event Stripe
delivers to the payment-event webhook.

Rows are never updated or deleted. The ORM refuses both, per object at
flush time and as bulk UPDATE / DELETE statements, so the only way to
touch this table through the ORM is an insert. Raw SQL on the connection
is not covered.
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from crowdaction.extensions import db


class DonationEventType:
    INTERNAL = "internal"
    EXTERNAL = "external"

    ALL = (INTERNAL, EXTERNAL)


class DonationEventLog(db.Model):
    __tablename__ = "donation_event_log"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now(), nullable=False
    )
    type = db.Column(
        db.String(20), nullable=False, index=True
    )  # internal | external
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True, index=True
    )
    event_data = db.Column(db.JSON, nullable=False)  # raw gateway object / event

    # --- Relationships ---
    user = db.relationship("User", back_populates="donation_events")

    def to_dict(self):
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "type": self.type,
            "user_id": self.user_id,
            "event_data": self.event_data,
        }

    def __repr__(self):
        return f"<DonationEventLog {self.id} ({self.type})>"


@event.listens_for(DonationEventLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError(f"Donation event log entry {target.id} is append-only")


@event.listens_for(DonationEventLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError(f"Donation event log entry {target.id} is append-only")


@event.listens_for(Session, "do_orm_execute")
def _refuse_bulk_write(orm_execute_state):
    """Bulk UPDATE / DELETE statements skip the flush hooks above."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is not None and mapper.class_ is DonationEventLog:
        raise RuntimeError("Donation event log is append-only")
