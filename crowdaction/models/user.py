"""User model.

Minimal local view of the platform's users: the donation services only
need to resolve an email to a user id for the event log and to check
subscription ownership. Flask-Login integration via UserMixin.
"""

import uuid

from flask_login import UserMixin

from crowdaction.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255))
    is_admin = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    donation_events = db.relationship(
        "DonationEventLog", back_populates="user", lazy="dynamic"
    )

    def __repr__(self):
        return f"<User {self.email}>"


def find_user_by_email(email):
    """Case-insensitive lookup. Returns the User or None."""
    if not email:
        return None
    return User.query.filter(
        db.func.lower(User.email) == email.strip().lower()
    ).first()
