"""Shared test fixtures for the donation test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off,
  eager Celery)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- donor / other_user / admin_user: local users (ids)
- login: log a user id into the test client's session
"""

import pytest

from crowdaction import create_app
from crowdaction.extensions import db as _db
from crowdaction.models.user import User


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


def _add_user(email, full_name, is_admin=False):
    user = User(email=email, full_name=full_name, is_admin=is_admin)
    _db.session.add(user)
    _db.session.commit()
    return user.id


@pytest.fixture
def donor(db_session):
    """Local user whose email matches the Stripe customer in most tests."""
    return _add_user("a@x.com", "Alice")


@pytest.fixture
def other_user(db_session):
    return _add_user("b@y.com", "Bob")


@pytest.fixture
def admin_user(db_session):
    return _add_user("admin@collaction.org", "Admin", is_admin=True)


@pytest.fixture
def login(client):
    """Put a user id in the session the way Flask-Login does after login."""

    def _login(user_id):
        with client.session_transaction() as sess:
            sess["_user_id"] = user_id
            sess["_fresh"] = True

    return _login
