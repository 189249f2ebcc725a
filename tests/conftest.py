"""
Shared pytest fixtures for the Data Completion Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - transport: the app's in-process broadcast transport
    (seed helpers live in factories.py)
"""

import pytest

from completion_tracker import create_app
from completion_tracker.models import db as _db
from completion_tracker.services.broadcaster import InProcessTransport


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def _transport():
    return InProcessTransport()


@pytest.fixture(scope="session")
def app(_transport):
    """Create the Flask application once per test session."""
    application = create_app("testing", transport=_transport)
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        app.config["MISSING_DATA_DEDUP_ENABLED"] = True
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def transport(_transport):
    """The app's in-process transport, emptied of subscribers after each test."""
    yield _transport
    _transport._subscribers.clear()
