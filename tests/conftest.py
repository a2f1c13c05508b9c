"""
Shared pytest fixtures for the Bingo Goal Engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - tile / team: Pre-created Tile and Team in the same event
    - make_tile / make_team: factories for extra rows
"""

import uuid

import pytest

from bingo import create_app
from bingo.models import db as _db
from bingo.models.bingo import Team, Tile

EVENT_ID = str(uuid.UUID(int=1))


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
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
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def make_tile():
    def _make(title="Test Tile", event_id=EVENT_ID):
        t = Tile(title=title, event_id=event_id)
        _db.session.add(t)
        _db.session.commit()
        return t
    return _make


@pytest.fixture()
def make_team():
    def _make(name="Team Alpha", event_id=EVENT_ID):
        t = Team(name=name, event_id=event_id)
        _db.session.add(t)
        _db.session.commit()
        return t
    return _make


@pytest.fixture()
def tile(make_tile):
    return make_tile()


@pytest.fixture()
def team(make_team):
    return make_team()
