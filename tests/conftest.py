"""
Shared pytest fixtures for the Team Accountability Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - workspace: Workspace anchored on Monday 2025-01-06
    - owner / reviewer / admin: Person rows in that workspace
"""

from datetime import date

import pytest

from tracker import create_app
from tracker.models import db as _db
from tracker.models.workspace import Person, Workspace

ANCHOR = date(2025, 1, 6)

OWNER_ID = 101
REVIEWER_ID = 201
ADMIN_ID = 301
OUTSIDER_ID = 999


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
def workspace():
    """Workspace whose sprint 1 runs Mon 2025-01-06 → Sun 2025-01-12."""
    ws = Workspace(name="Platform Team", sprint_start_date=ANCHOR)
    _db.session.add(ws)
    _db.session.flush()
    return ws


def _person(workspace, user_id, name, is_admin=False):
    p = Person(
        workspace_id=workspace.id,
        user_id=user_id,
        name=name,
        email=f"{name.lower()}@example.com",
        is_admin=is_admin,
    )
    _db.session.add(p)
    _db.session.flush()
    return p


@pytest.fixture()
def owner(workspace):
    return _person(workspace, OWNER_ID, "Olivia")


@pytest.fixture()
def reviewer(workspace):
    return _person(workspace, REVIEWER_ID, "Ravi")


@pytest.fixture()
def admin(workspace):
    return _person(workspace, ADMIN_ID, "Ada", is_admin=True)
