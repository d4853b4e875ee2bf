"""
Tests: configuration classes and app factory wiring.
"""

import pytest

from tracker.config import ProductionConfig, TestingConfig, _database_url


def test_testing_config_uses_memory_sqlite():
    assert TestingConfig.SQLALCHEMY_DATABASE_URI.startswith("sqlite://")
    assert TestingConfig.TESTING is True


def test_accountability_defaults(app):
    assert app.config["ACCOUNTABILITY_GRID_PAST_WEEKS"] == 4
    assert app.config["ACCOUNTABILITY_GRID_FUTURE_WEEKS"] == 1
    assert app.config["ACCOUNTABILITY_GRID_MAX_WEEKS"] == 52
    assert app.config["APPROVAL_FEEDBACK_MAX_LENGTH"] == 2000


def test_postgres_scheme_rewritten():
    assert _database_url("postgres://u:p@host/db") == "postgresql://u:p@host/db"
    assert _database_url("postgresql://u:p@host/db") == "postgresql://u:p@host/db"


def test_production_requires_database_url(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        ProductionConfig()


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://u:p@host/db")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        ProductionConfig()


def test_feedback_limit_read_from_config(app, client, workspace, monkeypatch):
    from tracker.models import db
    from tracker.models.sprint import Sprint
    from tracker.services import document_store

    sprint = Sprint(workspace_id=workspace.id, sprint_number=1, owner_id=101, accountable_id=201)
    db.session.add(sprint)
    db.session.flush()
    document_store.save_sprint_plan(sprint.id, "p")
    monkeypatch.setitem(app.config, "APPROVAL_FEEDBACK_MAX_LENGTH", 10)

    res = client.post(
        f"/api/v1/approvals/sprint_plan/{sprint.id}/request-changes",
        json={"actor_id": 201, "feedback": "x" * 11},
    )
    assert res.status_code == 422
