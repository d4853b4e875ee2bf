"""
Tests: Approval endpoints — /api/v1/approvals/<kind>/<doc_id>.

Covers:
    - approve / request-changes happy paths for every document kind
    - 409 when nothing has been written yet
    - reviewer guard (accountable person or workspace admin → else 403)
    - input validation (400) and feedback business rules (422)
    - changed_since_approved surfacing after an edit
"""

import pytest

from tracker.models import db
from tracker.models.project import Project
from tracker.models.sprint import Sprint
from tracker.services import document_store

OWNER_ID = 101
REVIEWER_ID = 201
ADMIN_ID = 301
OUTSIDER_ID = 999

BASE = "/api/v1/approvals"


# ── Helpers ──────────────────────────────────────────────────────────────────


def _sprint(ws, **kwargs) -> Sprint:
    s = Sprint(workspace_id=ws.id, sprint_number=1, owner_id=OWNER_ID, accountable_id=REVIEWER_ID, **kwargs)
    db.session.add(s)
    db.session.flush()
    return s


def _project(ws, **kwargs) -> Project:
    p = Project(workspace_id=ws.id, owner_id=OWNER_ID, accountable_id=REVIEWER_ID, title="Billing v2", **kwargs)
    db.session.add(p)
    db.session.flush()
    return p


def _approve(client, kind, doc_id, actor_id, **kwargs):
    payload = {"actor_id": actor_id}
    payload.update(kwargs)
    return client.post(f"{BASE}/{kind}/{doc_id}/approve", json=payload)


def _request_changes(client, kind, doc_id, actor_id, feedback):
    return client.post(
        f"{BASE}/{kind}/{doc_id}/request-changes",
        json={"actor_id": actor_id, "feedback": feedback},
    )


# ── Happy paths ──────────────────────────────────────────────────────────────


def test_approve_written_sprint_plan(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "Ship search", author_id=OWNER_ID)
    version = document_store.latest_version_id("sprint", sprint.id, "plan")

    res = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID)

    assert res.status_code == 200
    tracking = res.get_json()["tracking"]
    assert tracking["state"] == "approved"
    assert tracking["approved_by"] == REVIEWER_ID
    assert tracking["approved_version_id"] == version
    assert tracking["approved_at"] is not None
    assert tracking["feedback"] is None


def test_get_reports_effective_state(client, workspace):
    sprint = _sprint(workspace)

    res = client.get(f"{BASE}/sprint_plan/{sprint.id}")
    assert res.status_code == 200
    assert res.get_json()["state"] is None
    assert res.get_json()["has_content"] is False

    document_store.save_sprint_plan(sprint.id, "Ship search")
    assert client.get(f"{BASE}/sprint_plan/{sprint.id}").get_json()["state"] == "written"


def test_edit_after_approval_reads_changed(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "v1")
    assert _approve(client, "sprint_plan", sprint.id, REVIEWER_ID).status_code == 200

    document_store.save_sprint_plan(sprint.id, "v2")
    body = client.get(f"{BASE}/sprint_plan/{sprint.id}").get_json()
    assert body["state"] == "changed_since_approved"

    assert _approve(client, "sprint_plan", sprint.id, REVIEWER_ID).status_code == 200
    body = client.get(f"{BASE}/sprint_plan/{sprint.id}").get_json()
    assert body["state"] == "approved"
    assert body["tracking"]["approved_version_id"] == body["latest_version_id"]


def test_approve_is_idempotent(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "v1")
    first = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID).get_json()["tracking"]
    second = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID).get_json()["tracking"]
    assert second["state"] == first["state"] == "approved"
    assert second["approved_version_id"] == first["approved_version_id"]


def test_request_changes_then_reapprove(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_review(sprint.id, "We shipped half")

    res = _request_changes(client, "sprint_review", sprint.id, REVIEWER_ID, "Which half?")
    assert res.status_code == 200
    tracking = res.get_json()["tracking"]
    assert tracking["state"] == "changes_requested"
    assert tracking["feedback"] == "Which half?"
    assert tracking["approved_version_id"] is None

    document_store.save_sprint_review(sprint.id, "We shipped search, not filters")
    res = _approve(client, "sprint_review", sprint.id, REVIEWER_ID)
    assert res.get_json()["tracking"]["state"] == "approved"
    assert res.get_json()["tracking"]["feedback"] is None


@pytest.mark.parametrize("kind,save", [
    ("project_plan", lambda p: document_store.save_project_plan(p.id, "Cut churn 5%")),
    ("project_retro", lambda p: document_store.save_project_retro(p.id, "Churn fell 3%", plan_validated=False)),
])
def test_project_documents(client, workspace, kind, save):
    project = _project(workspace)
    save(project)
    res = _approve(client, kind, project.id, REVIEWER_ID)
    assert res.status_code == 200
    assert res.get_json()["kind"] == kind


# ── Illegal transitions ──────────────────────────────────────────────────────


@pytest.mark.parametrize("kind", ["sprint_plan", "sprint_review"])
def test_approve_unwritten_returns_409(client, workspace, kind):
    sprint = _sprint(workspace)
    res = _approve(client, kind, sprint.id, REVIEWER_ID)
    assert res.status_code == 409
    body = res.get_json()
    assert body["code"] == "ERR_CONFLICT_STATE"
    assert body["details"]["state"] is None


def test_request_changes_unwritten_returns_409(client, workspace):
    project = _project(workspace)
    res = _request_changes(client, "project_retro", project.id, REVIEWER_ID, "Write it first")
    assert res.status_code == 409


# ── Reviewer guard ───────────────────────────────────────────────────────────


def test_outsider_forbidden(client, workspace):
    sprint = _sprint(workspace, plan="p")
    res = _approve(client, "sprint_plan", sprint.id, OUTSIDER_ID)
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_FORBIDDEN"


def test_owner_cannot_self_approve(client, workspace):
    sprint = _sprint(workspace, plan="p")
    assert _approve(client, "sprint_plan", sprint.id, OWNER_ID).status_code == 403


def test_workspace_admin_allowed(client, workspace, admin):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "p")
    res = _approve(client, "sprint_plan", sprint.id, ADMIN_ID)
    assert res.status_code == 200
    assert res.get_json()["tracking"]["approved_by"] == ADMIN_ID


# ── Input validation ─────────────────────────────────────────────────────────


def test_unknown_kind_returns_400(client, workspace):
    res = _approve(client, "standup", 1, REVIEWER_ID)
    assert res.status_code == 400
    assert "valid_kinds" in res.get_json()["details"]


def test_missing_document_returns_404(client, workspace):
    res = _approve(client, "sprint_plan", 4040, REVIEWER_ID)
    assert res.status_code == 404


def test_missing_actor_returns_400(client, workspace):
    sprint = _sprint(workspace, plan="p")
    res = client.post(f"{BASE}/sprint_plan/{sprint.id}/approve", json={})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_non_integer_version_returns_400(client, workspace):
    sprint = _sprint(workspace, plan="p")
    res = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID, version_id="latest")
    assert res.status_code == 400


@pytest.mark.parametrize("feedback", [None, "", "   "])
def test_request_changes_requires_feedback(client, workspace, feedback):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "p")
    res = _request_changes(client, "sprint_plan", sprint.id, REVIEWER_ID, feedback)
    assert res.status_code == 422
    assert res.get_json()["code"] == "ERR_VALIDATION_RULE"


def test_request_changes_feedback_too_long(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "p")
    res = _request_changes(client, "sprint_plan", sprint.id, REVIEWER_ID, "x" * 2001)
    assert res.status_code == 422


def test_rejected_request_leaves_tracking_untouched(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "p")
    _approve(client, "sprint_plan", sprint.id, REVIEWER_ID)

    _request_changes(client, "sprint_plan", sprint.id, REVIEWER_ID, "")
    assert client.get(f"{BASE}/sprint_plan/{sprint.id}").get_json()["state"] == "approved"


# ── Version pinning ──────────────────────────────────────────────────────────


def test_approve_explicit_older_version(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "v1")
    v1 = document_store.latest_version_id("sprint", sprint.id, "plan")
    document_store.save_sprint_plan(sprint.id, "v2")

    res = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID, version_id=v1)
    assert res.status_code == 200
    assert res.get_json()["tracking"]["approved_version_id"] == v1
    assert client.get(f"{BASE}/sprint_plan/{sprint.id}").get_json()["state"] == "changed_since_approved"


def test_approve_unknown_version_returns_422(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "v1")

    res = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID, version_id=987654)

    assert res.status_code == 422
    assert res.get_json()["code"] == "ERR_VALIDATION_RULE"
    assert res.get_json()["details"] == {"version_id": 987654}
    assert client.get(f"{BASE}/sprint_plan/{sprint.id}").get_json()["state"] == "written"


def test_approve_version_of_another_document_returns_422(client, workspace):
    sprint = _sprint(workspace)
    other = Sprint(workspace_id=workspace.id, sprint_number=2, owner_id=OWNER_ID, accountable_id=REVIEWER_ID)
    db.session.add(other)
    db.session.flush()
    document_store.save_sprint_plan(sprint.id, "mine")
    document_store.save_sprint_plan(other.id, "theirs")
    foreign = document_store.latest_version_id("sprint", other.id, "plan")

    res = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID, version_id=foreign)
    assert res.status_code == 422


def test_approve_version_of_missing_review_returns_422(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "plan")
    plan_version = document_store.latest_version_id("sprint", sprint.id, "plan")

    res = _approve(client, "sprint_review", sprint.id, REVIEWER_ID, version_id=plan_version)
    assert res.status_code == 422


def test_approve_cleared_content_returns_422(client, workspace):
    sprint = _sprint(workspace)
    document_store.save_sprint_plan(sprint.id, "v1")
    assert _approve(client, "sprint_plan", sprint.id, REVIEWER_ID).status_code == 200
    document_store.save_sprint_plan(sprint.id, "")

    res = _approve(client, "sprint_plan", sprint.id, REVIEWER_ID)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"content": "empty"}
