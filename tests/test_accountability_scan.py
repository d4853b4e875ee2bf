"""
Accountability scanner tests — one class per check plus the cross-cutting
properties (order, determinism, failure isolation).

Calendar used throughout: workspace anchored Mon 2025-01-06.
    sprint 1: Mon 01-06 → Sun 01-12   (review due Mon 01-13)
    sprint 2: Mon 01-13 → Sun 01-19
"""

from datetime import date, datetime, timezone

import pytest

from tracker.models import db
from tracker.models.issue import DocumentAssociation, Issue
from tracker.models.project import Project
from tracker.models.sprint import Sprint, Standup, WeeklyReview
from tracker.services import accountability_service as svc

OWNER_ID = 101      # conftest "owner" fixture
OUTSIDER_ID = 999

WED_WEEK_1 = date(2025, 1, 8)


# ═════════════════════════════════════════════════════════════════════════════
# ORM Helper Factories
# ═════════════════════════════════════════════════════════════════════════════


def _sprint(ws, number=1, owner_id=OWNER_ID, **kwargs) -> Sprint:
    s = Sprint(workspace_id=ws.id, sprint_number=number, owner_id=owner_id, **kwargs)
    db.session.add(s)
    db.session.flush()
    return s


def _project(ws, owner_id=OWNER_ID, **kwargs) -> Project:
    p = Project(workspace_id=ws.id, owner_id=owner_id, **kwargs)
    db.session.add(p)
    db.session.flush()
    return p


def _issue(ws, *, sprint=None, project=None, assignee_id=None, state="todo") -> Issue:
    issue = Issue(workspace_id=ws.id, title="Issue", state=state, assignee_id=assignee_id)
    db.session.add(issue)
    db.session.flush()
    if sprint is not None:
        db.session.add(DocumentAssociation(document_id=issue.id, related_id=sprint.id, relationship_type="sprint"))
    if project is not None:
        db.session.add(DocumentAssociation(document_id=issue.id, related_id=project.id, relationship_type="project"))
    db.session.flush()
    return issue


def _standup(ws, sprint, author_id, created_at) -> Standup:
    s = Standup(workspace_id=ws.id, sprint_id=sprint.id, author_id=author_id, content="Yesterday / today", created_at=created_at)
    db.session.add(s)
    db.session.flush()
    return s


def _types(items):
    return [item.type for item in items]


# ═════════════════════════════════════════════════════════════════════════════
# Scenarios
# ═════════════════════════════════════════════════════════════════════════════


class TestFreshSprintScenario:
    """Sprint 1 owned by the user, status planning, no plan, no issues."""

    def test_three_items_in_check_order(self, workspace):
        sprint = _sprint(workspace, title="Week 1: Checkout")
        items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)

        assert _types(items) == [svc.WEEKLY_PLAN, svc.WEEK_START, svc.WEEK_ISSUES]
        assert all(item.target_id == sprint.id for item in items)
        assert all(item.due_date == date(2025, 1, 6) for item in items)
        assert all(item.target_type == "sprint" for item in items)
        assert items[0].message == "Write plan for Week 1: Checkout"
        assert items[1].message == "Start Week 1: Checkout"
        assert items[2].message == "Add issues to Week 1: Checkout"

    def test_untitled_sprint_uses_week_number(self, workspace):
        _sprint(workspace, number=1)
        items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)
        assert items[0].target_title == "Week 1"

    def test_nothing_owed_before_sprint_starts(self, workspace):
        _sprint(workspace, number=2)
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    def test_fully_prepared_sprint_owes_nothing(self, workspace):
        sprint = _sprint(workspace, plan="Ship the checkout flow", status="active")
        _issue(workspace, sprint=sprint)
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    def test_other_users_sprints_ignored(self, workspace):
        _sprint(workspace, owner_id=OUTSIDER_ID)
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    @pytest.mark.parametrize("field", ["deleted_at", "archived_at"])
    def test_deleted_and_archived_sprints_ignored(self, workspace, field):
        _sprint(workspace, **{field: datetime(2025, 1, 7, tzinfo=timezone.utc)})
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    def test_whitespace_plan_counts_as_missing(self, workspace):
        _sprint(workspace, plan="   \n", status="active")
        assert svc.WEEKLY_PLAN in _types(svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1))

    def test_completed_status_satisfies_week_start(self, workspace):
        _sprint(workspace, plan="plan", status="completed")
        assert svc.WEEK_START not in _types(svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1))


class TestMissingReview:
    def _ready_sprint(self, workspace):
        sprint = _sprint(workspace, plan="plan", status="completed")
        _issue(workspace, sprint=sprint)
        return sprint

    def test_not_owed_while_sprint_runs(self, workspace):
        self._ready_sprint(workspace)
        assert svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 12)) == []

    def test_not_overdue_on_grace_day(self, workspace):
        self._ready_sprint(workspace)
        assert svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 13)) == []

    def test_overdue_after_grace_day(self, workspace):
        sprint = self._ready_sprint(workspace)
        items = svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 14))

        assert _types(items) == [svc.WEEKLY_REVIEW]
        assert items[0].target_id == sprint.id
        assert items[0].due_date == date(2025, 1, 13)
        assert items[0].metadata["sprint_end_date"] == "2025-01-12"
        assert items[0].message == "Complete review for Week 1"

    def test_existing_review_satisfies(self, workspace):
        sprint = self._ready_sprint(workspace)
        db.session.add(WeeklyReview(workspace_id=workspace.id, sprint_id=sprint.id, content=""))
        db.session.flush()
        assert svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 14)) == []


class TestMissingStandup:
    def _sprint_with_assignment(self, workspace, assigned=2):
        sprint = _sprint(workspace, plan="plan", status="active", owner_id=OUTSIDER_ID)
        for _ in range(assigned):
            _issue(workspace, sprint=sprint, assignee_id=OWNER_ID)
        return sprint

    def test_owed_when_assigned_in_current_sprint(self, workspace):
        sprint = self._sprint_with_assignment(workspace)
        items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)

        assert _types(items) == [svc.STANDUP]
        assert items[0].target_id == sprint.id
        assert items[0].due_date == WED_WEEK_1
        assert items[0].metadata["issue_count"] == 2
        assert items[0].metadata["days_since_last_standup"] is None

    def test_standup_today_satisfies(self, workspace):
        sprint = self._sprint_with_assignment(workspace)
        _standup(workspace, sprint, OWNER_ID, datetime(2025, 1, 8, 9, 0, tzinfo=timezone.utc))
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    def test_reports_days_since_last_standup(self, workspace):
        sprint = self._sprint_with_assignment(workspace, assigned=1)
        _standup(workspace, sprint, OWNER_ID, datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc))
        items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)

        assert items[0].metadata["days_since_last_standup"] == 2
        assert "1 assigned issue," in items[0].message
        assert "last standup 2 days ago" in items[0].message

    def test_someone_elses_standup_does_not_count(self, workspace):
        sprint = self._sprint_with_assignment(workspace)
        _standup(workspace, sprint, OUTSIDER_ID, datetime(2025, 1, 8, 9, 0, tzinfo=timezone.utc))
        assert _types(svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)) == [svc.STANDUP]

    def test_not_owed_on_weekend(self, workspace):
        self._sprint_with_assignment(workspace)
        assert svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 11)) == []

    def test_not_owed_without_assignment(self, workspace):
        self._sprint_with_assignment(workspace, assigned=0)
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    def test_deleted_issue_does_not_count(self, workspace):
        sprint = _sprint(workspace, plan="plan", status="active", owner_id=OUTSIDER_ID)
        issue = _issue(workspace, sprint=sprint, assignee_id=OWNER_ID)
        issue.deleted_at = datetime(2025, 1, 7, tzinfo=timezone.utc)
        db.session.flush()
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []


class TestProjects:
    def test_project_without_plan(self, workspace):
        project = _project(workspace)
        items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)

        assert _types(items) == [svc.PROJECT_PLAN]
        assert items[0].target_type == "project"
        assert items[0].due_date is None
        assert items[0].message == "Write plan for Untitled Project"
        assert items[0].target_id == project.id

    def test_retro_owed_once_every_issue_finishes(self, workspace):
        project = _project(workspace, title="Billing v2", plan="Migrate invoices")
        _issue(workspace, project=project, state="done")
        open_issue = _issue(workspace, project=project, state="in_progress")

        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

        open_issue.state = "done"
        db.session.flush()
        items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)
        assert _types(items) == [svc.PROJECT_RETRO]
        assert items[0].message == "Complete retro for Billing v2"
        assert items[0].metadata["issue_count"] == 2

    def test_cancelled_counts_as_finished(self, workspace):
        project = _project(workspace, plan="p")
        _issue(workspace, project=project, state="cancelled")
        assert _types(svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)) == [svc.PROJECT_RETRO]

    def test_retro_not_owed_without_issues(self, workspace):
        _project(workspace, plan="p")
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []

    @pytest.mark.parametrize("outcome", [True, False])
    def test_recorded_outcome_satisfies_retro(self, workspace, outcome):
        project = _project(workspace, plan="p", plan_validated=outcome)
        _issue(workspace, project=project, state="done")
        assert svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1) == []


# ═════════════════════════════════════════════════════════════════════════════
# Cross-cutting behaviour
# ═════════════════════════════════════════════════════════════════════════════


class TestScanProperties:
    def test_unknown_workspace_yields_empty_list(self):
        assert svc.scan(OWNER_ID, 4040, today=WED_WEEK_1) == []

    def test_deterministic(self, workspace):
        _sprint(workspace, number=1)
        _sprint(workspace, number=2, plan="p")
        _project(workspace)
        first = [item.to_dict() for item in svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 15))]
        second = [item.to_dict() for item in svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 15))]
        assert first == second

    def test_all_checks_concatenated_in_fixed_order(self, workspace):
        s1 = _sprint(workspace, number=1)
        s2 = _sprint(workspace, number=2, owner_id=OUTSIDER_ID, plan="p", status="active")
        _issue(workspace, sprint=s2, assignee_id=OWNER_ID)
        _project(workspace)

        items = svc.scan(OWNER_ID, workspace.id, today=date(2025, 1, 14))
        assert _types(items) == [
            svc.STANDUP, svc.WEEKLY_PLAN, svc.WEEK_START, svc.WEEK_ISSUES,
            svc.WEEKLY_REVIEW, svc.PROJECT_PLAN,
        ]
        assert items[0].target_id == s2.id
        assert all(item.target_id == s1.id for item in items[1:5])

    def test_failing_check_is_isolated(self, workspace, monkeypatch, caplog):
        _sprint(workspace)
        _project(workspace)

        def _boom(ctx):
            raise RuntimeError("store unavailable")

        broken = (svc.CHECKS[0], _boom) + svc.CHECKS[2:]
        monkeypatch.setattr(svc, "CHECKS", broken)

        with caplog.at_level("ERROR"):
            items = svc.scan(OWNER_ID, workspace.id, today=WED_WEEK_1)

        assert _types(items) == [svc.WEEK_START, svc.WEEK_ISSUES, svc.PROJECT_PLAN]
        assert "_boom" in caplog.text

    def test_missing_anchor_treats_today_as_week_one(self, workspace):
        workspace.sprint_start_date = None
        _sprint(workspace, number=1)
        db.session.flush()
        items = svc.scan(OWNER_ID, workspace.id, today=date(2025, 3, 5))
        assert items[0].due_date == date(2025, 3, 5)


class TestGetActionItems:
    def test_decorates_and_ranks(self, workspace):
        s1 = _sprint(workspace, number=1)
        s2 = _sprint(workspace, number=2)
        _project(workspace)

        items = svc.get_action_items(OWNER_ID, workspace.id, today=date(2025, 1, 14))
        ids = [item["id"] for item in items]

        assert ids == [
            f"weekly_plan-{s1.id}", f"week_start-{s1.id}", f"week_issues-{s1.id}",
            f"weekly_plan-{s2.id}", f"week_start-{s2.id}", f"week_issues-{s2.id}",
            f"weekly_review-{s1.id}",
            f"project_plan-{items[-1]['target_id']}",
        ]
        assert items[0]["days_overdue"] == 8
        assert items[0]["deadline_status"] == "overdue"
        assert items[3]["days_overdue"] == 1
        assert items[-1]["due_date"] is None
        assert items[-1]["deadline_status"] is None
        assert items[-1]["days_overdue"] is None

    def test_due_today_is_warning(self, workspace):
        sprint = _sprint(workspace, plan="p", status="active", owner_id=OUTSIDER_ID)
        _issue(workspace, sprint=sprint, assignee_id=OWNER_ID)

        items = svc.get_action_items(OWNER_ID, workspace.id, today=WED_WEEK_1)
        assert len(items) == 1
        assert items[0]["deadline_status"] == "warning"
        assert items[0]["days_overdue"] == 0


class TestMissingAccountabilityItem:
    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="standup_v2"):
            svc.MissingAccountabilityItem(
                type="standup_v2", target_id=1, target_type="sprint",
                target_title="Week 1", due_date=None, message="Post standup",
            )

    def test_known_type_serialises(self):
        item = svc.MissingAccountabilityItem(
            type=svc.WEEKLY_PLAN, target_id=1, target_type="sprint",
            target_title="Week 1", due_date=date(2025, 1, 6), message="Write plan for Week 1",
        )
        assert item.to_dict()["due_date"] == "2025-01-06"
