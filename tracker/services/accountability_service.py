"""
Accountability Scanner — what does a person still owe?

Infers missing accountability items for one user in one workspace from
calendar position and the current state of sprints, projects, issues,
standups and reviews.  Nothing is stored: items are recomputed on every call,
and the same snapshot with the same ``today`` always yields the same ordered
list.

Checks (run in this order, results concatenated):
    1. standup        no standup today in a current sprint the user works in
    2. weekly_plan    started sprint the user owns has no plan
    3. week_start     started sprint the user owns is still "planning"
    4. week_issues    started sprint the user owns has no issues
    5. weekly_review  ended sprint the user owns has no review past its due day
    6. project_plan   project the user owns has no plan
    7. project_retro  project the user owns has all issues finished, outcome unset

A check that raises is logged and contributes nothing; the others still run.

Usage:
    from tracker.services.accountability_service import scan, get_action_items
    items = scan(user_id=7, workspace_id=1)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from tracker.models.issue import FINISHED_ISSUE_STATES
from tracker.models.sprint import STARTED_STATUSES
from tracker.services import deadline_status, document_store, sprint_calendar

logger = logging.getLogger(__name__)

# ── Item types ────────────────────────────────────────────────────────────────

STANDUP = "standup"
WEEKLY_PLAN = "weekly_plan"
WEEK_START = "week_start"
WEEK_ISSUES = "week_issues"
WEEKLY_REVIEW = "weekly_review"
PROJECT_PLAN = "project_plan"
PROJECT_RETRO = "project_retro"

ACCOUNTABILITY_TYPES = (
    STANDUP, WEEKLY_PLAN, WEEK_START, WEEK_ISSUES,
    WEEKLY_REVIEW, PROJECT_PLAN, PROJECT_RETRO,
)

# Business days after a sprint ends before its review is overdue
REVIEW_GRACE_BUSINESS_DAYS = 1


@dataclass(frozen=True)
class MissingAccountabilityItem:
    type: str
    target_id: int
    target_type: str
    target_title: str
    due_date: date | None
    message: str
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.type not in ACCOUNTABILITY_TYPES:
            raise ValueError(f"Unknown accountability item type '{self.type}'")

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "target_id": self.target_id,
            "target_type": self.target_type,
            "target_title": self.target_title,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "message": self.message,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ScanContext:
    """Inputs shared by every check of one scan."""

    user_id: int
    workspace_id: int
    anchor: date
    today: date

    @property
    def current_sprint_number(self) -> int:
        return sprint_calendar.current_sprint_number(self.anchor, self.today)

    def window(self, sprint_number: int | None) -> sprint_calendar.SprintWindow:
        return sprint_calendar.sprint_window(sprint_number or 1, self.anchor)


# ═════════════════════════════════════════════════════════════════════════════
# Checks
# ═════════════════════════════════════════════════════════════════════════════


def check_missing_standups(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    """Standup owed today in each current sprint where the user has assigned issues."""
    if not sprint_calendar.is_business_day(ctx.today):
        return []

    items = []
    sprints = document_store.list_sprints_with_assigned_issues(
        ctx.user_id, ctx.workspace_id, ctx.current_sprint_number,
    )
    for sprint in sprints:
        if document_store.has_standup_on(ctx.user_id, sprint.id, ctx.today):
            continue

        issue_count = document_store.count_assigned_issues(ctx.user_id, sprint.id)
        last = document_store.last_standup_date(ctx.user_id, sprint.id, before=ctx.today)
        days_since = (ctx.today - last).days if last else None

        message = f"Post standup for {sprint.display_title} ({issue_count} assigned issue{'s' if issue_count != 1 else ''}"
        if days_since is not None:
            message += f", last standup {days_since} day{'s' if days_since != 1 else ''} ago"
        message += ")"

        items.append(MissingAccountabilityItem(
            type=STANDUP,
            target_id=sprint.id,
            target_type="sprint",
            target_title=sprint.display_title,
            due_date=ctx.today,
            message=message,
            metadata={
                "sprint_number": sprint.sprint_number,
                "issue_count": issue_count,
                "days_since_last_standup": days_since,
            },
        ))
    return items


def _started_owned_sprints(ctx: ScanContext):
    for sprint in document_store.list_owned_sprints(ctx.user_id, ctx.workspace_id):
        window = ctx.window(sprint.sprint_number)
        if ctx.today >= window.start_date:
            yield sprint, window


def check_sprints_without_plan(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    items = []
    for sprint, window in _started_owned_sprints(ctx):
        if document_store.has_text(sprint.plan):
            continue
        items.append(MissingAccountabilityItem(
            type=WEEKLY_PLAN,
            target_id=sprint.id,
            target_type="sprint",
            target_title=sprint.display_title,
            due_date=window.start_date,
            message=f"Write plan for {sprint.display_title}",
            metadata={"sprint_number": sprint.sprint_number},
        ))
    return items


def check_sprints_not_started(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    """Started by the calendar but still not marked active/completed by hand."""
    items = []
    for sprint, window in _started_owned_sprints(ctx):
        if sprint.status in STARTED_STATUSES:
            continue
        items.append(MissingAccountabilityItem(
            type=WEEK_START,
            target_id=sprint.id,
            target_type="sprint",
            target_title=sprint.display_title,
            due_date=window.start_date,
            message=f"Start {sprint.display_title}",
            metadata={
                "sprint_number": sprint.sprint_number,
                "status": sprint.status,
                "temporal_status": sprint_calendar.sprint_temporal_status(
                    sprint.sprint_number or 1, ctx.anchor, ctx.today,
                ),
            },
        ))
    return items


def check_sprints_without_issues(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    items = []
    for sprint, window in _started_owned_sprints(ctx):
        if document_store.count_sprint_issues(sprint.id) > 0:
            continue
        items.append(MissingAccountabilityItem(
            type=WEEK_ISSUES,
            target_id=sprint.id,
            target_type="sprint",
            target_title=sprint.display_title,
            due_date=window.start_date,
            message=f"Add issues to {sprint.display_title}",
            metadata={"sprint_number": sprint.sprint_number, "issue_count": 0},
        ))
    return items


def check_missing_reviews(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    """Ended sprints with no review, once the grace business day has passed."""
    items = []
    for sprint in document_store.list_owned_sprints(ctx.user_id, ctx.workspace_id):
        if document_store.sprint_has_review(sprint.id):
            continue
        end_date = ctx.window(sprint.sprint_number).end_date
        if ctx.today <= end_date:
            continue
        review_due = sprint_calendar.add_business_days(end_date, REVIEW_GRACE_BUSINESS_DAYS)
        if ctx.today <= review_due:
            continue
        items.append(MissingAccountabilityItem(
            type=WEEKLY_REVIEW,
            target_id=sprint.id,
            target_type="sprint",
            target_title=sprint.display_title,
            due_date=review_due,
            message=f"Complete review for {sprint.display_title}",
            metadata={
                "sprint_number": sprint.sprint_number,
                "sprint_end_date": end_date.isoformat(),
            },
        ))
    return items


def check_projects_without_plan(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    items = []
    for project in document_store.list_owned_projects(ctx.user_id, ctx.workspace_id):
        if document_store.has_text(project.plan):
            continue
        items.append(MissingAccountabilityItem(
            type=PROJECT_PLAN,
            target_id=project.id,
            target_type="project",
            target_title=project.display_title,
            due_date=None,
            message=f"Write plan for {project.display_title}",
        ))
    return items


def check_projects_without_retro(ctx: ScanContext) -> list[MissingAccountabilityItem]:
    """Projects whose issues are all done/cancelled while the outcome is unset.

    Keys off ``plan_validated`` rather than the existence of a retro document.
    """
    items = []
    for project in document_store.list_owned_projects(ctx.user_id, ctx.workspace_id):
        if project.plan_validated is not None:
            continue
        states = document_store.project_issue_states(project.id)
        if not states:
            continue
        if any(state not in FINISHED_ISSUE_STATES for state in states):
            continue
        items.append(MissingAccountabilityItem(
            type=PROJECT_RETRO,
            target_id=project.id,
            target_type="project",
            target_title=project.display_title,
            due_date=None,
            message=f"Complete retro for {project.display_title}",
            metadata={"issue_count": len(states)},
        ))
    return items


CHECKS = (
    check_missing_standups,
    check_sprints_without_plan,
    check_sprints_not_started,
    check_sprints_without_issues,
    check_missing_reviews,
    check_projects_without_plan,
    check_projects_without_retro,
)


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════


def build_context(user_id: int, workspace_id: int, today: date | None = None) -> ScanContext | None:
    """Scan context for a workspace, or None when the workspace does not exist."""
    today = today or sprint_calendar.utc_today()
    workspace = document_store.get_workspace(workspace_id)
    if workspace is None:
        return None
    return ScanContext(
        user_id=user_id,
        workspace_id=workspace_id,
        anchor=document_store.resolve_anchor_date(workspace, today),
        today=today,
    )


def scan(user_id: int, workspace_id: int, today: date | None = None) -> list[MissingAccountabilityItem]:
    """Every missing accountability item for the user, in check order.

    A non-existent workspace yields an empty list.
    """
    ctx = build_context(user_id, workspace_id, today)
    if ctx is None:
        logger.info(
            "Accountability scan on unknown workspace",
            extra={"workspace_id": workspace_id, "user_id": user_id},
        )
        return []

    items: list[MissingAccountabilityItem] = []
    for check in CHECKS:
        try:
            items.extend(check(ctx))
        except Exception:
            logger.exception(
                "Accountability check %s failed",
                check.__name__,
                extra={"check": check.__name__, "workspace_id": workspace_id, "user_id": user_id},
            )
    return items


def get_action_items(user_id: int, workspace_id: int, today: date | None = None) -> list[dict]:
    """Scan output decorated for the action list and ordered by urgency.

    Each item gains ``id`` (``"{type}-{target_id}"``), ``days_overdue``
    (calendar days past due; negative when upcoming) and ``deadline_status``.
    Items without a due date carry None for both.
    """
    today = today or sprint_calendar.utc_today()
    decorated = []
    for item in scan(user_id, workspace_id, today):
        row = item.to_dict()
        row["id"] = f"{item.type}-{item.target_id}"
        if item.due_date is not None:
            row["days_overdue"] = (today - item.due_date).days
            row["deadline_status"] = deadline_status.resolve_status(False, None, item.due_date, today)
        else:
            row["days_overdue"] = None
            row["deadline_status"] = None
        decorated.append(row)
    return deadline_status.rank_action_items(decorated)
