"""
Accountability grid — people × sprint matrix of plan/review statuses.

Each cell is one sprint a person owns; its plan and review are coloured with
deadline_status.resolve_status().  Plan deadline is the sprint's computed start
date, review deadline its computed end date.
"""

from __future__ import annotations

import logging
from datetime import date

from flask import current_app

from tracker.services import approval_service, deadline_status, document_store, sprint_calendar

logger = logging.getLogger(__name__)

DEFAULT_PAST_WEEKS = 4
DEFAULT_FUTURE_WEEKS = 1
DEFAULT_MAX_WEEKS = 52


def _week_range(current: int, from_number: int | None, to_number: int | None) -> tuple[int, int]:
    past = current_app.config.get("ACCOUNTABILITY_GRID_PAST_WEEKS", DEFAULT_PAST_WEEKS)
    future = current_app.config.get("ACCOUNTABILITY_GRID_FUTURE_WEEKS", DEFAULT_FUTURE_WEEKS)
    max_weeks = current_app.config.get("ACCOUNTABILITY_GRID_MAX_WEEKS", DEFAULT_MAX_WEEKS)
    low = from_number if from_number is not None else max(1, current - past)
    high = to_number if to_number is not None else current + future
    if low < 1 or high < low:
        raise ValueError(f"Invalid sprint range {low}..{high}")
    if high - low + 1 > max_weeks:
        raise ValueError(f"Sprint range {low}..{high} spans more than {max_weeks} weeks")
    if high > current + max_weeks:
        raise ValueError(f"Sprint {high} is more than {max_weeks} weeks after the current sprint {current}")
    return low, high


def _deliverable(kind: str, sprint, deadline: date, today: date) -> dict:
    has_content, state = approval_service.content_status(kind, sprint)
    return {
        "status": deadline_status.resolve_status(has_content, state, deadline, today),
        "approval_state": state,
    }


def _cell(sprint, anchor: date, today: date) -> dict:
    window = sprint_calendar.sprint_window(sprint.sprint_number, anchor)
    return {
        "sprint_id": sprint.id,
        "title": sprint.display_title,
        "status": sprint.status,
        "temporal_status": sprint_calendar.sprint_temporal_status(sprint.sprint_number, anchor, today),
        "plan": _deliverable(approval_service.SPRINT_PLAN, sprint, window.start_date, today),
        "review": _deliverable(approval_service.SPRINT_REVIEW, sprint, window.end_date, today),
    }


def build_grid(
    workspace_id: int,
    today: date | None = None,
    from_number: int | None = None,
    to_number: int | None = None,
) -> dict:
    """Build the grid for a sprint-number range.

    Defaults to the current sprint minus ACCOUNTABILITY_GRID_PAST_WEEKS through
    plus ACCOUNTABILITY_GRID_FUTURE_WEEKS.  Raises NotFoundError for an unknown
    workspace and ValueError for an empty or non-positive range, one wider than
    ACCOUNTABILITY_GRID_MAX_WEEKS, or one ending more than that many weeks
    after the current sprint.
    """
    today = today or sprint_calendar.utc_today()
    workspace = document_store.get_workspace_or_404(workspace_id)
    anchor = document_store.resolve_anchor_date(workspace, today)
    current = sprint_calendar.current_sprint_number(anchor, today)
    low, high = _week_range(current, from_number, to_number)

    weeks = []
    for number in range(low, high + 1):
        window = sprint_calendar.sprint_window(number, anchor)
        weeks.append({
            "number": number,
            **window.to_dict(),
            "temporal_status": sprint_calendar.sprint_temporal_status(number, anchor, today),
            "is_current": number == current,
        })

    rows = {}
    for person in document_store.list_people(workspace_id):
        rows[person.user_id] = {"user_id": person.user_id, "name": person.name, "weeks": {}}

    for sprint in document_store.list_workspace_sprints(workspace_id, low, high):
        row = rows.setdefault(
            sprint.owner_id,
            {"user_id": sprint.owner_id, "name": None, "weeks": {}},
        )
        # One cell per person per week; the lowest sprint id wins a collision.
        row["weeks"].setdefault(str(sprint.sprint_number), _cell(sprint, anchor, today))

    logger.debug(
        "Accountability grid built",
        extra={"workspace_id": workspace_id},
    )
    return {
        "workspace_id": workspace_id,
        "current_sprint_number": current,
        "weeks": weeks,
        "people": list(rows.values()),
    }
