"""
Deadline Status Resolver.

Turns "is the content written", "what is its approval state" and "where is
today relative to the deadline" into one of five display statuses:

    approved  content written and signed off
    written   content written, not (or no longer) approved
    overdue   nothing written, deadline passed
    warning   nothing written, deadline within WARNING_BUSINESS_DAYS
    future    nothing written, deadline further out

The same resolver colours grid cells and orders the action-item list.
"""

from __future__ import annotations

from datetime import date

from tracker.services.sprint_calendar import business_days_between

FUTURE = "future"
WARNING = "warning"
OVERDUE = "overdue"
WRITTEN = "written"
APPROVED = "approved"

WARNING_BUSINESS_DAYS = 2

# Action-list ordering; undated items sort after every rank
URGENCY_RANK = {OVERDUE: 0, WARNING: 1, FUTURE: 2}
_UNDATED_RANK = len(URGENCY_RANK)


def resolve_status(has_content: bool, approval_state: str | None, deadline: date | None, today: date) -> str:
    """Resolve the display status of one deliverable.

    With content, only ``approval_state == "approved"`` shows as approved;
    written, changed_since_approved and changes_requested all show as written.
    Without content, ``deadline`` is required.
    """
    if has_content:
        return APPROVED if approval_state == APPROVED else WRITTEN

    if deadline is None:
        raise ValueError("deadline is required when content is missing")

    remaining = business_days_between(today, deadline)
    if remaining < 0:
        return OVERDUE
    if remaining <= WARNING_BUSINESS_DAYS:
        return WARNING
    return FUTURE


def _urgency_key(item: dict) -> tuple:
    status = item.get("deadline_status")
    rank = URGENCY_RANK.get(status, _UNDATED_RANK) if item.get("due_date") else _UNDATED_RANK
    days_overdue = item.get("days_overdue")
    return (rank, -(days_overdue if days_overdue is not None else 0))


def rank_action_items(items: list[dict]) -> list[dict]:
    """Order action items by urgency.

    Overdue first, then warning, then future, then items with no due date.
    Within a rank the most overdue comes first; ties keep their scan order.
    """
    return sorted(items, key=_urgency_key)
