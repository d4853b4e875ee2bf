"""
Accountability Blueprint.

Read-only views over the accountability engine.  Every route is scoped to a
workspace; ``as_of`` (ISO date, UTC) pins "today" for reproducible answers.

Endpoints:
    GET /api/v1/workspaces/<wid>/accountability/items?user_id=&as_of=
        Missing accountability items in scan order.
    GET /api/v1/workspaces/<wid>/accountability/action-items?user_id=&as_of=
        Same items with id / days_overdue / deadline_status, urgency-ordered.
    GET /api/v1/workspaces/<wid>/accountability/grid?as_of=&from=&to=
        People × sprint matrix of plan/review statuses.
    GET /api/v1/workspaces/<wid>/calendar?as_of=
        Current sprint number, window and temporal status.

Layer contract:
    - Blueprint: parse query params, call service, return JSON.
    - NO db.session calls here.
"""

from flask import Blueprint, jsonify, request

from tracker.services import accountability_grid, accountability_service, document_store, sprint_calendar
from tracker.utils.errors import E, api_error, register_error_handlers

accountability_bp = Blueprint("accountability", __name__, url_prefix="/api/v1")
register_error_handlers(accountability_bp)


# ── Helpers ────────────────────────────────────────────────────────────────────


def _as_of():
    """Parse ``as_of``; returns (date, err_response)."""
    raw = request.args.get("as_of")
    if not raw:
        return sprint_calendar.utc_today(), None
    try:
        return sprint_calendar.to_utc_date(raw), None
    except ValueError:
        return None, api_error(E.VALIDATION_INVALID, f"Invalid as_of date '{raw}'")


def _int_arg(name: str, required: bool = False):
    """Parse an integer query param; returns (value, err_response)."""
    raw = request.args.get(name)
    if raw in (None, ""):
        if required:
            return None, api_error(E.VALIDATION_REQUIRED, f"Query param '{name}' is required")
        return None, None
    try:
        return int(raw), None
    except ValueError:
        return None, api_error(E.VALIDATION_INVALID, f"Query param '{name}' must be an integer")


# ── Routes ─────────────────────────────────────────────────────────────────────


@accountability_bp.route("/workspaces/<int:workspace_id>/accountability/items", methods=["GET"])
def list_missing_items(workspace_id: int):
    user_id, err = _int_arg("user_id", required=True)
    if err:
        return err
    today, err = _as_of()
    if err:
        return err

    items = accountability_service.scan(user_id, workspace_id, today)
    return jsonify({
        "items": [item.to_dict() for item in items],
        "total": len(items),
        "as_of": today.isoformat(),
    }), 200


@accountability_bp.route("/workspaces/<int:workspace_id>/accountability/action-items", methods=["GET"])
def list_action_items(workspace_id: int):
    """Urgency-ordered action list: overdue, then warning, then future, then undated."""
    user_id, err = _int_arg("user_id", required=True)
    if err:
        return err
    today, err = _as_of()
    if err:
        return err

    items = accountability_service.get_action_items(user_id, workspace_id, today)
    overdue = sum(1 for item in items if item["deadline_status"] == "overdue")
    return jsonify({
        "items": items,
        "total": len(items),
        "overdue": overdue,
        "as_of": today.isoformat(),
    }), 200


@accountability_bp.route("/workspaces/<int:workspace_id>/accountability/grid", methods=["GET"])
def get_grid(workspace_id: int):
    today, err = _as_of()
    if err:
        return err
    from_number, err = _int_arg("from")
    if err:
        return err
    to_number, err = _int_arg("to")
    if err:
        return err

    try:
        grid = accountability_grid.build_grid(workspace_id, today, from_number, to_number)
    except ValueError as exc:
        return api_error(E.GRID_RANGE, str(exc))
    grid["as_of"] = today.isoformat()
    return jsonify(grid), 200


@accountability_bp.route("/workspaces/<int:workspace_id>/calendar", methods=["GET"])
def get_calendar(workspace_id: int):
    today, err = _as_of()
    if err:
        return err

    workspace = document_store.get_workspace_or_404(workspace_id)
    anchor = document_store.resolve_anchor_date(workspace, today)
    number = sprint_calendar.current_sprint_number(anchor, today)
    window = sprint_calendar.sprint_window(number, anchor)
    return jsonify({
        "workspace_id": workspace_id,
        "anchor": anchor.isoformat(),
        "current_sprint_number": number,
        "window": window.to_dict(),
        "temporal_status": sprint_calendar.sprint_temporal_status(number, anchor, today),
        "is_business_day": sprint_calendar.is_business_day(today),
        "as_of": today.isoformat(),
    }), 200
