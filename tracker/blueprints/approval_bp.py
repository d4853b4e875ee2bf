"""
Approval Blueprint — sign-off on sprint plans/reviews and project plans/retros.

Endpoints:
    GET  /api/v1/approvals/<kind>/<doc_id>
         Returns: tracking value plus effective state.

    POST /api/v1/approvals/<kind>/<doc_id>/approve
         Body: { "actor_id": <int>, "version_id": <int optional> }

    POST /api/v1/approvals/<kind>/<doc_id>/request-changes
         Body: { "actor_id": <int>, "feedback": "..." }

    kind ∈ sprint_plan | sprint_review | project_plan | project_retro

Status codes:
    400 malformed input, 403 actor is not a reviewer, 404 unknown document,
    409 action illegal from the current state, 422 business-rule violation.

Layer contract:
    - Blueprint: parse input, run the reviewer guard, call service.
    - NO db.session calls here; writes are owned by approval_service.
"""

from flask import Blueprint, jsonify, request

from tracker.services import approval_service
from tracker.utils.errors import E, api_error, register_error_handlers

approval_bp = Blueprint("approval", __name__, url_prefix="/api/v1")
register_error_handlers(approval_bp)


# ── Helpers ────────────────────────────────────────────────────────────────────


def _document_ref(kind: str, doc_id: int):
    """Build a DocumentRef; returns (ref, err_response)."""
    if kind not in approval_service.DOCUMENT_KINDS:
        return None, api_error(
            E.DOCUMENT_KIND,
            f"Unknown document kind '{kind}'",
            details={"valid_kinds": sorted(approval_service.DOCUMENT_KINDS)},
        )
    return approval_service.DocumentRef(kind, doc_id), None


def _optional_int(data: dict, field: str):
    """Returns (value, err_response); bools are rejected."""
    value = data.get(field)
    if value is None:
        return None, None
    if isinstance(value, bool) or not isinstance(value, int):
        return None, api_error(E.VALIDATION_INVALID, f"Field '{field}' must be an integer")
    return value, None


def _actor_id(data: dict):
    actor_id, err = _optional_int(data, "actor_id")
    if err:
        return None, err
    if actor_id is None:
        return None, api_error(E.VALIDATION_REQUIRED, "Field 'actor_id' is required")
    return actor_id, None


# ── Routes ─────────────────────────────────────────────────────────────────────


@approval_bp.route("/approvals/<kind>/<int:doc_id>", methods=["GET"])
def get_approval(kind: str, doc_id: int):
    ref, err = _document_ref(kind, doc_id)
    if err:
        return err
    return jsonify(approval_service.get_document_approval(ref)), 200


@approval_bp.route("/approvals/<kind>/<int:doc_id>/approve", methods=["POST"])
def approve(kind: str, doc_id: int):
    """Approve the document at ``version_id`` (latest version when omitted)."""
    ref, err = _document_ref(kind, doc_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    actor_id, err = _actor_id(data)
    if err:
        return err
    version_id, err = _optional_int(data, "version_id")
    if err:
        return err

    approval_service.authorize_reviewer(ref, actor_id)
    tracking = approval_service.approve_document(ref, actor_id, version_id)
    return jsonify({"kind": kind, "document_id": doc_id, "tracking": tracking}), 200


@approval_bp.route("/approvals/<kind>/<int:doc_id>/request-changes", methods=["POST"])
def request_changes(kind: str, doc_id: int):
    """Send the document back with reviewer feedback (required, max length from config)."""
    ref, err = _document_ref(kind, doc_id)
    if err:
        return err

    data = request.get_json(silent=True) or {}
    actor_id, err = _actor_id(data)
    if err:
        return err

    approval_service.authorize_reviewer(ref, actor_id)
    tracking = approval_service.request_document_changes(ref, actor_id, data.get("feedback"))
    return jsonify({"kind": kind, "document_id": doc_id, "tracking": tracking}), 200
