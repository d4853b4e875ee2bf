"""
Approval State Machine — sign-off lifecycle for plans, reviews and retros.

Lifecycle of one piece of accountable content, independent of where it lives:

    (unwritten) ──save──▶ written ──approve──▶ approved
                                                 │ content edited (derived)
                                                 ▼
                                     changed_since_approved ──approve──▶ approved
    written / approved / changed_since_approved ──request_changes──▶ changes_requested
    changes_requested ──approve──▶ approved

Stored tracking value (embedded JSON on the owning sprint/project):
    {state, approved_by, approved_at, approved_version_id, feedback}
    state ∈ {None, "approved", "changed_since_approved", "changes_requested"}

"written" is never stored: it is a null state with content present.
"changed_since_approved" is read lazily: a stored "approved" whose
approved_version_id no longer matches the latest ContentVersion.

The pure functions (effective_state / approve / request_changes) take no
identity decisions; the actor id is recorded for attribution only.
authorize_reviewer() is the separate guard the HTTP layer applies first.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from flask import current_app

from tracker.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from tracker.models import db
from tracker.models.project import Project
from tracker.models.sprint import Sprint
from tracker.services import document_store

logger = logging.getLogger(__name__)

# ── States & actions ──────────────────────────────────────────────────────────

WRITTEN = "written"
APPROVED = "approved"
CHANGED_SINCE_APPROVED = "changed_since_approved"
CHANGES_REQUESTED = "changes_requested"

STORED_STATES = (None, APPROVED, CHANGED_SINCE_APPROVED, CHANGES_REQUESTED)

APPROVE = "approve"
REQUEST_CHANGES = "request_changes"

# Effective state → actions allowed from it.  Re-approving an approved
# document is an idempotent no-op transition.
APPROVAL_TRANSITIONS = {
    None: frozenset(),
    WRITTEN: frozenset({APPROVE, REQUEST_CHANGES}),
    APPROVED: frozenset({APPROVE, REQUEST_CHANGES}),
    CHANGED_SINCE_APPROVED: frozenset({APPROVE, REQUEST_CHANGES}),
    CHANGES_REQUESTED: frozenset({APPROVE, REQUEST_CHANGES}),
}

DEFAULT_FEEDBACK_MAX_LENGTH = 2000


@dataclass(frozen=True)
class ApprovalTracking:
    state: str | None = None
    approved_by: int | None = None
    approved_at: str | None = None
    approved_version_id: int | None = None
    feedback: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "ApprovalTracking":
        data = data or {}
        state = data.get("state")
        if state not in STORED_STATES:
            raise ValidationError(f"Unknown approval state {state!r}", details={"state": state})
        return cls(
            state=state,
            approved_by=data.get("approved_by"),
            approved_at=data.get("approved_at"),
            approved_version_id=data.get("approved_version_id"),
            feedback=data.get("feedback"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _timestamp(now: datetime | None) -> str:
    return (now or datetime.now(timezone.utc)).astimezone(timezone.utc).isoformat()


# ═════════════════════════════════════════════════════════════════════════════
# Pure state machine
# ═════════════════════════════════════════════════════════════════════════════


def effective_state(
    tracking: ApprovalTracking,
    has_content: bool,
    latest_version_id: int | None = None,
) -> str | None:
    """Current state as callers should see it.

    None            no content and nothing recorded yet
    written         content exists, never reviewed
    changed_since_approved
                    approved, but a newer content version exists
    otherwise       the stored state
    """
    if tracking.state is None:
        return WRITTEN if has_content else None
    if (
        tracking.state == APPROVED
        and latest_version_id is not None
        and tracking.approved_version_id != latest_version_id
    ):
        return CHANGED_SINCE_APPROVED
    return tracking.state


def _require_transition(kind: str, state: str | None, action: str) -> None:
    if action not in APPROVAL_TRANSITIONS.get(state, frozenset()):
        raise InvalidTransitionError(kind, state, action)


def approve(
    tracking: ApprovalTracking,
    actor_id: int,
    version_id: int | None = None,
    *,
    has_content: bool,
    latest_version_id: int | None = None,
    now: datetime | None = None,
    kind: str = "content",
) -> ApprovalTracking:
    """Approve the content at ``version_id`` (default: the latest version).

    Raises InvalidTransitionError when nothing has been written yet, and
    ValidationError when previously approved content has since been cleared.
    """
    state = effective_state(tracking, has_content, latest_version_id)
    _require_transition(kind, state, APPROVE)
    if not has_content:
        raise ValidationError(
            f"Cannot approve {kind}: content is empty",
            details={"content": "empty"},
        )
    return ApprovalTracking(
        state=APPROVED,
        approved_by=actor_id,
        approved_at=_timestamp(now),
        approved_version_id=version_id if version_id is not None else latest_version_id,
        feedback=None,
    )


def validate_feedback(feedback, max_length: int = DEFAULT_FEEDBACK_MAX_LENGTH) -> str:
    if not isinstance(feedback, str) or not feedback.strip():
        raise ValidationError(
            "Feedback is required when requesting changes",
            details={"feedback": "required"},
        )
    if len(feedback) > max_length:
        raise ValidationError(
            f"Feedback must be {max_length} characters or less",
            details={"feedback": f"max {max_length} characters"},
        )
    return feedback.strip()


def request_changes(
    tracking: ApprovalTracking,
    actor_id: int,
    feedback: str,
    *,
    has_content: bool,
    latest_version_id: int | None = None,
    max_length: int = DEFAULT_FEEDBACK_MAX_LENGTH,
    now: datetime | None = None,
    kind: str = "content",
) -> ApprovalTracking:
    """Send the content back to its author with reviewer feedback."""
    text = validate_feedback(feedback, max_length)
    state = effective_state(tracking, has_content, latest_version_id)
    _require_transition(kind, state, REQUEST_CHANGES)
    return ApprovalTracking(
        state=CHANGES_REQUESTED,
        approved_by=actor_id,
        approved_at=_timestamp(now),
        approved_version_id=None,
        feedback=text,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Tracked documents
# ═════════════════════════════════════════════════════════════════════════════

SPRINT_PLAN = "sprint_plan"
SPRINT_REVIEW = "sprint_review"
PROJECT_PLAN = "project_plan"
PROJECT_RETRO = "project_retro"

# kind → (owner model, tracking field on the owner)
DOCUMENT_KINDS = {
    SPRINT_PLAN: (Sprint, "plan_approval"),
    SPRINT_REVIEW: (Sprint, "review_approval"),
    PROJECT_PLAN: (Project, "plan_approval"),
    PROJECT_RETRO: (Project, "retro_approval"),
}


@dataclass(frozen=True)
class DocumentRef:
    """Points at one piece of tracked content: ``kind`` on owner ``doc_id``."""

    kind: str
    doc_id: int

    def __post_init__(self):
        if self.kind not in DOCUMENT_KINDS:
            raise ValidationError(
                f"Unknown document kind '{self.kind}'",
                details={"kind": sorted(DOCUMENT_KINDS)},
            )


def _load_owner(ref: DocumentRef):
    model, _ = DOCUMENT_KINDS[ref.kind]
    owner = db.session.get(model, ref.doc_id)
    if owner is None or owner.deleted_at is not None:
        raise NotFoundError(resource=model.__name__, resource_id=ref.doc_id)
    return owner


def _content_source(kind: str, owner):
    """``(text, (document_type, document_id, field))`` for ``kind`` on ``owner``.

    The version key is None while a review or retro row does not exist yet.
    """
    if kind == SPRINT_PLAN:
        return owner.plan, ("sprint", owner.id, "plan")
    if kind == PROJECT_PLAN:
        return owner.plan, ("project", owner.id, "plan")
    if kind == SPRINT_REVIEW:
        review = document_store.get_review_for_sprint(owner.id)
        if review is None:
            return None, None
        return review.content, ("weekly_review", review.id, "review_content")
    if kind == PROJECT_RETRO:
        retro = document_store.get_retro_for_project(owner.id)
        if retro is None:
            return None, None
        return retro.content, ("project_retro", retro.id, "retro_content")
    raise ValidationError(f"Unknown document kind '{kind}'")


def content_snapshot(kind: str, owner) -> tuple[bool, int | None]:
    """Return ``(has_content, latest_version_id)`` for ``kind`` on ``owner``."""
    text, key = _content_source(kind, owner)
    if key is None:
        return False, None
    return document_store.has_text(text), document_store.latest_version_id(*key)


def _check_version(kind: str, owner, version_id: int | None) -> None:
    """Reject a ``version_id`` that is not a saved version of this document."""
    if version_id is None:
        return
    _, key = _content_source(kind, owner)
    known = {v.id for v in document_store.list_versions(*key)} if key else set()
    if version_id not in known:
        raise ValidationError(
            f"Version {version_id} does not belong to this {kind}",
            details={"version_id": version_id},
        )


def content_status(kind: str, owner) -> tuple[bool, str | None]:
    """``(has_content, effective_state)`` for ``kind`` on an already-loaded owner."""
    _, field = DOCUMENT_KINDS[kind]
    has_content, latest = content_snapshot(kind, owner)
    tracking = ApprovalTracking.from_dict(getattr(owner, field))
    return has_content, effective_state(tracking, has_content, latest)


def get_document_approval(ref: DocumentRef) -> dict:
    owner = _load_owner(ref)
    _, field = DOCUMENT_KINDS[ref.kind]
    has_content, latest = content_snapshot(ref.kind, owner)
    tracking = ApprovalTracking.from_dict(getattr(owner, field))
    return {
        "kind": ref.kind,
        "document_id": ref.doc_id,
        "has_content": has_content,
        "latest_version_id": latest,
        "state": effective_state(tracking, has_content, latest),
        "tracking": tracking.to_dict(),
    }


def approve_document(
    ref: DocumentRef,
    actor_id: int,
    version_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Approve tracked content and persist the new tracking value.

    Returns the updated tracking dict.  Concurrent calls on the same document
    are last-write-wins.
    """
    owner = _load_owner(ref)
    _, field = DOCUMENT_KINDS[ref.kind]
    _check_version(ref.kind, owner, version_id)
    has_content, latest = content_snapshot(ref.kind, owner)
    current = ApprovalTracking.from_dict(getattr(owner, field))

    updated = approve(
        current, actor_id, version_id,
        has_content=has_content, latest_version_id=latest, now=now, kind=ref.kind,
    )
    setattr(owner, field, updated.to_dict())
    db.session.commit()

    logger.info(
        "Approval recorded",
        extra={
            "document_kind": ref.kind,
            "document_id": ref.doc_id,
            "user_id": actor_id,
            "approval_state": updated.state,
        },
    )
    return updated.to_dict()


def request_document_changes(
    ref: DocumentRef,
    actor_id: int,
    feedback: str,
    now: datetime | None = None,
) -> dict:
    """Record a changes-requested decision with feedback; returns the tracking dict."""
    owner = _load_owner(ref)
    _, field = DOCUMENT_KINDS[ref.kind]
    has_content, latest = content_snapshot(ref.kind, owner)
    current = ApprovalTracking.from_dict(getattr(owner, field))
    max_length = current_app.config.get("APPROVAL_FEEDBACK_MAX_LENGTH", DEFAULT_FEEDBACK_MAX_LENGTH)

    updated = request_changes(
        current, actor_id, feedback,
        has_content=has_content, latest_version_id=latest,
        max_length=max_length, now=now, kind=ref.kind,
    )
    setattr(owner, field, updated.to_dict())
    db.session.commit()

    logger.info(
        "Changes requested",
        extra={
            "document_kind": ref.kind,
            "document_id": ref.doc_id,
            "user_id": actor_id,
            "approval_state": updated.state,
        },
    )
    return updated.to_dict()


def authorize_reviewer(ref: DocumentRef, actor_id: int) -> None:
    """Allow the owner's accountable person or a workspace admin; raise otherwise."""
    owner = _load_owner(ref)
    if owner.accountable_id is not None and owner.accountable_id == actor_id:
        return
    if document_store.is_workspace_admin(actor_id, owner.workspace_id):
        return
    logger.warning(
        "Reviewer action denied",
        extra={"document_kind": ref.kind, "document_id": ref.doc_id, "user_id": actor_id},
    )
    raise PermissionDeniedError(
        "Only the accountable person or a workspace admin can review this document"
    )
