"""
Document store — the read/write seam the accountability engine sits on.

Read side: the narrow queries the scanner, resolver and grid need (sprints by
owner or number, projects by owner, issue counts/states via associations,
standups, reviews/retros, content versions).  Every query excludes
soft-deleted rows.

Write side: the content save path for plans, reviews and retros.  A save
appends a ContentVersion when the text changes and initialises the owner's
approval tracking to all-null the first time the content is non-empty.  The
save path never marks an approval stale; that is derived on read by
approval_service.effective_state().

Layer contract:
    - Callers pass ids, never ORM sessions.
    - Read functions never commit.  Save functions commit.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select

from tracker.core.exceptions import NotFoundError
from tracker.models import db
from tracker.models.history import ContentVersion
from tracker.models.issue import DocumentAssociation, Issue
from tracker.models.project import Project, ProjectRetro
from tracker.models.sprint import Sprint, Standup, WeeklyReview
from tracker.models.workspace import Person, Workspace
from tracker.services import sprint_calendar

logger = logging.getLogger(__name__)

EMPTY_TRACKING = {
    "state": None,
    "approved_by": None,
    "approved_at": None,
    "approved_version_id": None,
    "feedback": None,
}


def has_text(value) -> bool:
    """True when ``value`` holds non-blank text."""
    return bool(value and str(value).strip())


# ═════════════════════════════════════════════════════════════════════════════
# Workspace & people
# ═════════════════════════════════════════════════════════════════════════════


def get_workspace(workspace_id: int) -> Workspace | None:
    return db.session.get(Workspace, workspace_id)


def get_workspace_or_404(workspace_id: int) -> Workspace:
    workspace = get_workspace(workspace_id)
    if workspace is None:
        raise NotFoundError(resource="Workspace", resource_id=workspace_id)
    return workspace


def resolve_anchor_date(workspace: Workspace, today: date) -> date:
    """Workspace anchor as a UTC date (today when unset or malformed)."""
    return sprint_calendar.resolve_anchor_date(workspace.sprint_start_date, today)


def list_people(workspace_id: int) -> list[Person]:
    return db.session.execute(
        select(Person)
        .where(Person.workspace_id == workspace_id)
        .order_by(Person.name.asc(), Person.id.asc())
    ).scalars().all()


def is_workspace_admin(user_id: int, workspace_id: int) -> bool:
    person = db.session.execute(
        select(Person).where(
            Person.workspace_id == workspace_id,
            Person.user_id == user_id,
        )
    ).scalar_one_or_none()
    return bool(person and person.is_admin)


# ═════════════════════════════════════════════════════════════════════════════
# Sprints
# ═════════════════════════════════════════════════════════════════════════════


def list_owned_sprints(user_id: int, workspace_id: int) -> list[Sprint]:
    """Live (not deleted, not archived) sprints owned by ``user_id``."""
    return db.session.execute(
        select(Sprint)
        .where(
            Sprint.workspace_id == workspace_id,
            Sprint.owner_id == user_id,
            Sprint.deleted_at.is_(None),
            Sprint.archived_at.is_(None),
        )
        .order_by(Sprint.sprint_number.asc(), Sprint.id.asc())
    ).scalars().all()


def list_sprints_with_assigned_issues(
    user_id: int, workspace_id: int, sprint_number: int,
) -> list[Sprint]:
    """Sprints numbered ``sprint_number`` where ``user_id`` is assigned an issue.

    Membership is inferred from issue assignment only: a sprint with no
    issues assigned to the user is not returned, even if the user owns it.
    """
    return db.session.execute(
        select(Sprint)
        .join(
            DocumentAssociation,
            (DocumentAssociation.related_id == Sprint.id)
            & (DocumentAssociation.relationship_type == "sprint"),
        )
        .join(Issue, Issue.id == DocumentAssociation.document_id)
        .where(
            Sprint.workspace_id == workspace_id,
            Sprint.sprint_number == sprint_number,
            Sprint.deleted_at.is_(None),
            Issue.workspace_id == workspace_id,
            Issue.assignee_id == user_id,
            Issue.deleted_at.is_(None),
        )
        .distinct()
        .order_by(Sprint.id.asc())
    ).scalars().all()


def list_workspace_sprints(
    workspace_id: int, from_number: int, to_number: int,
) -> list[Sprint]:
    """Live sprints whose number falls in ``[from_number, to_number]``."""
    return db.session.execute(
        select(Sprint)
        .where(
            Sprint.workspace_id == workspace_id,
            Sprint.sprint_number >= from_number,
            Sprint.sprint_number <= to_number,
            Sprint.deleted_at.is_(None),
            Sprint.archived_at.is_(None),
        )
        .order_by(Sprint.sprint_number.asc(), Sprint.id.asc())
    ).scalars().all()


def _issue_count(relationship_type: str, related_id: int, assignee_id: int | None = None) -> int:
    stmt = (
        select(func.count(func.distinct(Issue.id)))
        .join(DocumentAssociation, DocumentAssociation.document_id == Issue.id)
        .where(
            DocumentAssociation.relationship_type == relationship_type,
            DocumentAssociation.related_id == related_id,
            Issue.deleted_at.is_(None),
        )
    )
    if assignee_id is not None:
        stmt = stmt.where(Issue.assignee_id == assignee_id)
    return db.session.execute(stmt).scalar() or 0


def count_sprint_issues(sprint_id: int) -> int:
    return _issue_count("sprint", sprint_id)


def count_assigned_issues(user_id: int, sprint_id: int) -> int:
    return _issue_count("sprint", sprint_id, assignee_id=user_id)


def standup_dates(user_id: int, sprint_id: int) -> list[date]:
    """UTC calendar dates of the user's standups in a sprint, newest first."""
    rows = db.session.execute(
        select(Standup.created_at)
        .where(Standup.sprint_id == sprint_id, Standup.author_id == user_id)
        .order_by(Standup.created_at.desc())
    ).scalars().all()
    return [sprint_calendar.to_utc_date(created_at) for created_at in rows]


def has_standup_on(user_id: int, sprint_id: int, day: date) -> bool:
    return day in standup_dates(user_id, sprint_id)


def last_standup_date(user_id: int, sprint_id: int, before: date | None = None) -> date | None:
    """Most recent standup date, optionally only counting days before ``before``."""
    for day in standup_dates(user_id, sprint_id):
        if before is None or day < before:
            return day
    return None


def get_review_for_sprint(sprint_id: int) -> WeeklyReview | None:
    return db.session.execute(
        select(WeeklyReview).where(WeeklyReview.sprint_id == sprint_id)
    ).scalar_one_or_none()


def sprint_has_review(sprint_id: int) -> bool:
    return get_review_for_sprint(sprint_id) is not None


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


def list_owned_projects(user_id: int, workspace_id: int) -> list[Project]:
    """Live (not deleted, not archived) projects owned by ``user_id``."""
    return db.session.execute(
        select(Project)
        .where(
            Project.workspace_id == workspace_id,
            Project.owner_id == user_id,
            Project.deleted_at.is_(None),
            Project.archived_at.is_(None),
        )
        .order_by(Project.id.asc())
    ).scalars().all()


def project_issue_states(project_id: int) -> list[str]:
    """States of the live issues associated with a project."""
    return db.session.execute(
        select(Issue.state)
        .join(DocumentAssociation, DocumentAssociation.document_id == Issue.id)
        .where(
            DocumentAssociation.relationship_type == "project",
            DocumentAssociation.related_id == project_id,
            Issue.deleted_at.is_(None),
        )
        .order_by(Issue.id.asc())
    ).scalars().all()


def get_retro_for_project(project_id: int) -> ProjectRetro | None:
    return db.session.execute(
        select(ProjectRetro).where(ProjectRetro.project_id == project_id)
    ).scalar_one_or_none()


# ═════════════════════════════════════════════════════════════════════════════
# Content versions
# ═════════════════════════════════════════════════════════════════════════════


def latest_version_id(document_type: str, document_id: int, field: str) -> int | None:
    return db.session.execute(
        select(func.max(ContentVersion.id)).where(
            ContentVersion.document_type == document_type,
            ContentVersion.document_id == document_id,
            ContentVersion.field == field,
        )
    ).scalar()


def list_versions(document_type: str, document_id: int, field: str) -> list[ContentVersion]:
    return db.session.execute(
        select(ContentVersion)
        .where(
            ContentVersion.document_type == document_type,
            ContentVersion.document_id == document_id,
            ContentVersion.field == field,
        )
        .order_by(ContentVersion.id.asc())
    ).scalars().all()


def _record_version(document_type, document_id, field, old_value, new_value, changed_by):
    if (old_value or None) == (new_value or None):
        return None
    version = ContentVersion(
        document_type=document_type,
        document_id=document_id,
        field=field,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.session.add(version)
    return version


def _ensure_tracking(owner, tracking_field: str, content) -> None:
    if has_text(content) and getattr(owner, tracking_field) is None:
        setattr(owner, tracking_field, dict(EMPTY_TRACKING))


# ═════════════════════════════════════════════════════════════════════════════
# Save path
# ═════════════════════════════════════════════════════════════════════════════


def save_sprint_plan(sprint_id: int, plan: str | None, author_id: int | None = None) -> Sprint:
    sprint = db.session.get(Sprint, sprint_id)
    if sprint is None or sprint.deleted_at is not None:
        raise NotFoundError(resource="Sprint", resource_id=sprint_id)

    _record_version("sprint", sprint.id, "plan", sprint.plan, plan, author_id)
    sprint.plan = plan
    _ensure_tracking(sprint, "plan_approval", plan)
    db.session.commit()
    logger.info("Sprint plan saved", extra={"document_kind": "sprint_plan", "document_id": sprint.id})
    return sprint


def save_sprint_review(
    sprint_id: int,
    content: str | None,
    plan_validated: bool | None = None,
    author_id: int | None = None,
) -> WeeklyReview:
    sprint = db.session.get(Sprint, sprint_id)
    if sprint is None or sprint.deleted_at is not None:
        raise NotFoundError(resource="Sprint", resource_id=sprint_id)

    review = get_review_for_sprint(sprint.id)
    if review is None:
        review = WeeklyReview(workspace_id=sprint.workspace_id, sprint_id=sprint.id)
        db.session.add(review)
        db.session.flush()

    _record_version("weekly_review", review.id, "review_content", review.content, content, author_id)
    review.content = content
    if plan_validated is not None:
        review.plan_validated = plan_validated
    _ensure_tracking(sprint, "review_approval", content)
    db.session.commit()
    logger.info("Weekly review saved", extra={"document_kind": "sprint_review", "document_id": sprint.id})
    return review


def save_project_plan(project_id: int, plan: str | None, author_id: int | None = None) -> Project:
    project = db.session.get(Project, project_id)
    if project is None or project.deleted_at is not None:
        raise NotFoundError(resource="Project", resource_id=project_id)

    _record_version("project", project.id, "plan", project.plan, plan, author_id)
    project.plan = plan
    _ensure_tracking(project, "plan_approval", plan)
    db.session.commit()
    logger.info("Project plan saved", extra={"document_kind": "project_plan", "document_id": project.id})
    return project


def save_project_retro(
    project_id: int,
    content: str | None,
    plan_validated: bool | None = None,
    author_id: int | None = None,
) -> ProjectRetro:
    """Save the retro; a supplied ``plan_validated`` is copied onto the project."""
    project = db.session.get(Project, project_id)
    if project is None or project.deleted_at is not None:
        raise NotFoundError(resource="Project", resource_id=project_id)

    retro = get_retro_for_project(project.id)
    if retro is None:
        retro = ProjectRetro(workspace_id=project.workspace_id, project_id=project.id)
        db.session.add(retro)
        db.session.flush()

    _record_version("project_retro", retro.id, "retro_content", retro.content, content, author_id)
    retro.content = content
    if plan_validated is not None:
        retro.plan_validated = plan_validated
        project.plan_validated = plan_validated
    _ensure_tracking(project, "retro_approval", content)
    db.session.commit()
    logger.info("Project retro saved", extra={"document_kind": "project_retro", "document_id": project.id})
    return retro
