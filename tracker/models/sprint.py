"""
Sprint (week) domain models.

Models:
    - Sprint: one numbered 7-day window owned by an accountable person
    - Standup: per-day, per-author update attached to a sprint
    - WeeklyReview: the single review document of a sprint

Sprint dates are never stored: start/end and the temporal status are derived
from ``sprint_number`` and the workspace anchor (see services/sprint_calendar).
The manual ``status`` field is kept separately and may disagree with them.
"""

from datetime import datetime, timezone

from tracker.models import db

# Manual status: planning, active, completed
STARTED_STATUSES = frozenset({"active", "completed"})


class Sprint(db.Model):
    """
    A numbered week in a workspace.

    ``plan_approval`` and ``review_approval`` hold the embedded approval
    tracking value ``{state, approved_by, approved_at, approved_version_id,
    feedback}``; they stay NULL until the content is first written.
    """

    __tablename__ = "sprints"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sprint_number = db.Column(db.Integer, nullable=False, default=1, comment="1-based window number")
    title = db.Column(db.String(200), nullable=True)
    owner_id = db.Column(db.Integer, nullable=False, index=True, comment="User accountable for the week")
    accountable_id = db.Column(
        db.Integer, nullable=True,
        comment="User who reviews/approves the plan and review",
    )
    status = db.Column(
        db.String(30),
        nullable=False,
        default="planning",
        comment="planning | active | completed (manual)",
    )
    plan = db.Column(db.Text, nullable=True)
    plan_approval = db.Column(db.JSON, nullable=True)
    review_approval = db.Column(db.JSON, nullable=True)

    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    standups = db.relationship(
        "Standup", backref="sprint", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    review = db.relationship(
        "WeeklyReview", backref="sprint", uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("ix_sprints_workspace_number", "workspace_id", "sprint_number"),
    )

    @property
    def display_title(self):
        return self.title or f"Week {self.sprint_number or 1}"

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "sprint_number": self.sprint_number,
            "title": self.display_title,
            "owner_id": self.owner_id,
            "accountable_id": self.accountable_id,
            "status": self.status,
            "plan": self.plan,
            "plan_approval": self.plan_approval,
            "review_approval": self.review_approval,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Sprint {self.id}: #{self.sprint_number} {self.title}>"


class Standup(db.Model):
    """Append-only daily update.  ``created_at`` (UTC) decides which day it counts for."""

    __tablename__ = "standups"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sprint_id = db.Column(
        db.Integer, db.ForeignKey("sprints.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    author_id = db.Column(db.Integer, nullable=False, index=True)
    content = db.Column(db.Text, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "sprint_id": self.sprint_id,
            "author_id": self.author_id,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Standup {self.id}: sprint {self.sprint_id} by {self.author_id}>"


class WeeklyReview(db.Model):
    """Review of a finished week; at most one per sprint."""

    __tablename__ = "weekly_reviews"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sprint_id = db.Column(
        db.Integer, db.ForeignKey("sprints.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    content = db.Column(db.Text, nullable=True)
    plan_validated = db.Column(db.Boolean, nullable=True, comment="Did the week's plan hold up?")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "sprint_id": self.sprint_id,
            "content": self.content,
            "plan_validated": self.plan_validated,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<WeeklyReview {self.id}: sprint {self.sprint_id}>"
