"""
Project domain models.

Models:
    - Project: longer-running effort with a plan (hypothesis) and a retro
    - ProjectRetro: the single retrospective document of a project
"""

from datetime import datetime, timezone

from tracker.models import db


class Project(db.Model):
    """
    A project owned by an accountable person.

    ``plan_validated`` is tri-state: NULL until the retro settles whether
    the plan's hypothesis held (True) or not (False).
    """

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(200), nullable=True)
    owner_id = db.Column(db.Integer, nullable=False, index=True)
    accountable_id = db.Column(db.Integer, nullable=True, comment="Reviewer of plan and retro")
    plan = db.Column(db.Text, nullable=True)
    plan_approval = db.Column(db.JSON, nullable=True)
    retro_approval = db.Column(db.JSON, nullable=True)
    plan_validated = db.Column(db.Boolean, nullable=True)

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

    retro = db.relationship(
        "ProjectRetro", backref="project", uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def display_title(self):
        return self.title or "Untitled Project"

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.display_title,
            "owner_id": self.owner_id,
            "accountable_id": self.accountable_id,
            "plan": self.plan,
            "plan_approval": self.plan_approval,
            "retro_approval": self.retro_approval,
            "plan_validated": self.plan_validated,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.title}>"


class ProjectRetro(db.Model):
    """Retrospective of a project; at most one per project."""

    __tablename__ = "project_retros"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    content = db.Column(db.Text, nullable=True)
    plan_validated = db.Column(db.Boolean, nullable=True)

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
            "project_id": self.project_id,
            "content": self.content,
            "plan_validated": self.plan_validated,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ProjectRetro {self.id}: project {self.project_id}>"
