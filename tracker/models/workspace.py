"""
Workspace domain models.

Models:
    - Workspace: tenant of the tracker; owns the sprint anchor date
    - Person: maps a workspace member to a user identity
"""

from datetime import datetime, timezone

from tracker.models import db


class Workspace(db.Model):
    """
    A workspace groups people, sprints and projects.

    ``sprint_start_date`` anchors window 1; every sprint number in the
    workspace is resolved against it.  Changing it moves every window.
    """

    __tablename__ = "workspaces"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    sprint_start_date = db.Column(
        db.Date, nullable=True,
        comment="Start of sprint 1 (UTC calendar date); windows are 7 days long",
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    people = db.relationship(
        "Person", backref="workspace", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "sprint_start_date": self.sprint_start_date.isoformat() if self.sprint_start_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Workspace {self.id}: {self.name}>"


class Person(db.Model):
    """Workspace member.  ``user_id`` is the identity used as owner/assignee/author."""

    __tablename__ = "people"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "user_id", name="uq_people_workspace_user"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "is_admin": self.is_admin,
        }

    def __repr__(self):
        return f"<Person {self.id}: {self.name} (user {self.user_id})>"
