"""
Issue domain models.

Models:
    - Issue: unit of work with an ordered state and optional assignee
    - DocumentAssociation: issue → sprint / project / program link

Associations are polymorphic: ``related_id`` points at a sprint, project or
program depending on ``relationship_type``, so it carries no foreign key.
"""

from datetime import datetime, timezone

from tracker.models import db

# Workflow order: backlog, todo, in_progress, in_review, done, cancelled
FINISHED_ISSUE_STATES = frozenset({"done", "cancelled"})


class Issue(db.Model):
    __tablename__ = "issues"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    state = db.Column(
        db.String(20),
        nullable=False,
        default="backlog",
        comment="backlog | todo | in_progress | in_review | done | cancelled",
    )
    assignee_id = db.Column(db.Integer, nullable=True, index=True)

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

    associations = db.relationship(
        "DocumentAssociation", backref="issue", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.title,
            "state": self.state,
            "assignee_id": self.assignee_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Issue {self.id}: {self.title} [{self.state}]>"


class DocumentAssociation(db.Model):
    __tablename__ = "document_associations"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    related_id = db.Column(db.Integer, nullable=False)
    relationship_type = db.Column(db.String(20), nullable=False, comment="sprint | project | program")

    __table_args__ = (
        db.UniqueConstraint(
            "document_id", "related_id", "relationship_type",
            name="uq_document_associations_link",
        ),
        db.Index("ix_document_associations_related", "relationship_type", "related_id"),
    )

    def __repr__(self):
        return f"<DocumentAssociation issue {self.document_id} → {self.relationship_type} {self.related_id}>"
