"""
Content history — ContentVersion model.

Append-only log of content saves on plans, reviews and retros.  The row id is
the *version id* that approval tracking stores as ``approved_version_id``; a
newer row for the same (document_type, document_id, field) means the content
changed after approval.
"""

from datetime import datetime, timezone

from tracker.models import db


class ContentVersion(db.Model):
    """
    One content save.

    Business rules:
    - Rows are never updated or deleted.
    - The highest id per (document_type, document_id, field) is the latest version.
    """

    __tablename__ = "content_versions"

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(
        db.String(30), nullable=False,
        comment="sprint | weekly_review | project | project_retro",
    )
    document_id = db.Column(db.Integer, nullable=False)
    field = db.Column(db.String(50), nullable=False, comment="plan | review_content | retro_content")
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    changed_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_content_versions_document", "document_type", "document_id", "field"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "changed_by": self.changed_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<ContentVersion #{self.id} {self.document_type}/{self.document_id}.{self.field}>"
