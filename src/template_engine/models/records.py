"""Database models for stored template versions and their history."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)

from ..core.database import Base
from .template import PromptTemplate
from .versioning import FieldChange, TemplateVersion, VersionChange


def utcnow() -> datetime:
    """Return current UTC datetime without timezone info."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TemplateVersionRecord(Base):
    """One immutable version of a template.

    Content columns are never rewritten. Only ``is_latest`` and the usage
    counters change after insert.
    """

    __tablename__ = "template_versions"
    __table_args__ = (
        UniqueConstraint("template_id", "version", name="uq_template_versions_version"),
        # At most one latest record per template
        Index(
            "uq_template_versions_latest",
            "template_id",
            unique=True,
            sqlite_where=text("is_latest = 1"),
            postgresql_where=text("is_latest"),
        ),
        Index("ix_template_versions_status_latest", "status", "is_latest"),
        Index("ix_template_versions_category", "category"),
        Index("ix_template_versions_created_by", "created_by"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(String(100), nullable=False, index=True)
    version = Column(String(32), nullable=False)
    version_major = Column(Integer, nullable=False)
    version_minor = Column(Integer, nullable=False)
    version_patch = Column(Integer, nullable=False)

    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)
    template_type = Column(String(20), nullable=False, default="custom")
    category = Column(String(100), nullable=False)
    industry = Column(JSON, nullable=False, default=list)
    complexity = Column(String(20), nullable=False)
    template_data = Column(JSON, nullable=False)  # PromptTemplate content

    # Usage statistics
    usage_count = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    last_used = Column(DateTime, nullable=True)

    created_by = Column(String(255), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    keywords = Column(Text, nullable=False, default="")
    is_latest = Column(Boolean, nullable=False, default=False)
    parent_template_id = Column(String(100), nullable=True)
    restored_from_version = Column(String(32), nullable=True)
    visibility = Column(String(20), nullable=False, default="private")

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def to_model(self, history=None) -> TemplateVersion:
        """Convert to the pydantic ``TemplateVersion``."""
        return TemplateVersion(
            template_id=self.template_id,
            version=self.version,
            name=self.name,
            status=self.status,
            template_type=self.template_type,
            category=self.category,
            industry=list(self.industry or []),
            complexity=self.complexity,
            content=PromptTemplate.model_validate(self.template_data),
            usage_count=self.usage_count or 0,
            average_rating=self.average_rating or 0.0,
            rating_count=self.rating_count or 0,
            last_used=self.last_used,
            created_by=self.created_by,
            tags=list(self.tags or []),
            keywords=self.keywords or "",
            is_latest=bool(self.is_latest),
            parent_template_id=self.parent_template_id,
            restored_from_version=self.restored_from_version,
            visibility=self.visibility,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version_history=list(history or []),
        )

    @classmethod
    def from_model(cls, template: TemplateVersion) -> "TemplateVersionRecord":
        """Build a new record from a ``TemplateVersion``."""
        major, minor, patch = (int(part) for part in template.version.split("."))
        return cls(
            template_id=template.template_id,
            version=template.version,
            version_major=major,
            version_minor=minor,
            version_patch=patch,
            name=template.name,
            status=template.status.value,
            template_type=template.template_type.value,
            category=template.category,
            industry=list(template.industry),
            complexity=template.complexity.value,
            template_data=template.content.model_dump(mode="json"),
            usage_count=template.usage_count,
            average_rating=template.average_rating,
            rating_count=template.rating_count,
            last_used=template.last_used,
            created_by=template.created_by,
            tags=list(template.tags),
            keywords=template.keywords,
            is_latest=template.is_latest,
            parent_template_id=template.parent_template_id,
            restored_from_version=template.restored_from_version,
            visibility=template.visibility.value,
            created_at=template.created_at,
            updated_at=template.updated_at,
        )

    def __repr__(self):
        return f"<TemplateVersionRecord(template_id={self.template_id}, version={self.version}, latest={self.is_latest})>"


class VersionChangeRecord(Base):
    """Append-only version history entry keyed by (template_id, sequence)."""

    __tablename__ = "template_version_changes"
    __table_args__ = (
        UniqueConstraint("template_id", "sequence", name="uq_template_version_changes_sequence"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(String(100), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    version = Column(String(32), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    actor = Column(String(255), nullable=False)
    change_type = Column(String(10), nullable=False)
    changes = Column(JSON, nullable=False, default=list)
    reason = Column(Text, nullable=False, default="")
    rollback_point = Column(Boolean, nullable=False, default=False)
    restored_from = Column(String(32), nullable=True)

    def to_model(self) -> VersionChange:
        return VersionChange(
            sequence=self.sequence,
            timestamp=self.timestamp,
            actor=self.actor,
            version=self.version,
            change_type=self.change_type,
            changes=[FieldChange.model_validate(c) for c in (self.changes or [])],
            reason=self.reason or "",
            rollback_point=bool(self.rollback_point),
            restored_from=self.restored_from,
        )

    @classmethod
    def from_model(cls, template_id: str, change: VersionChange) -> "VersionChangeRecord":
        return cls(
            template_id=template_id,
            sequence=change.sequence,
            version=change.version,
            timestamp=change.timestamp,
            actor=change.actor,
            change_type=change.change_type.value,
            changes=[c.model_dump(mode="json") for c in change.changes],
            reason=change.reason,
            rollback_point=change.rollback_point,
            restored_from=change.restored_from,
        )

    def __repr__(self):
        return f"<VersionChangeRecord(template_id={self.template_id}, sequence={self.sequence})>"
