"""Version record and change tracking models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from .template import PromptTemplate, TemplateComplexity, TemplateStatus


class ChangeType(str, Enum):
    """Semantic version component bumped by a change."""
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class ChangeImpact(str, Enum):
    """Impact classification of a single field change."""
    BREAKING = "breaking"
    ENHANCEMENT = "enhancement"
    BUGFIX = "bugfix"
    COSMETIC = "cosmetic"


class TemplateType(str, Enum):
    CUSTOM = "custom"
    CLONED = "cloned"
    PREDEFINED = "predefined"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    ORGANIZATION = "organization"


class FieldChange(BaseModel):
    """A change to one dotted field path of a template."""
    field: str
    old_value: Any = None
    new_value: Any = None
    impact: ChangeImpact = ChangeImpact.ENHANCEMENT

    @validator("field")
    def validate_field(cls, v):
        """Field paths must name at least one key."""
        if not v or not v.strip() or any(not part for part in v.split(".")):
            raise ValueError(f"Invalid field path: {v!r}")
        return v


class VersionChange(BaseModel):
    """An entry of a template's append-only version history."""
    sequence: int = Field(ge=1)
    timestamp: datetime
    actor: str
    version: str
    change_type: ChangeType
    changes: List[FieldChange] = Field(default_factory=list)
    reason: str = ""
    rollback_point: bool = False
    restored_from: Optional[str] = None


class DiffSummary(BaseModel):
    """Count of differences per impact category."""
    breaking: int = 0
    enhancement: int = 0
    bugfix: int = 0
    cosmetic: int = 0

    @property
    def total(self) -> int:
        return self.breaking + self.enhancement + self.bugfix + self.cosmetic

    @classmethod
    def from_changes(cls, changes: List[FieldChange]) -> "DiffSummary":
        counts: Dict[str, int] = {impact.value: 0 for impact in ChangeImpact}
        for change in changes:
            counts[ChangeImpact(change.impact).value] += 1
        return cls(**counts)


class VersionComparison(BaseModel):
    """Structural differences between two versions of a template."""
    template_id: str
    from_version: str
    to_version: str
    differences: List[FieldChange] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)


class TemplateVersion(BaseModel):
    """A stored, immutable version of a template."""
    template_id: str
    version: str
    name: str
    status: TemplateStatus
    template_type: TemplateType = TemplateType.CUSTOM
    category: str
    industry: List[str] = Field(default_factory=list)
    complexity: TemplateComplexity
    content: PromptTemplate

    # Usage statistics
    usage_count: int = 0
    average_rating: float = 0.0
    rating_count: int = 0
    last_used: Optional[datetime] = None

    created_by: str
    tags: List[str] = Field(default_factory=list)
    keywords: str = ""
    is_latest: bool = False
    parent_template_id: Optional[str] = None
    restored_from_version: Optional[str] = None
    visibility: Visibility = Visibility.PRIVATE
    created_at: datetime
    updated_at: datetime

    version_history: List[VersionChange] = Field(default_factory=list)
