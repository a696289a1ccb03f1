"""Pydantic models for the Prompt Template Engine."""

from .management import TemplateCreationResult, TemplateSearchFilters, TemplateSearchResult
from .template import (
    BusinessContextInput,
    BusinessObjective,
    Industry,
    PromptSegment,
    PromptTemplate,
    SegmentType,
    TemplateComplexity,
    TemplateStatus,
    VoiceConfiguration,
)
from .validation import ValidationErrorDetail, ValidationResult, ValidationSeverity
from .versioning import (
    ChangeImpact,
    ChangeType,
    DiffSummary,
    FieldChange,
    TemplateVersion,
    VersionChange,
    VersionComparison,
)

__all__ = [
    "BusinessContextInput",
    "BusinessObjective",
    "ChangeImpact",
    "ChangeType",
    "DiffSummary",
    "FieldChange",
    "Industry",
    "PromptSegment",
    "PromptTemplate",
    "SegmentType",
    "TemplateComplexity",
    "TemplateCreationResult",
    "TemplateSearchFilters",
    "TemplateSearchResult",
    "TemplateStatus",
    "TemplateVersion",
    "ValidationErrorDetail",
    "ValidationResult",
    "ValidationSeverity",
    "VersionChange",
    "VersionComparison",
    "VoiceConfiguration",
]
