"""Validation and scoring result models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ValidationSeverity(str, Enum):
    """Severity of a validation error. Only critical errors block persistence."""
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class WarningImpact(str, Enum):
    """Area affected by a validation warning."""
    PERFORMANCE = "performance"
    USER_EXPERIENCE = "user_experience"
    BUSINESS_OUTCOME = "business_outcome"
    COMPLIANCE = "compliance"


class SuggestionType(str, Enum):
    PERFORMANCE = "performance"
    USER_EXPERIENCE = "user_experience"
    BUSINESS_OUTCOME = "business_outcome"


class EstimateLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ValidationErrorDetail(BaseModel):
    """A problem found in a template."""
    field: str
    message: str
    severity: ValidationSeverity
    suggested_fix: Optional[str] = None


class ValidationWarning(BaseModel):
    """A non-blocking risk found in a template."""
    field: str
    message: str
    recommendation: str
    impact: WarningImpact


class OptimizationSuggestion(BaseModel):
    """An optimization hint with impact/effort estimate."""
    type: SuggestionType
    description: str
    expected_impact: EstimateLevel
    implementation_effort: EstimateLevel
    action: str


class CategoryScores(BaseModel):
    """Per category quality ratios, each in [0, 1]."""
    completeness: float = Field(ge=0.0, le=1.0)
    clarity: float = Field(ge=0.0, le=1.0)
    business_alignment: float = Field(ge=0.0, le=1.0)
    technical_quality: float = Field(ge=0.0, le=1.0)


class TemplateScore(BaseModel):
    """Quality score of a template."""
    overall: float = Field(ge=0.0, le=1.0)
    categories: CategoryScores


class ValidationResult(BaseModel):
    """Outcome of validating a template."""
    is_valid: bool
    errors: List[ValidationErrorDetail] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    suggestions: List[OptimizationSuggestion] = Field(default_factory=list)
    score: TemplateScore

    @property
    def critical_errors(self) -> List[ValidationErrorDetail]:
        return [e for e in self.errors if e.severity == ValidationSeverity.CRITICAL]
