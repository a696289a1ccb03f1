"""Request and result models of the template management API."""

from typing import List, Optional

from pydantic import BaseModel, Field

from .template import Industry, TemplateComplexity, TemplateStatus
from .validation import ValidationResult
from .versioning import TemplateVersion


class TemplateSearchFilters(BaseModel):
    """Filters for template search. Empty filters match everything."""
    status: List[TemplateStatus] = Field(default_factory=list)
    category: List[str] = Field(default_factory=list)
    industry: List[Industry] = Field(default_factory=list)
    complexity: List[TemplateComplexity] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    usage_count_min: Optional[int] = Field(default=None, ge=0)
    average_rating_min: Optional[float] = Field(default=None, ge=0.0)


class TemplateSearchResult(BaseModel):
    """One page of ranked search results."""
    templates: List[TemplateVersion] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    filters: TemplateSearchFilters


class TemplateCreationResult(BaseModel):
    """A created template together with its advisory validation result."""
    template: TemplateVersion
    validation: ValidationResult
