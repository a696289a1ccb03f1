"""Services for the Prompt Template Engine."""

from .template_service import TemplateService, create_template_service
from .template_store import SQLTemplateStore, TemplateStore
from .validation_service import TemplateValidator, validate_template
from .versioning_service import TemplateVersioningService

__all__ = [
    "SQLTemplateStore",
    "TemplateService",
    "TemplateStore",
    "TemplateValidator",
    "TemplateVersioningService",
    "create_template_service",
    "validate_template",
]
