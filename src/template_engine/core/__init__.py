"""Core configuration and settings."""

from .config import settings
from .exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    StoreError,
    TemplateEngineError,
    TemplateValidationError,
    ValidationError,
)
from .logging import setup_logging

__all__ = [
    "settings",
    "ConfigurationError",
    "ConflictError",
    "NotFoundError",
    "StoreError",
    "TemplateEngineError",
    "TemplateValidationError",
    "ValidationError",
    "setup_logging",
]
