"""Custom exceptions for the Prompt Template Engine."""

from typing import Any, List, Optional


class TemplateEngineError(Exception):
    """Base exception for template engine errors."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(TemplateEngineError):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message,
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key}
        )
        self.config_key = config_key


class ValidationError(TemplateEngineError):
    """Exception raised for invalid input."""

    def __init__(self, message: str, field: str = None, value: Any = None, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            message,
            error_code=error_code,
            details={"field": field, "value": value}
        )
        self.field = field
        self.value = value


class InvalidChangeError(ValidationError):
    """Exception raised when a field change cannot be applied to a template."""

    def __init__(self, message: str, field: str = None, value: Any = None):
        super().__init__(message, field=field, value=value, error_code="INVALID_CHANGE")


class TemplateValidationError(ValidationError):
    """Exception raised when a template has critical validation errors.

    ``errors`` holds the full list of critical ``ValidationErrorDetail``
    entries so callers can report every blocking problem at once.
    """

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message, error_code="TEMPLATE_VALIDATION_ERROR")
        self.errors = list(errors or [])
        self.details["errors"] = [
            error.model_dump() if hasattr(error, "model_dump") else error
            for error in self.errors
        ]


class NotFoundError(TemplateEngineError):
    """Exception raised when a requested resource does not exist."""

    def __init__(self, message: str, resource: str = None, identifier: str = None, error_code: str = "NOT_FOUND"):
        super().__init__(
            message,
            error_code=error_code,
            details={"resource": resource, "identifier": identifier}
        )
        self.resource = resource
        self.identifier = identifier


class TemplateNotFoundError(NotFoundError):
    """Exception raised for an unknown template id."""

    def __init__(self, template_id: str):
        super().__init__(
            f"Template {template_id} not found",
            resource="template",
            identifier=template_id,
            error_code="TEMPLATE_NOT_FOUND"
        )
        self.template_id = template_id


class TemplateVersionNotFoundError(NotFoundError):
    """Exception raised for an unknown version of a template."""

    def __init__(self, template_id: str, version: str):
        super().__init__(
            f"Template version {template_id}@{version} not found",
            resource="template_version",
            identifier=f"{template_id}@{version}",
            error_code="TEMPLATE_VERSION_NOT_FOUND"
        )
        self.template_id = template_id
        self.version = version


class ConflictError(TemplateEngineError):
    """Exception raised when a concurrent writer superseded the latest version.

    Callers should refetch the template and retry.
    """

    def __init__(self, message: str, template_id: str = None, expected_version: str = None):
        super().__init__(
            message,
            error_code="VERSION_CONFLICT",
            details={"template_id": template_id, "expected_version": expected_version}
        )
        self.template_id = template_id
        self.expected_version = expected_version


class StoreError(TemplateEngineError):
    """Exception raised for backing store failures."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(
            message,
            error_code="STORE_ERROR",
            details={"operation": operation}
        )
        self.operation = operation
