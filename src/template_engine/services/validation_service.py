"""Template validation and quality scoring.

Validation is a pure function of the template content: no I/O and no
clock reads, so it runs inline on every create and update.
"""

import json
from collections import Counter
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

import structlog

from ..core.config import settings
from ..core.exceptions import ConfigurationError, TemplateValidationError
from ..core.logging import log_validation_result
from ..models.template import PromptTemplate
from ..models.validation import (
    CategoryScores,
    EstimateLevel,
    OptimizationSuggestion,
    SuggestionType,
    TemplateScore,
    ValidationErrorDetail,
    ValidationResult,
    ValidationSeverity,
    ValidationWarning,
    WarningImpact,
)

logger = structlog.get_logger(__name__)

Criterion = Callable[[PromptTemplate], bool]

MAX_RECOMMENDED_SEGMENTS = 10
DETAILED_DESCRIPTION_LENGTH = 50


def _voice(template: PromptTemplate):
    return template.voice_configuration


# Scoring criteria per category. Each predicate inspects the template only.
SCORING_CRITERIA: Dict[str, Dict[str, Criterion]] = {
    "completeness": {
        "has_name": lambda t: bool(t.name and t.name.strip()),
        "has_segments": lambda t: len(t.segments) > 0,
        "has_business_objectives": lambda t: len(t.business_objectives) > 0,
        "has_voice_configuration": lambda t: _voice(t) is not None,
        "has_description": lambda t: bool(t.documentation and t.documentation.description),
        "has_best_practices": lambda t: bool(t.documentation and t.documentation.best_practices),
        "has_performance_config": lambda t: t.performance_config is not None,
    },
    "clarity": {
        "detailed_description": lambda t: bool(
            t.documentation and len(t.documentation.description) > DETAILED_DESCRIPTION_LENGTH
        ),
        "has_detailed_instructions": lambda t: bool(t.documentation and t.documentation.detailed_instructions),
        "segments_documented": lambda t: bool(t.segments) and all(
            s.label and s.business_purpose for s in t.segments
        ),
        "has_use_case_description": lambda t: bool(t.use_case and t.use_case.description),
        "has_best_practices": lambda t: bool(t.documentation and t.documentation.best_practices),
    },
    "business_alignment": {
        "has_business_objectives": lambda t: len(t.business_objectives) > 0,
        "has_expected_outcomes": lambda t: bool(t.use_case and t.use_case.expected_outcomes),
        "has_kpis": lambda t: bool(t.performance_config and t.performance_config.kpis),
        "has_functional_area": lambda t: bool(t.category.functional_area),
    },
    "technical_quality": {
        "has_model_settings": lambda t: bool(_voice(t) and _voice(t).model),
        "has_voice_settings": lambda t: bool(_voice(t) and _voice(t).voice),
        "has_conversation_settings": lambda t: bool(_voice(t) and _voice(t).conversation_settings),
        "has_segment_validation": lambda t: any(s.validation is not None for s in t.segments),
        "has_escalation_triggers": lambda t: bool(
            _voice(t) and _voice(t).business_rules and _voice(t).business_rules.escalation_triggers
        ),
    },
}

DEFAULT_SCORING_WEIGHTS: Dict[str, Dict[str, float]] = {
    "completeness": {
        "has_name": 1,
        "has_segments": 2,
        "has_business_objectives": 2,
        "has_voice_configuration": 2,
        "has_description": 1,
        "has_best_practices": 1,
        "has_performance_config": 1,
    },
    "clarity": {
        "detailed_description": 2,
        "has_detailed_instructions": 2,
        "segments_documented": 2,
        "has_use_case_description": 1,
        "has_best_practices": 1,
    },
    "business_alignment": {
        "has_business_objectives": 2,
        "has_expected_outcomes": 2,
        "has_kpis": 1,
        "has_functional_area": 1,
    },
    "technical_quality": {
        "has_model_settings": 2,
        "has_voice_settings": 2,
        "has_conversation_settings": 2,
        "has_segment_validation": 1,
        "has_escalation_triggers": 1,
    },
}


def merge_scoring_weights(
    overrides: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> Dict[str, Dict[str, float]]:
    """Return the default weight table with ``overrides`` applied.

    Raises:
        ConfigurationError: For unknown categories or criteria, negative
            weights, or a category whose weights sum to zero.
    """
    weights = {category: dict(table) for category, table in DEFAULT_SCORING_WEIGHTS.items()}

    for category, table in (overrides or {}).items():
        if category not in SCORING_CRITERIA:
            raise ConfigurationError(f"Unknown scoring category: {category}", config_key="scoring_weights")
        for criterion, weight in table.items():
            if criterion not in SCORING_CRITERIA[category]:
                raise ConfigurationError(
                    f"Unknown scoring criterion: {category}.{criterion}",
                    config_key="scoring_weights",
                )
            if not isinstance(weight, (int, float)) or weight < 0:
                raise ConfigurationError(
                    f"Scoring weight for {category}.{criterion} must be a non-negative number",
                    config_key="scoring_weights",
                )
            weights[category][criterion] = float(weight)

    for category, table in weights.items():
        if sum(table.values()) <= 0:
            raise ConfigurationError(
                f"Scoring weights for {category} must not all be zero",
                config_key="scoring_weights",
            )
    return weights


def load_scoring_weights(path: str) -> Dict[str, Dict[str, float]]:
    """Load weight overrides from a JSON file."""
    try:
        overrides = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Cannot read scoring weights file {path}: {e}",
            config_key="scoring_weights_file",
        ) from e
    if not isinstance(overrides, dict) or not all(isinstance(v, dict) for v in overrides.values()):
        raise ConfigurationError(
            "Scoring weights file must map categories to {criterion: weight} objects",
            config_key="scoring_weights_file",
        )
    return merge_scoring_weights(overrides)


class TemplateValidator:
    """Validates and scores prompt templates."""

    def __init__(self, weights: Optional[Mapping[str, Mapping[str, float]]] = None):
        self.weights = merge_scoring_weights(weights)

    def validate(self, template: PromptTemplate) -> ValidationResult:
        """Validate a template snapshot.

        The result is valid unless at least one critical error is present.
        Major and minor errors, warnings and suggestions are advisory.
        """
        errors: List[ValidationErrorDetail] = []
        warnings: List[ValidationWarning] = []
        suggestions: List[OptimizationSuggestion] = []

        self._check_identity(template, errors)
        self._check_segments(template, errors, warnings)
        self._check_business_context(template, warnings)
        self._check_voice_configuration(template, errors)
        self._suggest_optimizations(template, suggestions)

        score = self.score(template)
        result = ValidationResult(
            is_valid=not any(e.severity == ValidationSeverity.CRITICAL for e in errors),
            errors=errors,
            warnings=warnings,
            suggestions=suggestions,
            score=score,
        )
        log_validation_result(
            logger,
            template_name=template.name,
            is_valid=result.is_valid,
            error_count=len(errors),
            warning_count=len(warnings),
            overall_score=score.overall,
        )
        return result

    def score(self, template: PromptTemplate) -> TemplateScore:
        """Score a template; ``overall`` is the mean of the four categories."""
        categories = {
            category: self._category_score(template, category)
            for category in SCORING_CRITERIA
        }
        overall = sum(categories.values()) / len(categories)
        return TemplateScore(overall=overall, categories=CategoryScores(**categories))

    def _category_score(self, template: PromptTemplate, category: str) -> float:
        weights = self.weights[category]
        total = sum(weights.values())
        satisfied = sum(
            weight
            for criterion, weight in weights.items()
            if SCORING_CRITERIA[category][criterion](template)
        )
        return min(1.0, max(0.0, satisfied / total))

    def _check_identity(self, template: PromptTemplate, errors: List[ValidationErrorDetail]) -> None:
        if not template.name or not template.name.strip():
            errors.append(ValidationErrorDetail(
                field="name",
                message="Template name is required",
                severity=ValidationSeverity.CRITICAL,
                suggested_fix="Provide a descriptive name for the template",
            ))

    def _check_segments(
        self,
        template: PromptTemplate,
        errors: List[ValidationErrorDetail],
        warnings: List[ValidationWarning],
    ) -> None:
        if not template.segments:
            errors.append(ValidationErrorDetail(
                field="segments",
                message="Template must have at least one segment",
                severity=ValidationSeverity.CRITICAL,
                suggested_fix="Add prompt segments to define the template structure",
            ))
            return

        if not template.dynamic_segments:
            warnings.append(ValidationWarning(
                field="segments",
                message="Template has no dynamic segments",
                recommendation="Consider adding dynamic segments for customization",
                impact=WarningImpact.USER_EXPERIENCE,
            ))

        duplicates = sorted(sid for sid, count in Counter(s.id for s in template.segments).items() if count > 1)
        if duplicates:
            errors.append(ValidationErrorDetail(
                field="segments",
                message=f"Duplicate segment ids: {', '.join(duplicates)}",
                severity=ValidationSeverity.MAJOR,
                suggested_fix="Give every segment a unique id",
            ))

        for segment in template.segments:
            if segment.is_required and not segment.content:
                errors.append(ValidationErrorDetail(
                    field=f"segments.{segment.id}",
                    message=f"Required segment '{segment.label or segment.id}' has no content",
                    severity=ValidationSeverity.MAJOR,
                    suggested_fix="Provide default content or make segment optional",
                ))

            limit = segment.character_limit
            if limit and segment.content and not (limit.min <= len(segment.content) <= limit.max):
                errors.append(ValidationErrorDetail(
                    field=f"segments.{segment.id}.content",
                    message=(
                        f"Segment '{segment.label or segment.id}' content length {len(segment.content)} "
                        f"is outside {limit.min}..{limit.max}"
                    ),
                    severity=ValidationSeverity.MINOR,
                    suggested_fix="Shorten or extend the segment content",
                ))

    def _check_business_context(self, template: PromptTemplate, warnings: List[ValidationWarning]) -> None:
        if not template.business_objectives:
            warnings.append(ValidationWarning(
                field="business_objectives",
                message="No business objectives defined",
                recommendation="Define clear business objectives for better template effectiveness",
                impact=WarningImpact.BUSINESS_OUTCOME,
            ))

    def _check_voice_configuration(self, template: PromptTemplate, errors: List[ValidationErrorDetail]) -> None:
        config = template.voice_configuration
        if config is None:
            errors.append(ValidationErrorDetail(
                field="voice_configuration",
                message="Voice configuration is required",
                severity=ValidationSeverity.CRITICAL,
                suggested_fix="Configure model and voice settings for the assistant",
            ))
            return

        if config.model is None:
            errors.append(ValidationErrorDetail(
                field="voice_configuration.model",
                message="Model configuration is required",
                severity=ValidationSeverity.CRITICAL,
                suggested_fix="Select a language model provider and model",
            ))

        if config.voice is None:
            errors.append(ValidationErrorDetail(
                field="voice_configuration.voice",
                message="Voice settings are required",
                severity=ValidationSeverity.CRITICAL,
                suggested_fix="Select a voice provider for the assistant",
            ))
        elif not config.voice.voice_id:
            errors.append(ValidationErrorDetail(
                field="voice_configuration.voice.voice_id",
                message="Voice ID is required",
                severity=ValidationSeverity.MAJOR,
                suggested_fix="Select a voice for the assistant",
            ))

    def _suggest_optimizations(self, template: PromptTemplate, suggestions: List[OptimizationSuggestion]) -> None:
        if len(template.segments) > MAX_RECOMMENDED_SEGMENTS:
            suggestions.append(OptimizationSuggestion(
                type=SuggestionType.USER_EXPERIENCE,
                description="Template has many segments which may overwhelm users",
                expected_impact=EstimateLevel.MEDIUM,
                implementation_effort=EstimateLevel.MEDIUM,
                action="Consider grouping related segments or simplifying the template",
            ))

        if not (template.documentation and template.documentation.best_practices):
            suggestions.append(OptimizationSuggestion(
                type=SuggestionType.USER_EXPERIENCE,
                description="Add best practices documentation",
                expected_impact=EstimateLevel.HIGH,
                implementation_effort=EstimateLevel.LOW,
                action="Document best practices for using this template effectively",
            ))


def get_template_validator() -> TemplateValidator:
    """Build a validator using the configured weight overrides, if any."""
    if settings.scoring_weights_file:
        logger.info("Loading scoring weights", path=settings.scoring_weights_file)
        return TemplateValidator(load_scoring_weights(settings.scoring_weights_file))
    return TemplateValidator()


def validate_template(template: PromptTemplate) -> ValidationResult:
    """Validate a template with the default weight table."""
    return TemplateValidator().validate(template)


def ensure_no_critical_errors(result: ValidationResult, template_name: Optional[str], **context) -> None:
    """Raise ``TemplateValidationError`` carrying every critical error in ``result``."""
    critical = result.critical_errors
    if not critical:
        return
    logger.warning(
        "Template rejected by validation",
        template_name=template_name,
        critical_errors=[e.field for e in critical],
        **context
    )
    raise TemplateValidationError(
        f"Template validation failed: {', '.join(e.message for e in critical)}",
        errors=critical,
    )
