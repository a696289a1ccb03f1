"""Tests for template validation and scoring."""

import json

import pytest

from template_engine.core.exceptions import ConfigurationError
from template_engine.models.template import (
    CharacterLimit,
    Documentation,
    PromptSegment,
    PromptTemplate,
    SegmentType,
    SegmentValidation,
    SegmentValidationType,
    VoiceConfiguration,
    VoiceSettings,
)
from template_engine.models.validation import ValidationSeverity
from template_engine.services.validation_service import (
    DEFAULT_SCORING_WEIGHTS,
    TemplateValidator,
    load_scoring_weights,
    merge_scoring_weights,
)


@pytest.fixture
def validator():
    return TemplateValidator()


def errors_by_field(result):
    return {error.field: error.severity for error in result.errors}


def test_complete_template_is_valid(validator, make_template):
    result = validator.validate(make_template())

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    assert result.suggestions == []


def test_missing_essentials_are_critical(validator):
    result = validator.validate(PromptTemplate())

    assert not result.is_valid
    assert errors_by_field(result) == {
        "name": ValidationSeverity.CRITICAL,
        "segments": ValidationSeverity.CRITICAL,
        "voice_configuration": ValidationSeverity.CRITICAL,
    }


def test_missing_model_and_voice_are_critical(validator, make_template):
    result = validator.validate(make_template(voice_configuration=VoiceConfiguration()))

    assert not result.is_valid
    assert errors_by_field(result) == {
        "voice_configuration.model": ValidationSeverity.CRITICAL,
        "voice_configuration.voice": ValidationSeverity.CRITICAL,
    }


def test_major_and_minor_errors_do_not_invalidate(validator, make_template):
    template = make_template()
    voice = template.voice_configuration.model_copy(
        update={"voice": VoiceSettings(provider="elevenlabs", voice_id="")}
    )
    segments = template.segments + [
        PromptSegment(
            id="offer",
            type=SegmentType.DYNAMIC,
            label="Offer",
            validation=SegmentValidation(type=SegmentValidationType.REQUIRED),
        ),
        PromptSegment(
            id="disclaimer",
            content="x" * 30,
            character_limit=CharacterLimit(min=0, max=10),
        ),
        PromptSegment(id="greeting", content="Duplicate"),
    ]

    result = validator.validate(template.model_copy(update={"voice_configuration": voice, "segments": segments}))

    assert result.is_valid
    assert errors_by_field(result) == {
        "voice_configuration.voice.voice_id": ValidationSeverity.MAJOR,
        "segments.offer": ValidationSeverity.MAJOR,
        "segments.disclaimer.content": ValidationSeverity.MINOR,
        "segments": ValidationSeverity.MAJOR,
    }
    assert result.critical_errors == []


def test_warnings_for_missing_business_context(validator, make_template):
    template = make_template(business_objectives=[])
    template = template.model_copy(update={
        "segments": [s.model_copy(update={"type": SegmentType.FOUNDATION}) for s in template.segments],
    })

    result = validator.validate(template)

    assert result.is_valid
    assert sorted(w.field for w in result.warnings) == ["business_objectives", "segments"]


def test_suggestions(validator, make_template):
    segments = [PromptSegment(id=f"s{i}", type=SegmentType.DYNAMIC, content="text") for i in range(11)]

    result = validator.validate(make_template(segments=segments, documentation=None))

    descriptions = [s.description for s in result.suggestions]
    assert len(descriptions) == 2
    assert any("many segments" in d for d in descriptions)
    assert any("best practices" in d for d in descriptions)


def test_overall_score_is_mean_of_categories(validator, make_template):
    for template in (PromptTemplate(), make_template(), make_template(documentation=None)):
        score = validator.score(template)
        categories = score.categories.model_dump()

        assert all(0.0 <= value <= 1.0 for value in categories.values())
        assert score.overall == pytest.approx(sum(categories.values()) / 4)


def test_empty_template_scores_zero(validator):
    assert validator.score(PromptTemplate()).overall == 0.0


def test_more_complete_templates_score_higher(validator, make_template):
    documented = make_template(
        documentation=Documentation(
            description="A" * 80,
            detailed_instructions="Fill in the practice name before deploying.",
            best_practices=["Confirm twice"],
        )
    )

    assert validator.score(documented).overall > validator.score(make_template()).overall
    assert validator.score(make_template()).overall > validator.score(make_template(documentation=None)).overall


def test_validation_is_deterministic(validator, make_template):
    template = make_template()

    assert validator.validate(template) == validator.validate(template)


def test_weight_overrides_change_scores(make_template):
    only_name = {criterion: 0 for criterion in DEFAULT_SCORING_WEIGHTS["completeness"]}
    only_name["has_name"] = 1
    validator = TemplateValidator({"completeness": only_name})

    score = validator.score(PromptTemplate(name="Named"))

    assert score.categories.completeness == 1.0
    # Untouched categories keep their defaults
    assert validator.weights["clarity"] == {k: float(v) for k, v in DEFAULT_SCORING_WEIGHTS["clarity"].items()}


@pytest.mark.parametrize(
    "overrides",
    [
        {"speed": {"has_name": 1}},
        {"completeness": {"has_logo": 1}},
        {"completeness": {"has_name": -1}},
        {"business_alignment": {k: 0 for k in DEFAULT_SCORING_WEIGHTS["business_alignment"]}},
    ],
)
def test_invalid_weight_overrides_are_rejected(overrides):
    with pytest.raises(ConfigurationError):
        merge_scoring_weights(overrides)


def test_load_scoring_weights_from_file(tmp_path):
    path = tmp_path / "weights.json"
    path.write_text(json.dumps({"clarity": {"detailed_description": 5}}), encoding="utf-8")

    weights = load_scoring_weights(str(path))

    assert weights["clarity"]["detailed_description"] == 5.0


def test_load_scoring_weights_rejects_bad_files(tmp_path):
    path = tmp_path / "weights.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_scoring_weights(str(path))
    with pytest.raises(ConfigurationError):
        load_scoring_weights(str(tmp_path / "missing.json"))
