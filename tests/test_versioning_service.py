"""Tests for template version creation, rollback and comparison."""

import pytest

from template_engine.core.exceptions import (
    InvalidChangeError,
    TemplateNotFoundError,
    TemplateValidationError,
    TemplateVersionNotFoundError,
    ValidationError,
)
from template_engine.models.versioning import ChangeImpact, ChangeType, FieldChange
from template_engine.services.template_diff import diff_templates


def content_change(value):
    return [FieldChange(field="segments.greeting.content", new_value=value, impact=ChangeImpact.BUGFIX)]


async def create(service, make_template, **updates):
    result = await service.create_template(make_template(**updates), actor="alice")
    return result.template.template_id


@pytest.mark.asyncio
async def test_create_version_bumps_semver(service, versioning, make_template):
    template_id = await create(service, make_template)

    patch = await versioning.create_version(template_id, content_change("Hi"), ChangeType.PATCH, "typo", "bob")
    minor = await versioning.create_version(template_id, content_change("Hello"), ChangeType.MINOR, "tone", "bob")
    major = await versioning.create_version(template_id, content_change("Hey"), ChangeType.MAJOR, "rewrite", "bob")

    assert [patch.version, minor.version, major.version] == ["1.0.1", "1.1.0", "2.0.0"]
    assert major.content.version == "2.0.0"
    assert major.content.id == template_id
    assert major.content.get_segment("greeting").content == "Hey"
    # Authorship stays with the creator
    assert major.created_by == "alice"


@pytest.mark.asyncio
async def test_exactly_one_latest_version(service, versioning, store, make_template):
    template_id = await create(service, make_template)
    for value in ("a", "b", "c"):
        await versioning.create_version(template_id, content_change(value), ChangeType.PATCH, "edit", "bob")

    versions = await versioning.get_all_versions(template_id)
    latest = await service.get_template(template_id)

    assert [v.version for v in versions] == ["1.0.3", "1.0.2", "1.0.1", "1.0.0"]
    assert [v.version for v in versions if v.is_latest] == ["1.0.3"]
    assert latest.version == "1.0.3"


@pytest.mark.asyncio
async def test_previous_versions_are_immutable(service, versioning, make_template):
    template_id = await create(service, make_template)
    await versioning.create_version(template_id, content_change("Changed"), ChangeType.MINOR, "edit", "bob")

    original = await versioning.get_template_version(template_id, "1.0.0")

    assert not original.is_latest
    assert original.content.get_segment("greeting").content == "Hello, thank you for calling."
    assert original.version_history == []


@pytest.mark.asyncio
async def test_history_grows_by_one_per_version(service, versioning, make_template):
    template_id = await create(service, make_template)

    for expected, value in enumerate(("a", "b", "c"), start=1):
        updated = await versioning.create_version(template_id, content_change(value), ChangeType.PATCH, "edit", "bob")
        assert len(updated.version_history) == expected

    history = await versioning.get_version_history(template_id)
    assert [entry.sequence for entry in history] == [1, 2, 3]
    assert [entry.version for entry in history] == ["1.0.1", "1.0.2", "1.0.3"]
    assert history[0].actor == "bob"
    assert history[0].changes[0].field == "segments.greeting.content"


@pytest.mark.asyncio
async def test_invalid_change_creates_no_version(service, versioning, make_template):
    template_id = await create(service, make_template)

    with pytest.raises(InvalidChangeError):
        await versioning.create_version(
            template_id,
            [FieldChange(field="segments.unknown.content", new_value="x")],
            ChangeType.PATCH,
            "edit",
            "bob",
        )

    assert len(await versioning.get_all_versions(template_id)) == 1
    assert await versioning.get_version_history(template_id) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "change, field",
    [
        (FieldChange(field="name", new_value=""), "name"),
        (FieldChange(field="segments", new_value=[]), "segments"),
    ],
)
async def test_change_with_critical_errors_creates_no_version(service, versioning, make_template, change, field):
    template_id = await create(service, make_template)

    with pytest.raises(TemplateValidationError) as exc_info:
        await versioning.create_version(template_id, [change], ChangeType.MINOR, "edit", "bob")

    assert field in {e.field for e in exc_info.value.errors}
    assert (await service.get_template(template_id)).version == "1.0.0"
    assert await versioning.get_version_history(template_id) == []


@pytest.mark.asyncio
async def test_unknown_template(versioning):
    with pytest.raises(TemplateNotFoundError):
        await versioning.create_version("template-missing", content_change("x"), ChangeType.PATCH, "edit", "bob")
    with pytest.raises(TemplateNotFoundError):
        await versioning.get_all_versions("template-missing")
    with pytest.raises(TemplateNotFoundError):
        await versioning.get_version_history("template-missing")


@pytest.mark.asyncio
async def test_rollback_moves_forward(service, versioning, make_template):
    template_id = await create(service, make_template)
    await versioning.create_version(template_id, content_change("v2"), ChangeType.MINOR, "edit", "bob")
    await versioning.create_version(template_id, content_change("v3"), ChangeType.MINOR, "edit", "bob")

    restored = await versioning.rollback_to_version(template_id, "1.0.0", "carol", "bad tone")
    original = await versioning.get_template_version(template_id, "1.0.0")

    assert restored.version == "2.0.0"
    assert restored.is_latest
    assert restored.restored_from_version == "1.0.0"
    assert diff_templates(original.content, restored.content) == []

    entry = restored.version_history[-1]
    assert entry.rollback_point
    assert entry.restored_from == "1.0.0"
    assert entry.change_type == ChangeType.MAJOR
    assert entry.reason.startswith("Rollback to version 1.0.0")
    assert entry.changes[0].impact == ChangeImpact.BREAKING

    # The superseded versions are still there
    versions = [v.version for v in await versioning.get_all_versions(template_id)]
    assert versions == ["2.0.0", "1.2.0", "1.1.0", "1.0.0"]


@pytest.mark.asyncio
async def test_rollback_to_unknown_version(service, versioning, make_template):
    template_id = await create(service, make_template)

    with pytest.raises(TemplateVersionNotFoundError):
        await versioning.rollback_to_version(template_id, "7.0.0", "carol", "oops")


@pytest.mark.asyncio
async def test_rollback_points(service, versioning, make_template):
    template_id = await create(service, make_template)
    await versioning.create_version(template_id, content_change("a"), ChangeType.PATCH, "edit", "bob")

    point = await versioning.create_rollback_point(template_id, "bob", "before launch")
    await versioning.create_version(
        template_id, content_change("b"), ChangeType.PATCH, "edit", "bob", mark_as_rollback_point=True
    )

    points = await versioning.get_rollback_points(template_id)
    history = await versioning.get_version_history(template_id)

    assert point.version == "1.0.1"
    assert [p.version for p in points] == ["1.0.1", "1.0.2"]
    assert [entry.sequence for entry in history] == [1, 2, 3]
    assert len(await versioning.get_all_versions(template_id)) == 3


@pytest.mark.asyncio
async def test_compare_same_version_is_empty(service, versioning, make_template):
    template_id = await create(service, make_template)

    comparison = await versioning.compare_versions(template_id, "1.0.0", "1.0.0")

    assert comparison.differences == []
    assert comparison.summary.total == 0


@pytest.mark.asyncio
async def test_compare_versions(service, versioning, make_template):
    template_id = await create(service, make_template)
    await versioning.create_version(
        template_id,
        content_change("Hi")
        + [FieldChange(field="voice_configuration.voice.voice_id", new_value="adam", impact=ChangeImpact.BREAKING)],
        ChangeType.MAJOR,
        "new voice",
        "bob",
    )

    comparison = await versioning.compare_versions(template_id, "1.0.0", "2.0.0")

    assert {d.field for d in comparison.differences} == {
        "segments.greeting.content",
        "voice_configuration.voice.voice_id",
    }
    assert comparison.summary.bugfix == 1
    assert comparison.summary.breaking == 1

    with pytest.raises(TemplateVersionNotFoundError):
        await versioning.compare_versions(template_id, "1.0.0", "3.0.0")


@pytest.mark.asyncio
async def test_get_template_version_requires_version(service, versioning, make_template):
    template_id = await create(service, make_template)

    with pytest.raises(ValidationError):
        await versioning.get_template_version(template_id, "")


@pytest.mark.asyncio
async def test_usage_statistics_carry_over(service, versioning, make_template):
    template_id = await create(service, make_template)
    await service.record_usage(template_id, rating=4)

    updated = await versioning.create_version(template_id, content_change("x"), ChangeType.PATCH, "edit", "bob")

    assert updated.usage_count == 1
    assert updated.average_rating == 4.0
    assert updated.rating_count == 1
