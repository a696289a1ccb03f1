"""Template version creation, rollback and comparison."""

from datetime import datetime
from typing import List, Optional

import structlog

from ..core.exceptions import TemplateNotFoundError, TemplateVersionNotFoundError, ValidationError
from ..core.logging import log_version_transition
from ..models.records import utcnow
from ..models.template import PromptTemplate
from ..models.versioning import (
    ChangeImpact,
    ChangeType,
    DiffSummary,
    FieldChange,
    TemplateType,
    TemplateVersion,
    VersionChange,
    VersionComparison,
)
from ..utils.semver import SemanticVersion
from .field_patch import apply_field_changes
from .template_diff import diff_templates
from .template_store import TemplateStore
from .validation_service import TemplateValidator, ensure_no_critical_errors

logger = structlog.get_logger(__name__)


def generate_keywords(content: PromptTemplate) -> str:
    """Build the lower-cased search keyword string of a template."""
    keywords = [
        content.name,
        content.category.primary,
        *(industry.value for industry in content.industry),
        content.complexity.value,
        *content.metadata.tags,
        *(objective.name for objective in content.business_objectives),
    ]
    return " ".join(k for k in keywords if k).lower()


def build_template_version(
    template_id: str,
    content: PromptTemplate,
    created_by: str,
    now: datetime,
    template_type: TemplateType = TemplateType.CUSTOM,
    previous: Optional[TemplateVersion] = None,
    **overrides,
) -> TemplateVersion:
    """Build a version record whose indexed columns mirror ``content``.

    Usage statistics and provenance carry over from ``previous`` when given.
    """
    fields = dict(
        template_id=template_id,
        version=content.version,
        name=content.name,
        status=content.status,
        template_type=previous.template_type if previous else template_type,
        category=content.category.primary,
        industry=[industry.value for industry in content.industry],
        complexity=content.complexity,
        content=content,
        created_by=previous.created_by if previous else created_by,
        tags=list(content.metadata.tags),
        keywords=generate_keywords(content),
        is_latest=True,
        parent_template_id=previous.parent_template_id if previous else content.metadata.parent_template_id,
        created_at=previous.created_at if previous else now,
        updated_at=now,
    )
    if previous is not None:
        fields.update(
            usage_count=previous.usage_count,
            average_rating=previous.average_rating,
            rating_count=previous.rating_count,
            last_used=previous.last_used,
            visibility=previous.visibility,
        )
    fields.update(overrides)
    return TemplateVersion(**fields)


class TemplateVersioningService:
    """Creates and inspects versions of stored templates.

    Every write goes through ``TemplateStore.swap_latest``, so concurrent
    writers on the same template cannot both succeed: the loser gets a
    ``ConflictError`` and should refetch before retrying.
    """

    def __init__(self, store: TemplateStore, validator: Optional[TemplateValidator] = None):
        self.store = store
        self.validator = validator or TemplateValidator()

    async def _require_latest(self, template_id: str) -> TemplateVersion:
        current = await self.store.get_latest(template_id)
        if current is None:
            raise TemplateNotFoundError(template_id)
        return current

    def _next_content(self, source: PromptTemplate, template_id: str, version: str, now: datetime) -> PromptTemplate:
        metadata = source.metadata.model_copy(update={"updated_at": now})
        return source.model_copy(update={"id": template_id, "version": version, "metadata": metadata})

    def _next_sequence(self, current: TemplateVersion) -> int:
        return len(current.version_history) + 1

    async def create_version(
        self,
        template_id: str,
        changes: List[FieldChange],
        change_type: ChangeType,
        reason: str,
        actor: str,
        mark_as_rollback_point: bool = False,
    ) -> TemplateVersion:
        """Create a new version of a template by applying ``changes``.

        Raises:
            TemplateNotFoundError: Unknown template.
            InvalidChangeError: A change addresses an unknown path or yields
                invalid content.
            TemplateValidationError: The patched content has critical
                validation errors.
            ConflictError: Another writer replaced the latest version first.
        """
        change_type = ChangeType(change_type)
        current = await self._require_latest(template_id)

        new_version = str(SemanticVersion.parse(current.version).bump(change_type))
        now = utcnow()

        patched = apply_field_changes(current.content, changes)
        ensure_no_critical_errors(self.validator.validate(patched), patched.name, template_id=template_id)
        content = self._next_content(patched, template_id, new_version, now)

        change = VersionChange(
            sequence=self._next_sequence(current),
            timestamp=now,
            actor=actor,
            version=new_version,
            change_type=change_type,
            changes=list(changes),
            reason=reason,
            rollback_point=mark_as_rollback_point,
        )
        new = build_template_version(
            template_id,
            content,
            created_by=actor,
            now=now,
            previous=current,
            version_history=current.version_history + [change],
        )

        stored = await self.store.swap_latest(current, new, change)
        log_version_transition(
            logger,
            template_id=template_id,
            from_version=current.version,
            to_version=new_version,
            change_type=change_type.value,
            actor=actor,
            change_count=len(changes),
            rollback_point=mark_as_rollback_point,
        )
        return stored

    async def rollback_to_version(
        self,
        template_id: str,
        target_version: str,
        actor: str,
        reason: str,
    ) -> TemplateVersion:
        """Restore the content of ``target_version`` as a new major version.

        Version numbers keep moving forward: rolling back from 3.1.0 to
        1.0.0 produces 4.0.0 with the content of 1.0.0.
        """
        target = await self.store.get_version(template_id, target_version)
        if target is None:
            raise TemplateVersionNotFoundError(template_id, target_version)
        current = await self._require_latest(template_id)

        new_version = str(SemanticVersion.parse(current.version).bump(ChangeType.MAJOR))
        now = utcnow()
        content = self._next_content(target.content, template_id, new_version, now)

        change = VersionChange(
            sequence=self._next_sequence(current),
            timestamp=now,
            actor=actor,
            version=new_version,
            change_type=ChangeType.MAJOR,
            changes=[FieldChange(
                field="rollback",
                old_value=current.version,
                new_value=target_version,
                impact=ChangeImpact.BREAKING,
            )],
            reason=f"Rollback to version {target_version}: {reason}",
            rollback_point=True,
            restored_from=target_version,
        )
        new = build_template_version(
            template_id,
            content,
            created_by=actor,
            now=now,
            previous=current,
            restored_from_version=target_version,
            version_history=current.version_history + [change],
        )

        stored = await self.store.swap_latest(current, new, change)
        log_version_transition(
            logger,
            template_id=template_id,
            from_version=current.version,
            to_version=new_version,
            change_type=ChangeType.MAJOR.value,
            actor=actor,
            restored_from=target_version,
        )
        return stored

    async def create_rollback_point(self, template_id: str, actor: str, reason: str) -> VersionChange:
        """Mark the current latest version as a rollback target.

        Appends a history entry without creating a new version record.
        """
        current = await self._require_latest(template_id)
        change = VersionChange(
            sequence=self._next_sequence(current),
            timestamp=utcnow(),
            actor=actor,
            version=current.version,
            change_type=ChangeType.PATCH,
            changes=[],
            reason=f"Rollback point created: {reason}",
            rollback_point=True,
        )
        await self.store.append_history(template_id, current.version, change)
        logger.info(
            "Rollback point created",
            template_id=template_id,
            version=current.version,
            actor=actor,
        )
        return change

    async def compare_versions(self, template_id: str, version1: str, version2: str) -> VersionComparison:
        """Diff two stored versions; ``version1`` is the baseline."""
        first = await self.get_template_version(template_id, version1)
        second = first if version1 == version2 else await self.get_template_version(template_id, version2)

        differences = diff_templates(first.content, second.content)
        return VersionComparison(
            template_id=template_id,
            from_version=version1,
            to_version=version2,
            differences=differences,
            summary=DiffSummary.from_changes(differences),
        )

    async def get_template_version(self, template_id: str, version: str) -> TemplateVersion:
        if not version:
            raise ValidationError("Version is required", field="version", value=version)
        template = await self.store.get_version(template_id, version)
        if template is None:
            raise TemplateVersionNotFoundError(template_id, version)
        return template

    async def get_version_history(self, template_id: str) -> List[VersionChange]:
        await self._require_latest(template_id)
        return await self.store.get_history(template_id)

    async def get_all_versions(self, template_id: str) -> List[TemplateVersion]:
        """All stored versions of a template, newest first."""
        versions = await self.store.list_versions(template_id)
        if not versions:
            raise TemplateNotFoundError(template_id)
        return versions

    async def get_rollback_points(self, template_id: str) -> List[VersionChange]:
        history = await self.get_version_history(template_id)
        return [change for change in history if change.rollback_point]
