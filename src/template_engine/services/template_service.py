"""High-level template management API."""

import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

import pydantic
import structlog

from ..core.config import settings
from ..core.database import DatabaseManager
from ..core.exceptions import TemplateNotFoundError, ValidationError
from ..models.management import TemplateCreationResult, TemplateSearchFilters, TemplateSearchResult
from ..models.records import utcnow
from ..models.template import (
    BusinessContextInput,
    BusinessObjective,
    Industry,
    PromptTemplate,
    TemplateStatus,
    UsageStats,
)
from ..models.validation import ValidationResult
from ..models.versioning import ChangeImpact, ChangeType, FieldChange, TemplateType, TemplateVersion
from ..utils.semver import INITIAL_VERSION
from .template_store import SQLTemplateStore, TemplateStore
from .validation_service import TemplateValidator, ensure_no_critical_errors, get_template_validator
from .versioning_service import TemplateVersioningService, build_template_version

logger = structlog.get_logger(__name__)

# Ranking weights (usage count, average rating)
SEARCH_RANKING_WEIGHTS = (0.7, 0.3)
POPULARITY_RANKING_WEIGHTS = (0.6, 0.4)

MAX_RATING = 5.0


def ranking_score(template: TemplateVersion, usage_weight: float, rating_weight: float) -> float:
    return template.usage_count * usage_weight + template.average_rating * rating_weight


def rank_templates(templates: List[TemplateVersion], usage_weight: float, rating_weight: float) -> List[TemplateVersion]:
    """Sort by composite usage/rating score, highest first. Ties keep store order."""
    return sorted(templates, key=lambda t: ranking_score(t, usage_weight, rating_weight), reverse=True)


class TemplateService:
    """Create, find, clone and rank prompt templates."""

    def __init__(
        self,
        store: TemplateStore,
        validator: Optional[TemplateValidator] = None,
        versioning: Optional[TemplateVersioningService] = None,
        search_max_candidates: Optional[int] = None,
        default_page_size: Optional[int] = None,
    ):
        self.store = store
        self.validator = validator or TemplateValidator()
        self.versioning = versioning or TemplateVersioningService(store, validator=self.validator)
        self.search_max_candidates = (
            settings.search_max_candidates if search_max_candidates is None else search_max_candidates
        )
        self.default_page_size = settings.default_page_size if default_page_size is None else default_page_size

    @staticmethod
    def _coerce_content(content: Union[PromptTemplate, Mapping[str, Any]]) -> PromptTemplate:
        if isinstance(content, PromptTemplate):
            return content
        try:
            return PromptTemplate.model_validate(content)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            raise ValidationError(
                f"Malformed template content: {first['msg']}",
                field=".".join(str(loc) for loc in first["loc"]),
            ) from e

    def validate_template(self, content: Union[PromptTemplate, Mapping[str, Any]]) -> ValidationResult:
        """Validate and score template content without storing it."""
        return self.validator.validate(self._coerce_content(content))

    async def create_template(
        self,
        content: Union[PromptTemplate, Mapping[str, Any]],
        actor: str,
        template_type: TemplateType = TemplateType.CUSTOM,
    ) -> TemplateCreationResult:
        """Validate and store a new template at version 1.0.0 in draft status.

        Raises:
            TemplateValidationError: The content has critical errors. The
                exception carries all of them.
        """
        content = self._coerce_content(content)
        validation = self.validator.validate(content)
        ensure_no_critical_errors(validation, content.name)

        template_id = f"template-{uuid.uuid4()}"
        now = utcnow()
        metadata = content.metadata.model_copy(update={
            "created_at": now,
            "updated_at": now,
            "created_by": actor,
        })
        content = content.model_copy(update={
            "id": template_id,
            "version": INITIAL_VERSION,
            "status": TemplateStatus.DRAFT,
            "metadata": metadata,
        })

        record = build_template_version(
            template_id,
            content,
            created_by=actor,
            now=now,
            template_type=template_type,
        )
        stored = await self.store.insert_template(record)
        logger.info(
            "Template created",
            template_id=template_id,
            template_name=content.name,
            actor=actor,
            template_type=TemplateType(template_type).value,
            score=round(validation.score.overall, 4),
        )
        return TemplateCreationResult(template=stored, validation=validation)

    async def get_template(self, template_id: str) -> TemplateVersion:
        """Return the latest version of a template."""
        template = await self.store.get_latest(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def get_active_templates(self) -> List[TemplateVersion]:
        return await self.store.query_latest(
            statuses=[TemplateStatus.ACTIVE.value],
            limit=self.search_max_candidates,
        )

    async def get_templates_by_category(self, category: str) -> List[TemplateVersion]:
        return await self.store.query_latest(
            statuses=[TemplateStatus.ACTIVE.value],
            categories=[category],
            limit=self.search_max_candidates,
        )

    async def get_templates_by_industry(self, industry: Union[Industry, str]) -> List[TemplateVersion]:
        industry = Industry(industry).value
        templates = await self.get_active_templates()
        return [t for t in templates if industry in t.industry]

    async def search_templates(
        self,
        filters: Optional[TemplateSearchFilters] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> TemplateSearchResult:
        """Search latest templates, ranked by usage and rating.

        Status, category, complexity, creator and minimum counters are
        filtered by the store. Industry and tag filters match when the
        template shares at least one value with the filter and are applied
        to the candidate set afterwards.
        """
        filters = filters or TemplateSearchFilters()
        limit = self.default_page_size if limit is None else limit
        if page < 1:
            raise ValidationError("Page must be 1 or greater", field="page", value=page)
        if limit < 1:
            raise ValidationError("Limit must be 1 or greater", field="limit", value=limit)

        candidates = await self.store.query_latest(
            statuses=[s.value for s in filters.status],
            categories=filters.category,
            complexities=[c.value for c in filters.complexity],
            created_by=filters.created_by,
            usage_count_min=filters.usage_count_min,
            average_rating_min=filters.average_rating_min,
            limit=self.search_max_candidates,
        )

        if filters.industry:
            wanted = {industry.value for industry in filters.industry}
            candidates = [t for t in candidates if wanted.intersection(t.industry)]
        if filters.tags:
            wanted_tags = set(filters.tags)
            candidates = [t for t in candidates if wanted_tags.intersection(t.tags)]

        ranked = rank_templates(candidates, *SEARCH_RANKING_WEIGHTS)
        start = (page - 1) * limit

        logger.debug("Template search completed", matches=len(ranked), page=page, limit=limit)
        return TemplateSearchResult(
            templates=ranked[start:start + limit],
            total=len(ranked),
            page=page,
            limit=limit,
            filters=filters,
        )

    async def clone_template(
        self,
        source_template_id: str,
        new_name: str,
        actor: str,
        customizations: Optional[Dict[str, str]] = None,
        business_context: Optional[BusinessContextInput] = None,
    ) -> TemplateCreationResult:
        """Create a new draft template from the latest version of another.

        ``customizations`` maps segment ids to replacement content. Only
        those segments change; ids that match no segment are ignored.
        """
        source = await self.get_template(source_template_id)
        cloned = source.content.model_copy(deep=True)

        segments = cloned.segments
        if customizations:
            known = {segment.id for segment in segments}
            unknown = sorted(set(customizations) - known)
            if unknown:
                logger.warning(
                    "Ignoring customizations for unknown segments",
                    source_template_id=source_template_id,
                    segment_ids=unknown,
                )
            segments = [
                segment.model_copy(update={"content": customizations[segment.id]})
                if segment.id in customizations else segment
                for segment in segments
            ]

        update: Dict[str, Any] = {
            "name": new_name,
            "segments": segments,
            "metadata": cloned.metadata.model_copy(update={
                "created_by": actor,
                "parent_template_id": source_template_id,
                "child_template_ids": [],
                "usage": UsageStats(),
            }),
        }
        if business_context is not None:
            objective = business_context.primary_objective.value
            update["industry"] = [business_context.industry]
            update["business_objectives"] = [BusinessObjective(
                id=str(uuid.uuid4()),
                name=objective,
                description=f"Primary objective: {objective}",
                priority="high",
                measurable=True,
            )]

        result = await self.create_template(
            cloned.model_copy(update=update),
            actor,
            template_type=TemplateType.CLONED,
        )
        logger.info(
            "Template cloned",
            source_template_id=source_template_id,
            template_id=result.template.template_id,
            customized_segments=len(customizations or {}),
        )
        return result

    async def get_popular_templates(self, limit: int = 10) -> List[TemplateVersion]:
        """Active templates ranked by usage and rating."""
        if limit < 1:
            raise ValidationError("Limit must be 1 or greater", field="limit", value=limit)
        templates = await self.get_active_templates()
        return rank_templates(templates, *POPULARITY_RANKING_WEIGHTS)[:limit]

    async def change_status(
        self,
        template_id: str,
        status: Union[TemplateStatus, str],
        actor: str,
        reason: str,
    ) -> TemplateVersion:
        """Move a template to another lifecycle status through a new minor version."""
        status = TemplateStatus(status)
        current = await self.get_template(template_id)
        if current.status == status:
            raise ValidationError(
                f"Template {template_id} is already {status.value}",
                field="status",
                value=status.value,
            )

        impact = ChangeImpact.BREAKING if status == TemplateStatus.DEPRECATED else ChangeImpact.ENHANCEMENT
        return await self.versioning.create_version(
            template_id,
            [FieldChange(field="status", old_value=current.status.value, new_value=status.value, impact=impact)],
            ChangeType.MINOR,
            reason,
            actor,
        )

    async def record_usage(self, template_id: str, rating: Optional[float] = None) -> TemplateVersion:
        """Count one use of a template, optionally with a 0-5 rating."""
        if rating is not None and not 0 <= rating <= MAX_RATING:
            raise ValidationError(f"Rating must be between 0 and {MAX_RATING:g}", field="rating", value=rating)
        template = await self.store.record_usage(template_id, rating)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template


def create_template_service(manager: DatabaseManager) -> TemplateService:
    """Build a service wired to an initialized database manager."""
    store = SQLTemplateStore.from_manager(manager)
    return TemplateService(store, validator=get_template_validator())
