"""Backing store for template version records.

``TemplateStore`` is the contract the versioning and management services
consume. ``SQLTemplateStore`` implements it with SQLAlchemy's asyncio
extension. The single-latest invariant is owned by ``swap_latest``: it is
the only write that moves the latest flag, and it does so in one
transaction conditioned on the superseded record still being latest.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import select, true, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import DatabaseManager
from ..core.exceptions import ConflictError, StoreError
from ..models.records import TemplateVersionRecord, VersionChangeRecord, utcnow
from ..models.versioning import TemplateVersion, VersionChange

logger = structlog.get_logger(__name__)

# Counters that follow a template from one latest version to the next
USAGE_COLUMNS = ("usage_count", "average_rating", "rating_count", "last_used")


class TemplateStore(ABC):
    """Storage contract for template versions and their history."""

    @abstractmethod
    async def get_latest(self, template_id: str) -> Optional[TemplateVersion]:
        """Return the latest version of a template, or None."""

    @abstractmethod
    async def get_version(self, template_id: str, version: str) -> Optional[TemplateVersion]:
        """Return one specific version of a template, or None."""

    @abstractmethod
    async def list_versions(self, template_id: str) -> List[TemplateVersion]:
        """Return every stored version of a template, newest first."""

    @abstractmethod
    async def query_latest(
        self,
        statuses: Iterable[str] = (),
        categories: Iterable[str] = (),
        complexities: Iterable[str] = (),
        created_by: Optional[str] = None,
        usage_count_min: Optional[int] = None,
        average_rating_min: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[TemplateVersion]:
        """Return latest records matching the secondary attribute filters."""

    @abstractmethod
    async def insert_template(self, template: TemplateVersion) -> TemplateVersion:
        """Insert the first version of a new template as latest."""

    @abstractmethod
    async def swap_latest(
        self,
        current: TemplateVersion,
        new: TemplateVersion,
        change: VersionChange,
    ) -> TemplateVersion:
        """Atomically supersede ``current`` with ``new`` and record ``change``.

        Usage counters on the stored record are those of the superseded
        record at swap time, not the ones carried by ``new``.

        Raises:
            ConflictError: If ``current`` is no longer the latest version.
        """

    @abstractmethod
    async def append_history(self, template_id: str, expected_version: str, change: VersionChange) -> VersionChange:
        """Append a history entry while ``expected_version`` is still latest."""

    @abstractmethod
    async def get_history(self, template_id: str) -> List[VersionChange]:
        """Return the full version history of a template in sequence order."""

    @abstractmethod
    async def record_usage(self, template_id: str, rating: Optional[float] = None) -> Optional[TemplateVersion]:
        """Count one use of the latest version, optionally folding in a rating."""


def _history_at(version: str, history: List[VersionChange]) -> List[VersionChange]:
    """History as it stood while ``version`` was latest."""
    cutoff = max((c.sequence for c in history if c.version == version), default=0)
    return [c for c in history if c.sequence <= cutoff]


class SQLTemplateStore(TemplateStore):
    """SQLAlchemy backed template store."""

    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    @classmethod
    def from_manager(cls, manager: DatabaseManager) -> "SQLTemplateStore":
        if not manager.session_maker:
            raise RuntimeError("Database not initialized")
        return cls(manager.session_maker)

    @asynccontextmanager
    async def _transaction(self, operation: str, template_id: Optional[str] = None):
        """Run one unit of work, translating driver errors.

        Uniqueness violations mean another writer got there first and
        surface as ``ConflictError``. Any other SQLAlchemy failure becomes a
        ``StoreError`` naming the operation.
        """
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning(
                "Store write lost a race",
                operation=operation,
                template_id=template_id,
                error=str(e.orig),
            )
            raise ConflictError(
                f"Concurrent modification of template {template_id} during {operation}",
                template_id=template_id,
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "Store operation failed",
                operation=operation,
                template_id=template_id,
                error=str(e),
            )
            raise StoreError(f"Store operation {operation} failed: {e}", operation=operation) from e

    async def _load_history(self, session, template_ids: Iterable[str]) -> Dict[str, List[VersionChange]]:
        template_ids = list(set(template_ids))
        history: Dict[str, List[VersionChange]] = {tid: [] for tid in template_ids}
        if not template_ids:
            return history
        result = await session.execute(
            select(VersionChangeRecord)
            .where(VersionChangeRecord.template_id.in_(template_ids))
            .order_by(VersionChangeRecord.template_id, VersionChangeRecord.sequence)
        )
        for record in result.scalars():
            history[record.template_id].append(record.to_model())
        return history

    async def _to_models(self, session, records: List[TemplateVersionRecord]) -> List[TemplateVersion]:
        history = await self._load_history(session, (r.template_id for r in records))
        return [r.to_model(_history_at(r.version, history[r.template_id])) for r in records]

    async def get_latest(self, template_id: str) -> Optional[TemplateVersion]:
        async with self._transaction("get_latest", template_id) as session:
            result = await session.execute(
                select(TemplateVersionRecord).where(
                    TemplateVersionRecord.template_id == template_id,
                    TemplateVersionRecord.is_latest == true(),
                )
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return (await self._to_models(session, [record]))[0]

    async def get_version(self, template_id: str, version: str) -> Optional[TemplateVersion]:
        async with self._transaction("get_version", template_id) as session:
            result = await session.execute(
                select(TemplateVersionRecord).where(
                    TemplateVersionRecord.template_id == template_id,
                    TemplateVersionRecord.version == version,
                )
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return (await self._to_models(session, [record]))[0]

    async def list_versions(self, template_id: str) -> List[TemplateVersion]:
        async with self._transaction("list_versions", template_id) as session:
            result = await session.execute(
                select(TemplateVersionRecord)
                .where(TemplateVersionRecord.template_id == template_id)
                .order_by(
                    TemplateVersionRecord.version_major.desc(),
                    TemplateVersionRecord.version_minor.desc(),
                    TemplateVersionRecord.version_patch.desc(),
                )
            )
            return await self._to_models(session, list(result.scalars()))

    async def query_latest(
        self,
        statuses: Iterable[str] = (),
        categories: Iterable[str] = (),
        complexities: Iterable[str] = (),
        created_by: Optional[str] = None,
        usage_count_min: Optional[int] = None,
        average_rating_min: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[TemplateVersion]:
        query = select(TemplateVersionRecord).where(TemplateVersionRecord.is_latest == true())

        statuses, categories, complexities = list(statuses), list(categories), list(complexities)
        if statuses:
            query = query.where(TemplateVersionRecord.status.in_(statuses))
        if categories:
            query = query.where(TemplateVersionRecord.category.in_(categories))
        if complexities:
            query = query.where(TemplateVersionRecord.complexity.in_(complexities))
        if created_by:
            query = query.where(TemplateVersionRecord.created_by == created_by)
        if usage_count_min is not None:
            query = query.where(TemplateVersionRecord.usage_count >= usage_count_min)
        if average_rating_min is not None:
            query = query.where(TemplateVersionRecord.average_rating >= average_rating_min)

        query = query.order_by(TemplateVersionRecord.id)
        if limit is not None:
            query = query.limit(limit)

        async with self._transaction("query_latest") as session:
            result = await session.execute(query)
            records = list(result.scalars())
            if limit is not None and len(records) >= limit:
                logger.warning("Template query hit the candidate limit", limit=limit)
            return await self._to_models(session, records)

    async def insert_template(self, template: TemplateVersion) -> TemplateVersion:
        stored = template.model_copy(update={"is_latest": True, "version_history": []})
        async with self._transaction("insert_template", template.template_id) as session:
            session.add(TemplateVersionRecord.from_model(stored))
        logger.info("Template stored", template_id=stored.template_id, version=stored.version)
        return stored

    async def swap_latest(
        self,
        current: TemplateVersion,
        new: TemplateVersion,
        change: VersionChange,
    ) -> TemplateVersion:
        async with self._transaction("swap_latest", current.template_id) as session:
            result = await session.execute(
                update(TemplateVersionRecord)
                .where(
                    TemplateVersionRecord.template_id == current.template_id,
                    TemplateVersionRecord.version == current.version,
                    TemplateVersionRecord.is_latest == true(),
                )
                .values(is_latest=False)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    "Latest version precondition failed",
                    template_id=current.template_id,
                    expected_version=current.version,
                )
                raise ConflictError(
                    f"Template {current.template_id} is no longer at version {current.version}",
                    template_id=current.template_id,
                    expected_version=current.version,
                )
            # Usage recorded after ``current`` was loaded still counts
            counters = (await session.execute(
                select(*(getattr(TemplateVersionRecord, name) for name in USAGE_COLUMNS)).where(
                    TemplateVersionRecord.template_id == current.template_id,
                    TemplateVersionRecord.version == current.version,
                )
            )).one()
            stored = new.model_copy(update={"is_latest": True, **dict(zip(USAGE_COLUMNS, counters))})
            session.add(TemplateVersionRecord.from_model(stored))
            session.add(VersionChangeRecord.from_model(current.template_id, change))
        return stored

    async def append_history(self, template_id: str, expected_version: str, change: VersionChange) -> VersionChange:
        async with self._transaction("append_history", template_id) as session:
            result = await session.execute(
                select(TemplateVersionRecord.version).where(
                    TemplateVersionRecord.template_id == template_id,
                    TemplateVersionRecord.is_latest == true(),
                )
            )
            latest = result.scalar_one_or_none()
            if latest != expected_version:
                raise ConflictError(
                    f"Template {template_id} is no longer at version {expected_version}",
                    template_id=template_id,
                    expected_version=expected_version,
                )
            session.add(VersionChangeRecord.from_model(template_id, change))
        return change

    async def get_history(self, template_id: str) -> List[VersionChange]:
        async with self._transaction("get_history", template_id) as session:
            history = await self._load_history(session, [template_id])
            return history[template_id]

    async def record_usage(self, template_id: str, rating: Optional[float] = None) -> Optional[TemplateVersion]:
        values = {
            "usage_count": TemplateVersionRecord.usage_count + 1,
            "last_used": utcnow(),
        }
        if rating is not None:
            # Right-hand sides see the pre-update row
            values["average_rating"] = (
                (TemplateVersionRecord.average_rating * TemplateVersionRecord.rating_count + rating)
                / (TemplateVersionRecord.rating_count + 1)
            )
            values["rating_count"] = TemplateVersionRecord.rating_count + 1

        async with self._transaction("record_usage", template_id) as session:
            result = await session.execute(
                update(TemplateVersionRecord)
                .where(
                    TemplateVersionRecord.template_id == template_id,
                    TemplateVersionRecord.is_latest == true(),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
        return await self.get_latest(template_id)
