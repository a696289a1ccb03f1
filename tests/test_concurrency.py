"""Tests for the single-latest guarantee under concurrent writers."""

import asyncio

import pytest

from template_engine.core.exceptions import ConflictError
from template_engine.models.versioning import ChangeType, FieldChange
from template_engine.services.template_store import SQLTemplateStore
from template_engine.services.versioning_service import TemplateVersioningService


class RacingStore(SQLTemplateStore):
    """Holds every writer at ``swap_latest`` until all of them have arrived."""

    def __init__(self, session_maker, writers: int):
        super().__init__(session_maker)
        self._writers = writers
        self._arrived = 0
        self._all_arrived = asyncio.Event()

    async def swap_latest(self, current, new, change):
        self._arrived += 1
        if self._arrived >= self._writers:
            self._all_arrived.set()
        await asyncio.wait_for(self._all_arrived.wait(), timeout=10)
        return await super().swap_latest(current, new, change)


def greeting(value):
    return [FieldChange(field="segments.greeting.content", new_value=value)]


@pytest.mark.asyncio
async def test_concurrent_updates_have_one_winner(database, service, make_template):
    created = await service.create_template(make_template(), actor="alice")
    template_id = created.template.template_id
    racing = TemplateVersioningService(RacingStore(database.session_maker, writers=2))

    results = await asyncio.gather(
        racing.create_version(template_id, greeting("from bob"), ChangeType.PATCH, "edit", "bob"),
        racing.create_version(template_id, greeting("from carol"), ChangeType.MINOR, "edit", "carol"),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConflictError)

    versions = await racing.get_all_versions(template_id)
    latest = [v for v in versions if v.is_latest]
    assert len(versions) == 2
    assert [v.version for v in latest] == [winners[0].version]
    assert len(await racing.get_version_history(template_id)) == 1


@pytest.mark.asyncio
async def test_stale_writer_is_rejected(service, versioning, store, make_template):
    created = await service.create_template(make_template(), actor="alice")
    stale = created.template
    await versioning.create_version(stale.template_id, greeting("newer"), ChangeType.PATCH, "edit", "bob")
    fresh = await service.get_template(stale.template_id)

    # A writer still holding 1.0.0 tries to supersede it
    candidate = fresh.model_copy(update={"version": "1.0.2"})
    change = fresh.version_history[-1].model_copy(update={"sequence": 2, "version": "1.0.2"})
    with pytest.raises(ConflictError) as exc_info:
        await store.swap_latest(stale, candidate, change)

    assert exc_info.value.expected_version == "1.0.0"
    assert (await service.get_template(stale.template_id)).version == "1.0.1"


@pytest.mark.asyncio
async def test_store_refuses_second_latest_record(service, store, make_template):
    created = await service.create_template(make_template(), actor="alice")
    duplicate = created.template.model_copy(update={"version": "9.0.0"})

    with pytest.raises(ConflictError):
        await store.insert_template(duplicate)

    assert len(await store.list_versions(created.template.template_id)) == 1


@pytest.mark.asyncio
async def test_rollback_point_on_superseded_version_conflicts(service, versioning, store, make_template):
    created = await service.create_template(make_template(), actor="alice")
    template_id = created.template.template_id
    await versioning.create_version(template_id, greeting("newer"), ChangeType.PATCH, "edit", "bob")
    entry = (await versioning.get_version_history(template_id))[0].model_copy(update={"sequence": 2})

    with pytest.raises(ConflictError):
        await store.append_history(template_id, "1.0.0", entry)


@pytest.mark.asyncio
async def test_rollback_racing_update_has_one_winner(database, service, versioning, make_template):
    created = await service.create_template(make_template(), actor="alice")
    template_id = created.template.template_id
    await versioning.create_version(template_id, greeting("newer"), ChangeType.PATCH, "edit", "bob")
    racing = TemplateVersioningService(RacingStore(database.session_maker, writers=2))

    results = await asyncio.gather(
        racing.rollback_to_version(template_id, "1.0.0", "carol", "revert"),
        racing.create_version(template_id, greeting("from dave"), ChangeType.PATCH, "edit", "dave"),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConflictError)

    versions = await racing.get_all_versions(template_id)
    assert len(versions) == 3
    assert [v.version for v in versions if v.is_latest] == [winners[0].version]
    assert winners[0].version in ("2.0.0", "1.0.2")
    assert len(await racing.get_version_history(template_id)) == 2


class UsageDuringSwapStore(SQLTemplateStore):
    """Records a rated use after the writer loaded the latest version."""

    async def swap_latest(self, current, new, change):
        await self.record_usage(current.template_id, rating=5)
        return await super().swap_latest(current, new, change)


@pytest.mark.asyncio
async def test_usage_recorded_during_update_is_kept(database, service, make_template):
    created = await service.create_template(make_template(), actor="alice")
    template_id = created.template.template_id
    writer = TemplateVersioningService(UsageDuringSwapStore(database.session_maker))

    updated = await writer.create_version(template_id, greeting("hi"), ChangeType.PATCH, "edit", "bob")

    assert updated.usage_count == 1
    assert updated.rating_count == 1
    assert updated.average_rating == pytest.approx(5.0)

    latest = await service.get_template(template_id)
    assert latest.version == "1.0.1"
    assert latest.usage_count == 1
    assert latest.rating_count == 1
    assert latest.last_used is not None
