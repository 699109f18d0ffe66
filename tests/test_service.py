"""Tests for backend.service — per-user sessions, locks and autosave."""

import pytest

from backend.service import GameService
from emberfall.content import BundledContentStore
from emberfall.errors import NotFound
from emberfall.storage import MemoryProgressStore


@pytest.fixture
def service(dice) -> GameService:
    return GameService(BundledContentStore(), MemoryProgressStore(), dice=dice)


async def test_lock_outlives_deleted_session(service, build) -> None:
    await service.create_hero("p1", build)
    lock = service.lock("p1")

    await service.delete_progress("p1")

    assert service.lock("p1") is lock
    assert not lock.locked()
    with pytest.raises(NotFound):
        await service.load_progress("p1")


async def test_reset_starts_a_fresh_session(service, build) -> None:
    await service.create_hero("p1", build)
    view = await service.reset("p1")
    assert view.snapshot.hero is None
    assert (await service.view("p1")).snapshot.hero is None


async def test_sessions_are_isolated(service, build) -> None:
    await service.create_hero("ann.b", build)
    await service.choose("ann.b", "intro_seek_tamsin")
    assert (await service.view("ann b")).snapshot.hero is None
    assert (await service.load_progress("ann.b")).current_scene_id == "tamsin_workshop"
