"""Shared fixtures: a repository over tmp_path with a controllable clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from devmem.config import MemoryConfig
from devmem.project import ProjectContext, StaticProjectResolver
from devmem.repository import MemoryRepository
from devmem.storage import FileContentStore, JsonIndexStore

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
PROJECT = ProjectContext(project_id="github.com/acme/app", project_name="app")


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver() -> StaticProjectResolver:
    return StaticProjectResolver(PROJECT)


@pytest.fixture
def content_store(tmp_path: Path) -> FileContentStore:
    return FileContentStore(tmp_path / "store")


@pytest.fixture
def repo(
    tmp_path: Path,
    content_store: FileContentStore,
    resolver: StaticProjectResolver,
    clock: FakeClock,
) -> MemoryRepository:
    config = MemoryConfig(storage_dir=tmp_path / "store", state_dir=tmp_path / "state")
    return MemoryRepository(
        content_store, JsonIndexStore(content_store), resolver=resolver, config=config, clock=clock
    )
