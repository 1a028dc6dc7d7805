"""Shared fixtures for keytree tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from keytree.config import StorageConfig
from keytree.exceptions import StorageError
from keytree.service import StorageService
from keytree.store.database import DatabaseObjectStore
from keytree.store.memory import MemoryObjectStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


class RecordingObjectStore(MemoryObjectStore):
    """MemoryObjectStore that records the name and first argument of every call."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calls: list[tuple[str, str]] = []

    def reset_calls(self) -> None:
        self.calls.clear()

    async def list_by_prefix(self, prefix, delimiter=None):
        self.calls.append(("list_by_prefix", prefix))
        return await super().list_by_prefix(prefix, delimiter)

    async def get_object(self, key):
        self.calls.append(("get_object", key))
        return await super().get_object(key)

    async def exists(self, key):
        self.calls.append(("exists", key))
        return await super().exists(key)

    async def get_metadata(self, key):
        self.calls.append(("get_metadata", key))
        return await super().get_metadata(key)

    async def set_metadata(self, key, metadata):
        self.calls.append(("set_metadata", key))
        return await super().set_metadata(key, metadata)

    async def put_key(self, key, data=b"", *, content_type=None, metadata=None):
        self.calls.append(("put_key", key))
        return await super().put_key(key, data, content_type=content_type, metadata=metadata)

    async def read_key(self, key):
        self.calls.append(("read_key", key))
        return await super().read_key(key)

    async def delete_key(self, key):
        self.calls.append(("delete_key", key))
        return await super().delete_key(key)

    async def move_key(self, src, dest):
        self.calls.append(("move_key", src))
        return await super().move_key(src, dest)

    async def create_signed_upload_url(self, key, content_type):
        self.calls.append(("create_signed_upload_url", key))
        return await super().create_signed_upload_url(key, content_type)


class FailingObjectStore(RecordingObjectStore):
    """RecordingObjectStore that raises ``error`` when one operation hits one key."""

    def __init__(self, fail_on: tuple[str, str] | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_on = fail_on
        self.error = StorageError("Injected store failure")

    def _maybe_fail(self, operation: str, key: str) -> None:
        if self.fail_on == (operation, key):
            raise self.error

    async def delete_key(self, key):
        self._maybe_fail("delete_key", key)
        return await super().delete_key(key)

    async def move_key(self, src, dest):
        self._maybe_fail("move_key", src)
        return await super().move_key(src, dest)


@pytest.fixture
def config() -> StorageConfig:
    return StorageConfig(signing_secret="test-secret")


@pytest.fixture
def store() -> RecordingObjectStore:
    """In-memory object store that records calls."""
    return RecordingObjectStore(signing_secret="test-secret")


@pytest.fixture
def service(store: RecordingObjectStore, config: StorageConfig) -> StorageService:
    return StorageService(store, config)


@pytest.fixture
def failing_store() -> FailingObjectStore:
    return FailingObjectStore(signing_secret="test-secret")


@pytest.fixture
def failing_service(failing_store: FailingObjectStore, config: StorageConfig) -> StorageService:
    return StorageService(failing_store, config)


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Async file-backed SQLite engine with all tables created."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'keytree.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def db_store(session_factory: async_sessionmaker[AsyncSession]) -> DatabaseObjectStore:
    return DatabaseObjectStore(session_factory, signing_secret="test-secret")

