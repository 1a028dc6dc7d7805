"""DatabaseObjectStore — object store emulated on a single SQL table.

Stateless apart from configuration: every call opens its own session
from the supplied factory and commits before returning.  Works with
SQLite (aiosqlite) and PostgreSQL (asyncpg).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import defer
from sqlmodel import select

from keytree.exceptions import ObjectNotFoundError, StorageError

from .protocol import ListObjectsResult, StoredObject
from .signing import sign_upload_url
from .utils import apply_metadata_patch, split_listing

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from keytree.models.objects import StoredObjectBase

logger = logging.getLogger(__name__)


class DatabaseObjectStore:
    """SQL-backed ``ObjectStoreClient``.

    Constructor receives the session factory and, optionally, a custom
    ``StoredObjectBase`` table subclass so several stores can share one
    database under different table names.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        object_model: type[StoredObjectBase] | None = None,
        upload_url_base: str = "https://storage.local/upload",
        signing_secret: str = "keytree-dev-secret",
        upload_url_ttl: int = 3600,
    ) -> None:
        from keytree.models.objects import StoredObjectRecord

        self._session_factory = session_factory
        self._model: type[StoredObjectBase] = object_model or StoredObjectRecord  # type: ignore[assignment]
        self._upload_url_base = upload_url_base
        self._signing_secret = signing_secret
        self._upload_url_ttl = upload_url_ttl

    @property
    def object_model(self) -> type[StoredObjectBase]:
        return self._model

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Object store operation failed: %s", exc)
                raise StorageError(f"Object store operation failed: {exc}") from exc

    async def _require(self, session: AsyncSession, key: str) -> StoredObjectBase:
        record = await session.get(self._model, key)
        if record is None:
            raise ObjectNotFoundError(f"No such key: {key!r}")
        return record

    @staticmethod
    def _stat(record: StoredObjectBase) -> StoredObject:
        return StoredObject(
            key=record.key,
            size=record.size,
            content_type=record.content_type,
            metadata=dict(record.custom_metadata or {}),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    # ------------------------------------------------------------------
    # ObjectStoreClient
    # ------------------------------------------------------------------

    async def list_by_prefix(
        self,
        prefix: str,
        delimiter: str | None = None,
    ) -> ListObjectsResult:
        model = self._model
        query = select(model).options(defer(model.data))  # type: ignore[arg-type]
        if prefix:
            query = query.where(model.key.startswith(prefix, autoescape=True))  # type: ignore[union-attr]
        query = query.order_by(model.key)  # type: ignore[arg-type]

        async with self._session() as session:
            result = await session.execute(query)
            stats = {r.key: self._stat(r) for r in result.scalars().all()}

        object_keys, prefixes = split_listing(stats, prefix, delimiter)
        return ListObjectsResult(
            objects=[stats[k] for k in object_keys],
            prefixes=prefixes,
        )

    async def get_object(self, key: str) -> StoredObject | None:
        async with self._session() as session:
            record = await session.get(self._model, key)
            return self._stat(record) if record is not None else None

    async def exists(self, key: str) -> bool:
        return await self.get_object(key) is not None

    async def get_metadata(self, key: str) -> dict[str, str]:
        async with self._session() as session:
            record = await self._require(session, key)
            return dict(record.custom_metadata or {})

    async def set_metadata(
        self,
        key: str,
        metadata: Mapping[str, str | None],
    ) -> StoredObject:
        async with self._session() as session:
            record = await self._require(session, key)
            record.custom_metadata = apply_metadata_patch(record.custom_metadata or {}, metadata)
            record.updated_at = datetime.now(UTC)
            await session.flush()
            return self._stat(record)

    async def put_key(
        self,
        key: str,
        data: bytes | str = b"",
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str | None] | None = None,
    ) -> StoredObject:
        if not key:
            raise ValueError("key must not be empty")
        payload = data.encode() if isinstance(data, str) else bytes(data)

        async with self._session() as session:
            record = await session.get(self._model, key)
            if record is None:
                record = self._model(
                    key=key,
                    data=payload,
                    content_type=content_type,
                    size=len(payload),
                    custom_metadata=apply_metadata_patch({}, metadata),
                )
                session.add(record)
            else:
                record.data = payload
                record.size = len(payload)
                record.content_type = content_type or record.content_type
                record.custom_metadata = apply_metadata_patch(record.custom_metadata or {}, metadata)
                record.updated_at = datetime.now(UTC)
            await session.flush()
            return self._stat(record)

    async def read_key(self, key: str) -> bytes:
        async with self._session() as session:
            record = await self._require(session, key)
            return bytes(record.data)

    async def delete_key(self, key: str) -> None:
        async with self._session() as session:
            record = await self._require(session, key)
            await session.delete(record)

    async def move_key(self, src: str, dest: str) -> StoredObject:
        async with self._session() as session:
            record = await self._require(session, src)
            if src == dest:
                return self._stat(record)

            existing = await session.get(self._model, dest)
            if existing is not None:
                await session.delete(existing)
                await session.flush()

            moved = self._model(
                key=dest,
                data=record.data,
                content_type=record.content_type,
                size=record.size,
                custom_metadata=dict(record.custom_metadata or {}),
                created_at=record.created_at,
            )
            await session.delete(record)
            session.add(moved)
            await session.flush()
            return self._stat(moved)

    async def create_signed_upload_url(self, key: str, content_type: str) -> str:
        return sign_upload_url(
            self._upload_url_base,
            key,
            content_type,
            self._signing_secret,
            self._upload_url_ttl,
        )
