"""MemoryObjectStore — dict-backed object store for tests and local use."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from keytree.exceptions import ObjectNotFoundError

from .protocol import ListObjectsResult, StoredObject
from .signing import sign_upload_url
from .utils import apply_metadata_patch, split_listing

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass
class _Entry:
    data: bytes
    content_type: str | None
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class MemoryObjectStore:
    """In-process object store.

    Every call yields to the event loop once, so parallel fan-out in the
    service interleaves the way it does against a remote store.

    Implements ``ObjectStoreClient``.
    """

    def __init__(
        self,
        *,
        upload_url_base: str = "memory://upload",
        signing_secret: str = "keytree-dev-secret",
        upload_url_ttl: int = 3600,
    ) -> None:
        self._entries: dict[str, _Entry] = {}
        self._upload_url_base = upload_url_base
        self._signing_secret = signing_secret
        self._upload_url_ttl = upload_url_ttl

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        return sorted(self._entries)

    def _get(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            raise ObjectNotFoundError(f"No such key: {key!r}")
        return entry

    @staticmethod
    def _stat(key: str, entry: _Entry) -> StoredObject:
        return StoredObject(
            key=key,
            size=len(entry.data),
            content_type=entry.content_type,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    async def list_by_prefix(
        self,
        prefix: str,
        delimiter: str | None = None,
    ) -> ListObjectsResult:
        await asyncio.sleep(0)
        object_keys, prefixes = split_listing(sorted(self._entries), prefix, delimiter)
        return ListObjectsResult(
            objects=[self._stat(k, self._entries[k]) for k in object_keys],
            prefixes=prefixes,
        )

    async def get_object(self, key: str) -> StoredObject | None:
        await asyncio.sleep(0)
        entry = self._entries.get(key)
        return self._stat(key, entry) if entry is not None else None

    async def exists(self, key: str) -> bool:
        await asyncio.sleep(0)
        return key in self._entries

    async def get_metadata(self, key: str) -> dict[str, str]:
        await asyncio.sleep(0)
        return dict(self._get(key).metadata)

    async def set_metadata(
        self,
        key: str,
        metadata: Mapping[str, str | None],
    ) -> StoredObject:
        await asyncio.sleep(0)
        entry = self._get(key)
        entry.metadata = apply_metadata_patch(entry.metadata, metadata)
        entry.updated_at = datetime.now(UTC)
        return self._stat(key, entry)

    async def put_key(
        self,
        key: str,
        data: bytes | str = b"",
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str | None] | None = None,
    ) -> StoredObject:
        await asyncio.sleep(0)
        if not key:
            raise ValueError("key must not be empty")
        payload = data.encode() if isinstance(data, str) else bytes(data)
        existing = self._entries.get(key)
        if existing is None:
            entry = _Entry(
                data=payload,
                content_type=content_type,
                metadata=apply_metadata_patch({}, metadata),
            )
            self._entries[key] = entry
        else:
            entry = existing
            entry.data = payload
            entry.content_type = content_type or entry.content_type
            entry.metadata = apply_metadata_patch(entry.metadata, metadata)
            entry.updated_at = datetime.now(UTC)
        return self._stat(key, entry)

    async def read_key(self, key: str) -> bytes:
        await asyncio.sleep(0)
        return self._get(key).data

    async def delete_key(self, key: str) -> None:
        await asyncio.sleep(0)
        self._get(key)
        del self._entries[key]

    async def move_key(self, src: str, dest: str) -> StoredObject:
        await asyncio.sleep(0)
        entry = self._get(src)
        if src == dest:
            return self._stat(dest, entry)
        moved = _Entry(
            data=entry.data,
            content_type=entry.content_type,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
        )
        self._entries[dest] = moved
        del self._entries[src]
        return self._stat(dest, moved)

    async def create_signed_upload_url(self, key: str, content_type: str) -> str:
        await asyncio.sleep(0)
        return sign_upload_url(
            self._upload_url_base,
            key,
            content_type,
            self._signing_secret,
            self._upload_url_ttl,
        )
