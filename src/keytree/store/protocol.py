"""ObjectStoreClient protocol — the flat key store the node tree is built on.

The store knows nothing about directories: it offers flat keys, prefix
listing with an optional delimiter, and string-valued custom metadata per
key.  ``StorageService`` builds all tree semantics on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclass
class StoredObject:
    """Stat of a single key."""

    key: str
    size: int = 0
    content_type: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ListObjectsResult:
    """Result of a prefix listing.

    ``prefixes`` holds the common prefixes collapsed by the delimiter, each
    ending in the delimiter.  It is empty for non-delimited listings.
    """

    objects: list[StoredObject] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)


@runtime_checkable
class ObjectStoreClient(Protocol):
    """Minimal object store contract.

    Metadata patches follow object-store semantics: a key mapped to
    ``None`` is removed, other keys are overwritten, unmentioned keys are
    left untouched.  Operations on a missing key raise
    ``ObjectNotFoundError``.
    """

    async def list_by_prefix(
        self,
        prefix: str,
        delimiter: str | None = None,
    ) -> ListObjectsResult: ...

    async def get_object(self, key: str) -> StoredObject | None: ...

    async def exists(self, key: str) -> bool: ...

    async def get_metadata(self, key: str) -> dict[str, str]: ...

    async def set_metadata(
        self,
        key: str,
        metadata: Mapping[str, str | None],
    ) -> StoredObject: ...

    async def put_key(
        self,
        key: str,
        data: bytes | str = b"",
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str | None] | None = None,
    ) -> StoredObject: ...

    async def read_key(self, key: str) -> bytes: ...

    async def delete_key(self, key: str) -> None: ...

    async def move_key(self, src: str, dest: str) -> StoredObject: ...

    async def create_signed_upload_url(self, key: str, content_type: str) -> str: ...
