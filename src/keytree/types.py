"""Value types: StorageNode, ShareSettings, upload inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


class StorageNodeType(str, Enum):
    """Kind of node in the emulated tree."""

    FILE = "File"
    DIR = "Dir"


@dataclass
class ShareSettings:
    """Access-control settings of a node.

    A node either carries explicit settings or none at all, in which case
    it inherits from its nearest ancestor.  ``StorageNode.share is None``
    is the inherited state.
    """

    is_public: bool = False
    uids: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when these settings grant nothing beyond the default."""
        return not self.is_public and not self.uids

    def copy(self) -> ShareSettings:
        return ShareSettings(is_public=self.is_public, uids=list(self.uids))


@dataclass
class ShareSettingsInput:
    """Partial settings supplied by callers.  ``None`` fields are left as-is."""

    is_public: bool | None = None
    uids: list[str] | None = None


@dataclass
class StorageNode:
    """A file or directory recomputed from the object store."""

    id: str
    node_type: StorageNodeType
    name: str
    dir: str
    path: str
    content_type: str | None = None
    size: int | None = None
    share: ShareSettings | None = None
    exists: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_dir(self) -> bool:
        return self.node_type is StorageNodeType.DIR

    @property
    def share_settings(self) -> ShareSettings:
        """Own settings, or the empty default when inheriting."""
        return self.share.copy() if self.share is not None else ShareSettings()


@dataclass
class SignedUploadUrlInput:
    """Request for a pre-signed upload URL."""

    file_path: str
    content_type: str = "application/octet-stream"


@dataclass
class UploadDataItem:
    """In-memory payload written by ``upload_as_files``."""

    path: str
    data: bytes | str
    content_type: str = "application/octet-stream"


@dataclass
class StorageUser:
    """Caller identity used for per-user base directories."""

    uid: str
    dir_name: str | None = None
