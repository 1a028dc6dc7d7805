"""Keytree: a file and directory tree on top of a flat object store.

Nested directories, node ids and inherited share settings — emulated with
prefix listings and per-key custom metadata.
"""

__version__ = "0.1.0"

from keytree.config import StorageConfig
from keytree.exceptions import (
    InputValidationError,
    KeytreeError,
    NodeAlreadyExistsError,
    NodeNotFoundError,
    ObjectNotFoundError,
    StorageError,
)
from keytree.materializer import HierarchicalNodeStore, NodeMaterializer
from keytree.service import StorageService
from keytree.sharing import merge_share_settings
from keytree.store import DatabaseObjectStore, MemoryObjectStore, ObjectStoreClient
from keytree.types import (
    ShareSettings,
    ShareSettingsInput,
    SignedUploadUrlInput,
    StorageNode,
    StorageNodeType,
    StorageUser,
    UploadDataItem,
)
from keytree.user_storage import UserStorage

__all__ = [
    "DatabaseObjectStore",
    "HierarchicalNodeStore",
    "InputValidationError",
    "KeytreeError",
    "MemoryObjectStore",
    "NodeAlreadyExistsError",
    "NodeMaterializer",
    "NodeNotFoundError",
    "ObjectNotFoundError",
    "ObjectStoreClient",
    "ShareSettings",
    "ShareSettingsInput",
    "SignedUploadUrlInput",
    "StorageConfig",
    "StorageError",
    "StorageNode",
    "StorageNodeType",
    "StorageService",
    "StorageUser",
    "UploadDataItem",
    "UserStorage",
    "__version__",
]
