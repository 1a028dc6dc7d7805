"""Object store clients — the flat key stores the node tree is built on."""

from keytree.store.database import DatabaseObjectStore
from keytree.store.memory import MemoryObjectStore
from keytree.store.protocol import ListObjectsResult, ObjectStoreClient, StoredObject
from keytree.store.signing import sign_upload_url, verify_upload_signature

__all__ = [
    "DatabaseObjectStore",
    "ListObjectsResult",
    "MemoryObjectStore",
    "ObjectStoreClient",
    "StoredObject",
    "sign_upload_url",
    "verify_upload_signature",
]
