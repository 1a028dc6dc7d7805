"""SQLModel database models for keytree."""

from keytree.models.objects import StoredObjectBase, StoredObjectRecord

__all__ = [
    "StoredObjectBase",
    "StoredObjectRecord",
]
