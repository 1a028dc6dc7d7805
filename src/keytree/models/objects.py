"""StoredObjectRecord model — one row per object store key.

Provides ``StoredObjectBase`` (non-table) and ``StoredObjectRecord``
(concrete table).  Subclass ``StoredObjectBase`` with ``table=True`` and a
custom ``__tablename__`` to use a different table name.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, LargeBinary
from sqlmodel import Field, SQLModel


class StoredObjectBase(SQLModel):
    """Base fields for a stored key. Subclass with ``table=True`` for a concrete table."""

    key: str = Field(primary_key=True)
    data: bytes = Field(default=b"", sa_type=LargeBinary)
    content_type: str | None = Field(default=None)
    size: int = Field(default=0)
    custom_metadata: dict[str, str] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class StoredObjectRecord(StoredObjectBase, table=True):
    """Default object table — ``keytree_objects``."""

    __tablename__ = "keytree_objects"
