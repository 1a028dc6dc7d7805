"""Metadata codec — node id and share settings stored as per-key custom metadata.

Only two custom fields are used:

- ``id``: the node id, passed through unchanged.
- ``share``: compact JSON ``{"isPublic": bool, "uids": [str, ...]}``.  Settings
  that grant nothing are written as ``None`` (field absent), which is the
  "inherit from the nearest ancestor" state.

Decoding is permissive: a malformed ``share`` value decodes to the inherited
state and is logged, never raised, because keys created outside this service
routinely lack the fields entirely.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .types import ShareSettings

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

ID_FIELD = "id"
SHARE_FIELD = "share"


@dataclass
class NodeMetadata:
    """Decoded custom metadata of a single key."""

    id: str = ""
    share: ShareSettings | None = None


def generate_node_id(length: int = 12) -> str:
    """Return a new short opaque node id."""
    return uuid.uuid4().hex[:length]


def encode_share(share: ShareSettings | None) -> str | None:
    """Serialize *share*; ``None`` or empty settings encode as absent."""
    if share is None or share.is_empty:
        return None
    payload = {"isPublic": share.is_public, "uids": list(share.uids)}
    return json.dumps(payload, separators=(",", ":"))


def decode_share(raw: str | None) -> ShareSettings | None:
    """Parse a ``share`` field; anything malformed decodes to inherited (``None``)."""
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed share metadata: %r", raw)
        return None

    if not isinstance(payload, dict):
        logger.warning("Ignoring share metadata that is not an object: %r", raw)
        return None

    is_public = payload.get("isPublic", False)
    uids = payload.get("uids", [])
    if not isinstance(is_public, bool) or not isinstance(uids, list):
        logger.warning("Ignoring share metadata with unexpected field types: %r", raw)
        return None
    if not all(isinstance(uid, str) for uid in uids):
        logger.warning("Ignoring share metadata with non-string uids: %r", raw)
        return None

    return ShareSettings(is_public=is_public, uids=list(dict.fromkeys(uids)))


def encode_metadata(metadata: NodeMetadata) -> dict[str, str | None]:
    """Encode *metadata* into a store metadata patch.

    Both fields are always present so the patch also clears stale values.
    """
    return {
        ID_FIELD: metadata.id or None,
        SHARE_FIELD: encode_share(metadata.share),
    }


def decode_metadata(raw: Mapping[str, str | None] | None) -> NodeMetadata:
    """Decode raw store metadata.  Missing fields decode to their defaults."""
    raw = raw or {}
    return NodeMetadata(
        id=raw.get(ID_FIELD) or "",
        share=decode_share(raw.get(SHARE_FIELD)),
    )
