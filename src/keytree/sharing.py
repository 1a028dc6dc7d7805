"""Share settings — merge on re-parenting, input application, read access."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .types import ShareSettings

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .types import ShareSettingsInput, StorageNode


def merge_share_settings(
    target: ShareSettings,
    from_parent: ShareSettings,
    to_parent: ShareSettings,
) -> ShareSettings:
    """Re-parent *target* from *from_parent* to *to_parent*.

    - A public flag equal to the old parent's is treated as inherited and
      follows the new parent; a differing flag is an override and is kept.
    - Uids contributed by the old parent are removed, then the new
      parent's uids are appended.

    A flag that was set explicitly but happens to equal the old parent's
    cannot be told apart from an inherited one and is replaced.
    """
    is_public = target.is_public
    if target.is_public == from_parent.is_public:
        is_public = to_parent.is_public

    dropped = set(from_parent.uids)
    uids = [uid for uid in target.uids if uid not in dropped]
    for uid in to_parent.uids:
        if uid not in uids:
            uids.append(uid)

    return ShareSettings(is_public=is_public, uids=uids)


def apply_share_input(
    current: ShareSettings,
    settings: ShareSettingsInput | None,
) -> ShareSettings:
    """Apply caller input to *current*.  ``None`` clears to the empty settings."""
    if settings is None:
        return ShareSettings()
    result = current.copy()
    if settings.is_public is not None:
        result.is_public = settings.is_public
    if settings.uids is not None:
        result.uids = list(dict.fromkeys(uid for uid in settings.uids if uid))
    return result


def resolve_effective_share(
    hierarchy: Iterable[StorageNode],
    default: ShareSettings,
) -> ShareSettings:
    """Settings in force for the last node of a root-first *hierarchy*.

    The deepest existing node carrying explicit settings wins.
    """
    result = default
    for node in hierarchy:
        if node.exists and node.share is not None:
            result = node.share
    return result.copy()


def is_readable(
    settings: ShareSettings,
    uid: str | None,
    *,
    is_admin: bool = False,
    is_owner: bool = False,
) -> bool:
    """Decide read access from effective *settings* and the caller's identity."""
    if settings.is_public or is_admin or is_owner:
        return True
    return uid is not None and uid in settings.uids
