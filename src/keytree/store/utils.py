"""Helpers shared by the bundled object store implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


def apply_metadata_patch(
    current: Mapping[str, str],
    patch: Mapping[str, str | None] | None,
) -> dict[str, str]:
    """Return *current* updated by *patch*; ``None`` values delete keys."""
    result = dict(current)
    for name, value in (patch or {}).items():
        if value is None:
            result.pop(name, None)
        else:
            result[name] = str(value)
    return result


def split_listing(
    keys: Iterable[str],
    prefix: str,
    delimiter: str | None,
) -> tuple[list[str], list[str]]:
    """Split sorted *keys* under *prefix* into (object keys, common prefixes).

    A key whose remainder after *prefix* contains *delimiter* collapses into
    the common prefix ending at its first delimiter.  A key equal to
    *prefix* is an object.
    """
    objects: list[str] = []
    prefixes: list[str] = []
    seen: set[str] = set()
    for key in keys:
        if not key.startswith(prefix):
            continue
        if delimiter:
            rest = key[len(prefix) :]
            idx = rest.find(delimiter)
            if idx != -1:
                common = prefix + rest[: idx + len(delimiter)]
                if common not in seen:
                    seen.add(common)
                    prefixes.append(common)
                continue
        objects.append(key)
    return objects, prefixes
