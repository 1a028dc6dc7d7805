"""Path utilities: normalization, hierarchy splitting, key mapping, ordering."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .exceptions import InputValidationError
from .types import StorageNodeType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .types import StorageNode

SEPARATOR = "/"

SORT_SENTINEL = "\uffff"
"""Appended after a file's dir so files sort after sibling directories."""

MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255


# =============================================================================
# Normalization
# =============================================================================


def normalize_path(path: str | None) -> str:
    """Normalize a node path.

    - Trims surrounding whitespace
    - Removes leading, trailing and repeated slashes
    - ``""`` represents the root

    Examples:
        normalize_path("/photos/") -> "photos"
        normalize_path("a//b") -> "a/b"
        normalize_path(None) -> ""
    """
    if not path:
        return ""
    segments = [s for s in path.strip().split(SEPARATOR) if s]
    return SEPARATOR.join(segments)


def join_path(*parts: str | None) -> str:
    """Join path fragments, skipping empty ones.

    Examples:
        join_path("users", "", "photos/a.png") -> "users/photos/a.png"
    """
    return normalize_path(SEPARATOR.join(p for p in parts if p))


def split_path(path: str) -> tuple[str, str]:
    """Split path into (dir, name).

    Examples:
        split_path("photos/family.png") -> ("photos", "family.png")
        split_path("photos") -> ("", "photos")
        split_path("") -> ("", "")
    """
    path = normalize_path(path)
    if SEPARATOR not in path:
        return "", path
    dir_path, name = path.rsplit(SEPARATOR, 1)
    return dir_path, name


def split_hierarchy(*paths: str) -> list[str]:
    """Return every ancestor path of *paths* down to the paths themselves.

    Duplicates across inputs are removed and the result is sorted, so
    ancestors always precede their descendants.

    Examples:
        split_hierarchy("a/b/c") -> ["a", "a/b", "a/b/c"]
        split_hierarchy("a/b", "a/c") -> ["a", "a/b", "a/c"]
    """
    result: set[str] = set()
    for path in paths:
        segments = normalize_path(path).split(SEPARATOR)
        for i in range(len(segments)):
            current = SEPARATOR.join(segments[: i + 1])
            if current:
                result.add(current)
    return sorted(result)


def is_descendant_path(path: str, ancestor: str) -> bool:
    """True if *path* lies strictly below *ancestor* (root contains everything)."""
    path = normalize_path(path)
    ancestor = normalize_path(ancestor)
    if not ancestor:
        return bool(path)
    return path.startswith(ancestor + SEPARATOR)


def replace_prefix(path: str, old_prefix: str, new_prefix: str) -> str:
    """Rewrite *path* so that *old_prefix* becomes *new_prefix*.

    Examples:
        replace_prefix("photos/a.png", "photos", "archive/photos") -> "archive/photos/a.png"
    """
    path = normalize_path(path)
    old_prefix = normalize_path(old_prefix)
    if path == old_prefix:
        return normalize_path(new_prefix)
    if not is_descendant_path(path, old_prefix):
        raise ValueError(f"{path!r} is not under {old_prefix!r}")
    return join_path(new_prefix, path[len(old_prefix) :])


def summarize_dir_paths(dir_paths: Iterable[str]) -> list[str]:
    """Collapse dir paths to the deepest distinct branches.

    Examples:
        summarize_dir_paths(["d1/d11", "d1/d11/d111", "d2"]) -> ["d1/d11/d111", "d2"]
    """
    result: list[str] = []
    for dir_path in (normalize_path(p) for p in dir_paths):
        for i, existing in enumerate(result):
            if existing == dir_path or is_descendant_path(existing, dir_path):
                break
            if is_descendant_path(dir_path, existing):
                result[i] = dir_path
                break
        else:
            result.append(dir_path)
    return result


# =============================================================================
# Store key mapping
# =============================================================================


def to_key(base_path: str | None, path: str, is_dir: bool) -> str:
    """Map a node path to its object store key.

    Directories carry a trailing separator.  The root of an empty
    *base_path* has no key and maps to ``""``.

    Examples:
        to_key("users/u1", "photos", True) -> "users/u1/photos/"
        to_key(None, "photos/a.png", False) -> "photos/a.png"
    """
    key = join_path(base_path, path)
    if is_dir and key:
        key += SEPARATOR
    return key


def to_prefix(base_path: str | None, dir_path: str | None) -> str:
    """Listing prefix for the contents of *dir_path* (``""`` lists everything)."""
    return to_key(base_path, dir_path or "", is_dir=True)


def strip_base(key: str, base_path: str | None) -> str:
    """Remove *base_path* from *key* and normalize the remainder."""
    path = normalize_path(key)
    base_path = normalize_path(base_path)
    if not base_path:
        return path
    if path == base_path:
        return ""
    if path.startswith(base_path + SEPARATOR):
        return normalize_path(path[len(base_path) :])
    return path


def classify_key(key: str) -> StorageNodeType:
    """A key ending in the separator is a directory, anything else a file."""
    return StorageNodeType.DIR if key.endswith(SEPARATOR) else StorageNodeType.FILE


# =============================================================================
# Ordering
# =============================================================================


def sort_key(node: StorageNode) -> bytes:
    """Depth-first, directories-before-files ordering key.

    Keys compare as UTF-16 code units, so characters outside the BMP
    (surrogate pairs) still sort below the sentinel.
    """
    if node.node_type is StorageNodeType.FILE:
        key = f"{node.dir}{SORT_SENTINEL}{node.name}"
    else:
        key = node.path
    return key.encode("utf-16-be")


def sort_nodes(nodes: list[StorageNode]) -> list[StorageNode]:
    """Sort *nodes* in place by ``sort_key`` and return them."""
    nodes.sort(key=sort_key)
    return nodes


# =============================================================================
# Validation
# =============================================================================


def validate_path(path: str | None) -> str:
    """Validate a node path and return it normalized.

    Raises ``InputValidationError`` for empty paths, control characters,
    ``.``/``..`` segments and over-long paths or names.
    """
    if not path or not normalize_path(path):
        raise InputValidationError("The specified path is empty.")

    for ch in path:
        code = ord(ch)
        if code < 0x20 or code == 0x7F:
            raise InputValidationError(
                "The specified path is invalid.",
                {"path": path, "reason": f"control character 0x{code:02x}"},
            )

    if len(path) > MAX_PATH_LENGTH:
        raise InputValidationError(
            f"Path too long (max {MAX_PATH_LENGTH} characters).", {"path": path}
        )

    normalized = normalize_path(path)
    for segment in normalized.split(SEPARATOR):
        if segment in (".", ".."):
            raise InputValidationError(
                "The specified path is invalid.", {"path": path, "reason": "relative segment"}
            )
        if len(segment) > MAX_NAME_LENGTH:
            raise InputValidationError(
                f"Name too long (max {MAX_NAME_LENGTH} characters).", {"path": path}
            )
    return normalized


def validate_optional_path(path: str | None) -> str:
    """Like ``validate_path`` but an empty path (the root) is allowed."""
    if not normalize_path(path):
        return ""
    return validate_path(path)


def validate_name(name: str | None, kind: str = "node") -> str:
    """Validate a single path segment used as a new dir or file name."""
    if name and SEPARATOR in name:
        raise InputValidationError(f"The specified {kind} name is invalid.", {"name": name})
    return validate_path(name)
