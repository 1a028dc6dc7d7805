"""Tests for paths.py — normalization, hierarchy, key mapping, ordering, validation."""

from __future__ import annotations

import pytest

from keytree.exceptions import InputValidationError
from keytree.paths import (
    SORT_SENTINEL,
    classify_key,
    is_descendant_path,
    join_path,
    normalize_path,
    replace_prefix,
    sort_key,
    sort_nodes,
    split_hierarchy,
    split_path,
    strip_base,
    summarize_dir_paths,
    to_key,
    to_prefix,
    validate_name,
    validate_optional_path,
    validate_path,
)
from keytree.types import StorageNode, StorageNodeType


def make_node(path: str, node_type: StorageNodeType = StorageNodeType.DIR) -> StorageNode:
    dir_path, name = split_path(path)
    return StorageNode(id="", node_type=node_type, name=name, dir=dir_path, path=path)


def dir_node(path: str) -> StorageNode:
    return make_node(path, StorageNodeType.DIR)


def file_node(path: str) -> StorageNode:
    return make_node(path, StorageNodeType.FILE)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalizePath:
    @pytest.mark.parametrize(
        ("input_path", "expected"),
        [
            pytest.param(None, "", id="none"),
            pytest.param("", "", id="empty"),
            pytest.param("/", "", id="root"),
            pytest.param("/photos/", "photos", id="enclosing-slashes"),
            pytest.param("a//b", "a/b", id="double-slashes"),
            pytest.param("  /a/b/ ", "a/b", id="whitespace"),
            pytest.param("a/b.png", "a/b.png", id="already-normal"),
        ],
    )
    def test_normalize(self, input_path: str | None, expected: str):
        assert normalize_path(input_path) == expected


class TestJoinPath:
    def test_skips_empty_parts(self):
        assert join_path("users", "", None, "photos/a.png") == "users/photos/a.png"

    def test_all_empty_is_root(self):
        assert join_path("", None) == ""


class TestSplitPath:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            pytest.param("photos/family.png", ("photos", "family.png"), id="nested"),
            pytest.param("photos", ("", "photos"), id="top-level"),
            pytest.param("", ("", ""), id="root"),
            pytest.param("/a/b/c/", ("a/b", "c"), id="unnormalized"),
        ],
    )
    def test_split(self, path: str, expected: tuple[str, str]):
        assert split_path(path) == expected


class TestSplitHierarchy:
    def test_single_path(self):
        assert split_hierarchy("a/b/c") == ["a", "a/b", "a/b/c"]

    def test_deduplicates_across_inputs(self):
        assert split_hierarchy("a/b", "a/c", "a/b") == ["a", "a/b", "a/c"]

    def test_root_contributes_nothing(self):
        assert split_hierarchy("", "/") == []

    def test_ancestors_precede_descendants(self):
        result = split_hierarchy("x/y/z", "a")
        assert result.index("x") < result.index("x/y") < result.index("x/y/z")


class TestIsDescendantPath:
    @pytest.mark.parametrize(
        ("path", "ancestor", "expected"),
        [
            pytest.param("a/b", "a", True, id="child"),
            pytest.param("a/b/c", "a", True, id="grandchild"),
            pytest.param("a", "a", False, id="self"),
            pytest.param("ab", "a", False, id="sibling-with-prefix"),
            pytest.param("a", "", True, id="root-contains-all"),
            pytest.param("", "", False, id="root-not-below-root"),
        ],
    )
    def test_is_descendant(self, path: str, ancestor: str, expected: bool):
        assert is_descendant_path(path, ancestor) is expected


class TestReplacePrefix:
    def test_descendant(self):
        assert replace_prefix("photos/a.png", "photos", "archive/photos") == "archive/photos/a.png"

    def test_exact(self):
        assert replace_prefix("photos", "photos", "archive/photos") == "archive/photos"

    def test_not_under_prefix(self):
        with pytest.raises(ValueError, match="not under"):
            replace_prefix("photosx/a.png", "photos", "archive")


class TestSummarizeDirPaths:
    def test_keeps_deepest_branch(self):
        assert summarize_dir_paths(["d1/d11", "d1/d11/d111", "d2"]) == ["d1/d11/d111", "d2"]

    def test_drops_ancestor_seen_later(self):
        assert summarize_dir_paths(["a/b", "a"]) == ["a/b"]

    def test_drops_duplicates(self):
        assert summarize_dir_paths(["a", "/a/"]) == ["a"]


# ---------------------------------------------------------------------------
# Key mapping
# ---------------------------------------------------------------------------


class TestKeyMapping:
    @pytest.mark.parametrize(
        ("base", "path", "is_dir", "expected"),
        [
            pytest.param("users/u1", "photos", True, "users/u1/photos/", id="dir-with-base"),
            pytest.param(None, "photos/a.png", False, "photos/a.png", id="file-no-base"),
            pytest.param(None, "", True, "", id="root-no-base"),
            pytest.param("users/u1", "", True, "users/u1/", id="root-with-base"),
        ],
    )
    def test_to_key(self, base: str | None, path: str, is_dir: bool, expected: str):
        assert to_key(base, path, is_dir) == expected

    def test_to_prefix(self):
        assert to_prefix(None, None) == ""
        assert to_prefix("b", "d") == "b/d/"

    @pytest.mark.parametrize(
        ("key", "base", "expected"),
        [
            pytest.param("users/u1/photos/", "users/u1", "photos", id="dir"),
            pytest.param("users/u1/", "users/u1", "", id="base-itself"),
            pytest.param("a/b", None, "a/b", id="no-base"),
        ],
    )
    def test_strip_base(self, key: str, base: str | None, expected: str):
        assert strip_base(key, base) == expected

    def test_classify_key(self):
        assert classify_key("a/b/") is StorageNodeType.DIR
        assert classify_key("a/b") is StorageNodeType.FILE


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestSortKey:
    def test_file_key_uses_sentinel(self):
        assert sort_key(file_node("a/x.png")) == f"a{SORT_SENTINEL}x.png".encode("utf-16-be")

    def test_dir_key_is_path(self):
        assert sort_key(dir_node("a/b")) == "a/b".encode("utf-16-be")

    def test_dir_before_file_in_same_parent(self):
        assert sort_key(dir_node("a/zzz")) < sort_key(file_node("a/aaa.png"))

    def test_astral_dir_name_before_sibling_files(self):
        emoji_dir = dir_node("a/\U0001f4f7")
        assert sort_key(emoji_dir) < sort_key(file_node("a/aaa.png"))
        result = sort_nodes([file_node("a/aaa.png"), emoji_dir])
        assert [n.path for n in result] == ["a/\U0001f4f7", "a/aaa.png"]

    def test_deeper_paths_after_shallower_prefix(self):
        assert sort_key(dir_node("a")) < sort_key(dir_node("a/b")) < sort_key(dir_node("a/b/c"))

    def test_sort_nodes_depth_first(self):
        nodes = [
            file_node("z.txt"),
            file_node("a/x.png"),
            dir_node("b"),
            file_node("a.txt"),
            dir_node("a/b"),
            dir_node("a"),
        ]
        result = sort_nodes(nodes)
        assert result is nodes
        assert [n.path for n in result] == ["a", "a/b", "a/x.png", "b", "a.txt", "z.txt"]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidatePath:
    def test_valid_is_normalized(self):
        assert validate_path("/a//b/") == "a/b"

    @pytest.mark.parametrize(
        "path",
        [
            pytest.param("", id="empty"),
            pytest.param(None, id="none"),
            pytest.param("///", id="only-slashes"),
            pytest.param("a\nb", id="newline"),
            pytest.param("a\tb", id="tab"),
            pytest.param("a\x00b", id="nul"),
            pytest.param("a\x7fb", id="del"),
            pytest.param("a/../b", id="dotdot"),
            pytest.param("./a", id="dot"),
            pytest.param("a" * 4097, id="path-too-long"),
            pytest.param("a/" + "b" * 256, id="name-too-long"),
        ],
    )
    def test_invalid(self, path: str | None):
        with pytest.raises(InputValidationError):
            validate_path(path)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_path("")

    def test_detail(self):
        with pytest.raises(InputValidationError) as exc_info:
            validate_path("a\nb")
        assert exc_info.value.detail["path"] == "a\nb"


class TestValidateOptionalPath:
    @pytest.mark.parametrize("path", [None, "", "/", "  "])
    def test_root_allowed(self, path: str | None):
        assert validate_optional_path(path) == ""

    def test_normalizes(self):
        assert validate_optional_path("/a/b/") == "a/b"

    def test_control_character_rejected(self):
        with pytest.raises(InputValidationError):
            validate_optional_path("a\x7fb")


class TestValidateName:
    def test_valid(self):
        assert validate_name("photos") == "photos"

    def test_rejects_separator(self):
        with pytest.raises(InputValidationError, match="directory name"):
            validate_name("a/b", "directory")

    def test_rejects_empty(self):
        with pytest.raises(InputValidationError):
            validate_name("", "file")
