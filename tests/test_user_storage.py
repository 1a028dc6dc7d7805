"""Tests for per-user directories and UserStorage scoping."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from keytree.exceptions import InputValidationError
from keytree.types import ShareSettingsInput, StorageUser, UploadDataItem
from keytree.user_storage import UserStorage

if TYPE_CHECKING:
    from keytree.service import StorageService

    from .conftest import RecordingObjectStore


@pytest.fixture
async def alice(service: StorageService) -> UserStorage:
    user = await service.assign_user_dir(StorageUser(uid="alice", dir_name="alice-home"))
    return UserStorage(service, user)


# ---------------------------------------------------------------------------
# User directories
# ---------------------------------------------------------------------------


class TestUserDirs:
    def test_dir_path(self, service: StorageService):
        assert service.get_user_dir_path(StorageUser("u1", "home1")) == "users/home1"

    def test_dir_path_requires_name(self, service: StorageService):
        with pytest.raises(InputValidationError, match="no storage directory"):
            service.get_user_dir_path(StorageUser("u1"))

    def test_dir_name_cannot_escape(self, service: StorageService):
        with pytest.raises(InputValidationError):
            service.get_user_dir_path(StorageUser("u1", "../other"))

    async def test_assign_generates_name(
        self, service: StorageService, store: RecordingObjectStore
    ):
        user = await service.assign_user_dir(StorageUser("u1"))
        assert user.uid == "u1"
        assert user.dir_name
        assert store.keys() == ["users/", f"users/{user.dir_name}/"]

    async def test_assign_keeps_existing_name(self, service: StorageService):
        user = await service.assign_user_dir(StorageUser("u1", "home1"))
        again = await service.assign_user_dir(user)
        assert again.dir_name == "home1"

    def test_user_storage_requires_dir(self, service: StorageService):
        with pytest.raises(InputValidationError):
            UserStorage(service, StorageUser("u1"))


# ---------------------------------------------------------------------------
# UserStorage
# ---------------------------------------------------------------------------


class TestUserStorage:
    async def test_base_path(self, alice: UserStorage):
        assert alice.base_path == "users/alice-home"
        assert alice.user.uid == "alice"

    async def test_paths_are_relative(self, alice: UserStorage, store: RecordingObjectStore):
        created = await alice.create_dirs(["docs"])
        assert [n.path for n in created] == ["docs"]
        assert "users/alice-home/docs/" in store.keys()

    async def test_listing_excludes_base_dir(self, alice: UserStorage):
        await alice.create_dirs(["docs"])
        await alice.upload_as_files([UploadDataItem(path="docs/a.txt", data=b"1")])
        assert [n.path for n in await alice.list_descendants()] == ["docs", "docs/a.txt"]
        assert [n.path for n in await alice.list_children()] == ["docs"]

    async def test_users_are_isolated(self, service: StorageService, alice: UserStorage):
        bob_user = await service.assign_user_dir(StorageUser(uid="bob", dir_name="bob-home"))
        bob = UserStorage(service, bob_user)
        await alice.create_dirs(["docs"])
        assert await bob.list_descendants() == []

    async def test_mutations(self, alice: UserStorage):
        await alice.create_dirs(["a", "b"])
        await alice.upload_as_files([UploadDataItem(path="a/x.txt", data=b"1")])
        await alice.move_file("a/x.txt", "b/x.txt")
        await alice.rename_file("b/x.txt", "y.txt")
        await alice.move_dir("b", "a/b")
        await alice.rename_dir("a/b", "c")
        assert await alice.read_file("a/c/y.txt") == b"1"
        removed = await alice.remove_files(["a/c/y.txt"])
        assert [n.path for n in removed] == ["a/c/y.txt"]
        removed = await alice.remove_dirs(["a"])
        assert [n.path for n in removed] == ["a", "a/c"]

    async def test_sharing(self, alice: UserStorage):
        await alice.create_dirs(["pub"])
        await alice.set_share_settings("pub", ShareSettingsInput(is_public=True))
        assert (await alice.get_effective_share_settings("pub")).is_public is True
        node = await alice.get_node("pub")
        assert node.exists

    async def test_uploads(self, alice: UserStorage, store: RecordingObjectStore):
        urls = await alice.issue_upload_urls([])
        assert urls == []
        await store.put_key("users/alice-home/up/f.png", b"1")
        nodes = await alice.handle_uploaded_files(["up/f.png"])
        assert [n.path for n in nodes] == ["up", "up/f.png"]
        hierarchy = await alice.get_hierarchical_nodes("up/f.png")
        assert [n.path for n in hierarchy] == ["up", "up/f.png"]
