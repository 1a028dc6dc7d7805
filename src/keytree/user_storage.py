"""UserStorage — a StorageService bound to one user's base directory.

Every path a caller passes is relative to ``{users_dir}/{dir_name}``;
returned nodes carry paths relative to that directory as well.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import StorageService
    from .types import (
        ShareSettings,
        ShareSettingsInput,
        SignedUploadUrlInput,
        StorageNode,
        StorageUser,
        UploadDataItem,
    )


class UserStorage:
    """Per-user view over a ``StorageService``.

    The user must already have a directory name assigned (see
    ``StorageService.assign_user_dir``).
    """

    def __init__(self, service: StorageService, user: StorageUser) -> None:
        self._service = service
        self._user = user
        self._base_path = service.get_user_dir_path(user)

    @property
    def user(self) -> StorageUser:
        return self._user

    @property
    def base_path(self) -> str:
        return self._base_path

    async def get_node(self, path: str) -> StorageNode:
        return await self._service.get_node(path, base_path=self._base_path)

    async def read_file(self, path: str) -> bytes:
        return await self._service.read_file(path, base_path=self._base_path)

    async def list_descendants(self, dir_path: str | None = None) -> list[StorageNode]:
        return await self._service.list_descendants(dir_path, base_path=self._base_path)

    async def list_children(self, dir_path: str | None = None) -> list[StorageNode]:
        return await self._service.list_children(dir_path, base_path=self._base_path)

    async def get_hierarchical_nodes(self, path: str) -> list[StorageNode]:
        return await self._service.get_hierarchical_nodes(path, base_path=self._base_path)

    async def create_dirs(self, dir_paths: list[str]) -> list[StorageNode]:
        return await self._service.create_dirs(dir_paths, base_path=self._base_path)

    async def move_dir(self, from_dir_path: str, to_dir_path: str) -> list[StorageNode]:
        return await self._service.move_dir(
            from_dir_path, to_dir_path, base_path=self._base_path
        )

    async def move_file(self, from_file_path: str, to_file_path: str) -> StorageNode:
        return await self._service.move_file(
            from_file_path, to_file_path, base_path=self._base_path
        )

    async def rename_dir(self, dir_path: str, new_name: str) -> list[StorageNode]:
        return await self._service.rename_dir(dir_path, new_name, base_path=self._base_path)

    async def rename_file(self, file_path: str, new_name: str) -> StorageNode:
        return await self._service.rename_file(file_path, new_name, base_path=self._base_path)

    async def remove_dirs(self, dir_paths: list[str]) -> list[StorageNode]:
        return await self._service.remove_dirs(dir_paths, base_path=self._base_path)

    async def remove_files(self, file_paths: list[str]) -> list[StorageNode]:
        return await self._service.remove_files(file_paths, base_path=self._base_path)

    async def set_share_settings(
        self,
        path: str,
        settings: ShareSettingsInput | None,
    ) -> list[StorageNode]:
        return await self._service.set_share_settings(path, settings, base_path=self._base_path)

    async def get_effective_share_settings(self, path: str) -> ShareSettings:
        return await self._service.get_effective_share_settings(path, base_path=self._base_path)

    async def issue_upload_urls(self, inputs: list[SignedUploadUrlInput]) -> list[str]:
        return await self._service.issue_upload_urls(inputs, base_path=self._base_path)

    async def handle_uploaded_files(self, file_paths: list[str]) -> list[StorageNode]:
        return await self._service.handle_uploaded_files(file_paths, base_path=self._base_path)

    async def upload_as_files(self, items: list[UploadDataItem]) -> list[StorageNode]:
        return await self._service.upload_as_files(items, base_path=self._base_path)
