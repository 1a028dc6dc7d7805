"""StorageService — hierarchical node operations over a flat object store.

Stateless apart from its store client and configuration: every call
rebuilds the nodes it needs from the store, and fans out one store call
per affected key with ``asyncio.gather``.  The store has no multi-key
transactions, so a failure part way through a fan-out surfaces the first
error and leaves the remaining keys as they were; every write is safe to
repeat with the same arguments.

All operations accept a keyword-only ``base_path`` that scopes paths to
a sub-tree of the store (see ``UserStorage``).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .config import StorageConfig
from .exceptions import InputValidationError, NodeAlreadyExistsError, NodeNotFoundError
from .materializer import NodeMaterializer, to_node
from .metadata import NodeMetadata, generate_node_id
from .paths import (
    is_descendant_path,
    join_path,
    normalize_path,
    replace_prefix,
    sort_nodes,
    split_hierarchy,
    split_path,
    strip_base,
    to_key,
    to_prefix,
    validate_name,
    validate_optional_path,
    validate_path,
)
from .sharing import apply_share_input, is_readable, merge_share_settings, resolve_effective_share
from .types import ShareSettings, StorageUser

if TYPE_CHECKING:
    from .store.protocol import ObjectStoreClient
    from .types import ShareSettingsInput, SignedUploadUrlInput, StorageNode, UploadDataItem

logger = logging.getLogger(__name__)


class StorageService:
    """File and directory tree emulated on an ``ObjectStoreClient``.

    Directories are keys with a trailing ``/``; node ids and share settings
    live in two custom metadata fields per key.
    """

    def __init__(self, store: ObjectStoreClient, config: StorageConfig | None = None) -> None:
        self.store = store
        self.config = config or StorageConfig()
        self.nodes = NodeMaterializer(store, self.config)

    def _default_share(self) -> ShareSettings:
        return self.config.default_share.copy()

    async def _parent_share(self, base: str, dir_path: str) -> ShareSettings:
        """Own settings of the directory *dir_path*; the root yields the default."""
        if not dir_path:
            return self._default_share()
        node = await self.nodes.get_dir_node(base, dir_path)
        return node.share_settings

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_node(self, path: str, *, base_path: str | None = None) -> StorageNode:
        """Stat a file or directory.  A trailing ``/`` restricts to directories.

        Files take precedence when both ``path`` and ``path/`` exist.
        """
        base = normalize_path(base_path)
        if path.endswith("/"):
            return await self.nodes.get_dir_node(base, validate_path(path))
        path = validate_path(path)
        node = await self.nodes.get_file_node(base, path)
        if node.exists:
            return node
        return await self.nodes.get_dir_node(base, path)

    async def get_dir_node(self, path: str, *, base_path: str | None = None) -> StorageNode:
        return await self.nodes.get_dir_node(normalize_path(base_path), validate_path(path))

    async def get_file_node(self, path: str, *, base_path: str | None = None) -> StorageNode:
        return await self.nodes.get_file_node(normalize_path(base_path), validate_path(path))

    async def read_file(self, path: str, *, base_path: str | None = None) -> bytes:
        base = normalize_path(base_path)
        path = validate_path(path)
        key = to_key(base, path, is_dir=False)
        if not await self.store.exists(key):
            raise NodeNotFoundError(f"File not found: {path}")
        return await self.store.read_key(key)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_descendants(
        self,
        dir_path: str | None = None,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Every node at or below *dir_path*, with implied directories padded in.

        Missing directories appear as virtual nodes (``exists=False``);
        nothing is written.  When *dir_path* has no keys at all, the
        nearest existing ancestor is returned instead.
        """
        base = normalize_path(base_path)
        dir_path = validate_optional_path(dir_path)

        node_map = await self.nodes.list_descendant_map(base, dir_path)
        if dir_path and not node_map:
            ancestors = split_hierarchy(dir_path)[:-1]
            candidates = await asyncio.gather(
                *(self.nodes.get_dir_node(base, p) for p in ancestors)
            )
            existing = [node for node in candidates if node.exists]
            if existing:
                nearest = existing[-1]
                node_map[nearest.path] = nearest

        await self.nodes.pad_ancestors(node_map, None, base)
        return sort_nodes(list(node_map.values()))

    async def list_children(
        self,
        dir_path: str | None = None,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """The directory at *dir_path* and its immediate children.

        Child directories that are only implied by deeper keys are written
        to the store, and nodes without an id receive one.
        """
        base = normalize_path(base_path)
        dir_path = validate_optional_path(dir_path)

        listing = await self.store.list_by_prefix(to_prefix(base, dir_path), "/")
        listed = [node for node in (to_node(obj, base) for obj in listing.objects) if node.path]
        prefix_paths = [strip_base(p, base) for p in listing.prefixes]
        listed_paths = {node.path for node in listed}

        results = await asyncio.gather(
            *(self.nodes.assign_id(node, base) for node in listed),
            *(self.nodes.save_dir_node(base, p) for p in prefix_paths if p not in listed_paths),
        )
        node_map = {node.path: node for node in results}

        if dir_path and node_map and dir_path not in node_map:
            node_map[dir_path] = await self.nodes.save_dir_node(base, dir_path)
        return sort_nodes(list(node_map.values()))

    async def get_hierarchical_nodes(
        self,
        path: str,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """The node at *path* plus every ancestor directory, root first.

        Ancestors are materialized.  When the node itself does not exist,
        only its existing ancestors and the gaps between them are returned.
        """
        base = normalize_path(base_path)
        node = await self.get_node(path, base_path=base)
        ancestors = await asyncio.gather(
            *(self.nodes.get_dir_node(base, p) for p in split_hierarchy(node.path)[:-1])
        )

        if node.exists:
            node = await self.nodes.assign_id(node, base)
            node_map = {n.path: n for n in (*ancestors, node)}
        else:
            node_map = {n.path: n for n in ancestors if n.exists}
        if not node_map:
            return []

        await self.nodes.pad_ancestors(node_map, None, base, materialize=True)
        return sort_nodes(list(node_map.values()))

    async def get_ancestor_dirs(
        self,
        path: str,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        path = validate_path(path)
        nodes = await self.get_hierarchical_nodes(path, base_path=base_path)
        return [node for node in nodes if node.path != path]

    # ------------------------------------------------------------------
    # Directory creation
    # ------------------------------------------------------------------

    async def create_dirs(
        self,
        dir_paths: list[str],
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Create every directory in *dir_paths* along with missing ancestors.

        New directories take the settings of their nearest existing
        ancestor; directories without one get ``config.default_share``.
        Returns only the directories that were created.
        """
        base = normalize_path(base_path)
        paths = split_hierarchy(*(validate_path(p) for p in dir_paths))

        dir_nodes = await asyncio.gather(*(self.nodes.get_dir_node(base, p) for p in paths))
        hierarchy = await self.nodes.hierarchical_store(list(dir_nodes), base)

        async def create(node: StorageNode) -> StorageNode | None:
            if node.exists:
                return None
            share = hierarchy.nearest_share_settings(node.path)
            if share is None:
                share = self._default_share()
            return await self.nodes.save_dir_node(base, node.path, share=share)

        created = [n for n in await asyncio.gather(*(create(n) for n in dir_nodes)) if n]
        if created:
            logger.info("Created %d directories under %r", len(created), base or "/")
        return sort_nodes(created)

    # ------------------------------------------------------------------
    # Move / rename
    # ------------------------------------------------------------------

    async def move_dir(
        self,
        from_dir_path: str,
        to_dir_path: str,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Move a directory and everything below it to *to_dir_path*.

        The destination's parent must exist.  An existing destination is
        merged into; colliding keys are overwritten.  The directory's share
        settings are re-parented onto the destination parent with
        ``merge_share_settings``; descendants follow the directory.
        """
        base = normalize_path(base_path)
        from_dir_path = validate_path(from_dir_path)
        to_dir_path = validate_path(to_dir_path)
        if from_dir_path == to_dir_path:
            raise InputValidationError(
                "Source and destination are the same.", {"path": from_dir_path}
            )
        if is_descendant_path(to_dir_path, from_dir_path):
            raise InputValidationError(
                "Cannot move a directory into its own subtree.",
                {"from": from_dir_path, "to": to_dir_path},
            )
        if is_descendant_path(from_dir_path, to_dir_path):
            raise InputValidationError(
                "Cannot move a directory onto its own ancestor.",
                {"from": from_dir_path, "to": to_dir_path},
            )

        node_map = await self.nodes.list_descendant_map(base, from_dir_path)
        if not node_map:
            raise NodeNotFoundError(f"Directory not found: {from_dir_path}")

        to_parent_path = split_path(to_dir_path)[0]
        if to_parent_path:
            to_parent = await self.nodes.get_dir_node(base, to_parent_path)
            if not to_parent.exists:
                raise NodeNotFoundError(f"Destination directory not found: {to_parent_path}")
            to_share = to_parent.share_settings
        else:
            to_share = self._default_share()
        from_share = await self._parent_share(base, split_path(from_dir_path)[0])

        await self.nodes.pad_ancestors(node_map, from_dir_path, base, materialize=True)
        dir_node = node_map.pop(from_dir_path, None)
        if dir_node is None:
            dir_node = await self.nodes.save_dir_node(base, from_dir_path)

        async def move(
            node: StorageNode, old_parent: ShareSettings, new_parent: ShareSettings
        ) -> StorageNode:
            new_path = replace_prefix(node.path, from_dir_path, to_dir_path)
            obj = await self.store.move_key(
                to_key(base, node.path, node.is_dir),
                to_key(base, new_path, node.is_dir),
            )
            moved = to_node(obj, base)
            merged = merge_share_settings(moved.share_settings, old_parent, new_parent)
            metadata = NodeMetadata(
                id=moved.id or generate_node_id(self.config.id_length), share=merged
            )
            return await self.nodes.save_metadata(moved, base, metadata)

        # Descendants are re-parented from the directory's old settings to its new ones.
        old_dir_share = dir_node.share.copy() if dir_node.share is not None else from_share
        moved_dir = await move(dir_node, from_share, to_share)
        new_dir_share = moved_dir.share_settings
        logger.debug("Moving %d descendants of %s", len(node_map), from_dir_path)
        descendants = await asyncio.gather(
            *(move(n, old_dir_share, new_dir_share) for n in node_map.values())
        )

        logger.info(
            "Moved directory %s -> %s (%d nodes)",
            from_dir_path,
            to_dir_path,
            len(descendants) + 1,
        )
        return sort_nodes([moved_dir, *descendants])

    async def move_file(
        self,
        from_file_path: str,
        to_file_path: str,
        *,
        base_path: str | None = None,
    ) -> StorageNode:
        """Move one file.  The destination directory must exist.

        An existing file at the destination is overwritten.
        """
        base = normalize_path(base_path)
        from_file_path = validate_path(from_file_path)
        to_file_path = validate_path(to_file_path)
        if from_file_path == to_file_path:
            raise InputValidationError(
                "Source and destination are the same.", {"path": from_file_path}
            )

        file_node = await self.nodes.get_file_node(base, from_file_path)
        if not file_node.exists:
            raise NodeNotFoundError(f"File not found: {from_file_path}")

        to_dir_path = split_path(to_file_path)[0]
        if to_dir_path:
            to_dir = await self.nodes.get_dir_node(base, to_dir_path)
            if not to_dir.exists:
                raise NodeNotFoundError(f"Destination directory not found: {to_dir_path}")
            to_share = to_dir.share_settings
        else:
            to_share = self._default_share()
        from_share = await self._parent_share(base, file_node.dir)

        obj = await self.store.move_key(
            to_key(base, from_file_path, is_dir=False),
            to_key(base, to_file_path, is_dir=False),
        )
        moved = to_node(obj, base)
        merged = merge_share_settings(moved.share_settings, from_share, to_share)
        metadata = NodeMetadata(id=moved.id or generate_node_id(self.config.id_length), share=merged)
        result = await self.nodes.save_metadata(moved, base, metadata)

        logger.info("Moved file %s -> %s", from_file_path, to_file_path)
        return result

    async def rename_dir(
        self,
        dir_path: str,
        new_name: str,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Rename a directory in place.  Refuses to overwrite a sibling."""
        base = normalize_path(base_path)
        dir_path = validate_path(dir_path)
        new_name = validate_name(new_name, "directory")
        to_dir_path = join_path(split_path(dir_path)[0], new_name)
        if to_dir_path == dir_path:
            raise InputValidationError("The new name is the same as the current name.")

        existing = await self.nodes.get_dir_node(base, to_dir_path)
        if existing.exists:
            raise NodeAlreadyExistsError(
                f"A directory named {new_name!r} already exists.", {"path": to_dir_path}
            )
        return await self.move_dir(dir_path, to_dir_path, base_path=base)

    async def rename_file(
        self,
        file_path: str,
        new_name: str,
        *,
        base_path: str | None = None,
    ) -> StorageNode:
        """Rename a file in place.  Refuses to overwrite a sibling."""
        base = normalize_path(base_path)
        file_path = validate_path(file_path)
        new_name = validate_name(new_name, "file")
        to_file_path = join_path(split_path(file_path)[0], new_name)
        if to_file_path == file_path:
            raise InputValidationError("The new name is the same as the current name.")

        existing = await self.nodes.get_file_node(base, to_file_path)
        if existing.exists:
            raise NodeAlreadyExistsError(
                f"A file named {new_name!r} already exists.", {"path": to_file_path}
            )
        return await self.move_file(file_path, to_file_path, base_path=base)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def remove_dirs(
        self,
        dir_paths: list[str],
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Delete directories and every key below them.

        Paths are processed one after another; keys within a path are
        deleted in parallel.  Missing paths contribute nothing.
        """
        base = normalize_path(base_path)
        paths = [validate_optional_path(p) for p in dir_paths]
        removed: list[StorageNode] = []
        for dir_path in paths:
            if not dir_path:
                continue
            node_map = await self.nodes.list_descendant_map(base, dir_path)
            nodes = list(node_map.values())
            await asyncio.gather(
                *(self.store.delete_key(to_key(base, n.path, n.is_dir)) for n in nodes)
            )
            if nodes:
                logger.info("Removed directory %s (%d keys)", dir_path, len(nodes))
            removed.extend(nodes)
        return sort_nodes(removed)

    async def remove_files(
        self,
        file_paths: list[str],
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Delete files in parallel.  Returns the removed files in input order."""
        base = normalize_path(base_path)
        paths = [p for p in dict.fromkeys(validate_optional_path(p) for p in file_paths) if p]

        async def remove(path: str) -> StorageNode | None:
            key = to_key(base, path, is_dir=False)
            obj = await self.store.get_object(key)
            if obj is None:
                return None
            await self.store.delete_key(key)
            return to_node(obj, base)

        removed = [n for n in await asyncio.gather(*(remove(p) for p in paths)) if n]
        if removed:
            logger.info("Removed %d files", len(removed))
        return removed

    # ------------------------------------------------------------------
    # Share settings
    # ------------------------------------------------------------------

    async def set_share_settings(
        self,
        path: str,
        settings: ShareSettingsInput | None,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Set or clear (``None``) the share settings of a file or directory."""
        base = normalize_path(base_path)
        path = validate_path(path)
        file_node = await self.nodes.get_file_node(base, path)
        if file_node.exists:
            return [await self.set_file_share_settings(path, settings, base_path=base)]
        return await self.set_dir_share_settings(path, settings, base_path=base)

    async def set_dir_share_settings(
        self,
        dir_path: str,
        settings: ShareSettingsInput | None,
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Update a directory and re-parent every descendant's settings.

        Descendants that tracked the old settings follow the new ones;
        explicit overrides are kept, minus users granted only by the old
        settings.  Returns ``[]`` when nothing exists at *dir_path*.
        """
        base = normalize_path(base_path)
        dir_path = validate_path(dir_path)

        node_map = await self.nodes.list_descendant_map(base, dir_path)
        if not node_map:
            return []
        await self.nodes.pad_ancestors(node_map, dir_path, base, materialize=True)
        dir_node = node_map.pop(dir_path, None)
        if dir_node is None:
            dir_node = await self.nodes.save_dir_node(base, dir_path)

        old_share = dir_node.share_settings
        new_share = apply_share_input(old_share, settings)
        dir_node = await self.nodes.save_metadata(
            dir_node,
            base,
            NodeMetadata(id=dir_node.id or generate_node_id(self.config.id_length), share=new_share),
        )

        async def update(node: StorageNode) -> StorageNode:
            merged = merge_share_settings(node.share_settings, old_share, new_share)
            metadata = NodeMetadata(
                id=node.id or generate_node_id(self.config.id_length), share=merged
            )
            return await self.nodes.save_metadata(node, base, metadata)

        descendants = await asyncio.gather(*(update(n) for n in node_map.values()))
        logger.info(
            "Updated share settings of %s (%d descendants)", dir_path, len(descendants)
        )
        return sort_nodes([dir_node, *descendants])

    async def set_file_share_settings(
        self,
        file_path: str,
        settings: ShareSettingsInput | None,
        *,
        base_path: str | None = None,
    ) -> StorageNode:
        base = normalize_path(base_path)
        file_path = validate_path(file_path)
        node = await self.nodes.get_file_node(base, file_path)
        if not node.exists:
            raise NodeNotFoundError(f"File not found: {file_path}")

        share = apply_share_input(ShareSettings(), settings)
        metadata = NodeMetadata(id=node.id or generate_node_id(self.config.id_length), share=share)
        result = await self.nodes.save_metadata(node, base, metadata)
        logger.info("Updated share settings of %s", file_path)
        return result

    async def get_effective_share_settings(
        self,
        path: str,
        *,
        base_path: str | None = None,
    ) -> ShareSettings:
        """Settings in force at *path*, following inheritance."""
        base = normalize_path(base_path)
        node = await self.get_node(path, base_path=base)
        ancestors = await asyncio.gather(
            *(self.nodes.get_dir_node(base, p) for p in split_hierarchy(node.path)[:-1])
        )
        return resolve_effective_share([*ancestors, node], self._default_share())

    async def can_read(
        self,
        path: str,
        uid: str | None = None,
        *,
        is_admin: bool = False,
        base_path: str | None = None,
        owner_base: str | None = None,
    ) -> bool:
        """Whether *uid* may read *path*.

        *owner_base* is the caller's own base directory; anything inside
        it is readable by the caller.
        """
        base = normalize_path(base_path)
        full_path = join_path(base, validate_path(path))
        owner_base = normalize_path(owner_base)
        is_owner = bool(owner_base) and (
            full_path == owner_base or is_descendant_path(full_path, owner_base)
        )
        settings = await self.get_effective_share_settings(path, base_path=base)
        return is_readable(settings, uid, is_admin=is_admin, is_owner=is_owner)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def issue_upload_urls(
        self,
        inputs: list[SignedUploadUrlInput],
        *,
        base_path: str | None = None,
    ) -> list[str]:
        """One pre-signed upload URL per input, in input order."""
        base = normalize_path(base_path)
        keys = [to_key(base, validate_path(i.file_path), is_dir=False) for i in inputs]
        return list(
            await asyncio.gather(
                *(
                    self.store.create_signed_upload_url(key, i.content_type)
                    for key, i in zip(keys, inputs, strict=True)
                )
            )
        )

    async def handle_uploaded_files(
        self,
        file_paths: list[str],
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Reconcile files written directly to the store.

        Each file receives an id and, when it arrived without settings,
        the settings of its nearest existing ancestor.  Missing ancestor
        directories are created.  Returns the files and the created
        directories.
        """
        base = normalize_path(base_path)
        paths = list(dict.fromkeys(validate_path(p) for p in file_paths))

        file_nodes = await asyncio.gather(*(self.nodes.get_file_node(base, p) for p in paths))
        missing = [n.path for n in file_nodes if not n.exists]
        if missing:
            raise NodeNotFoundError(f"Uploaded file not found: {', '.join(missing)}")

        hierarchy = await self.nodes.hierarchical_store(list(file_nodes), base)

        async def reconcile(node: StorageNode) -> StorageNode | None:
            share = node.share
            if share is None:
                share = hierarchy.nearest_share_settings(node.path) or self._default_share()
            if node.is_dir:
                if node.exists:
                    return None
                return await self.nodes.save_dir_node(base, node.path, share=share)
            metadata = NodeMetadata(id=node.id or generate_node_id(self.config.id_length), share=share)
            return await self.nodes.save_metadata(node, base, metadata)

        results = await asyncio.gather(*(reconcile(n) for n in hierarchy.nodes))
        reconciled = [n for n in results if n is not None]
        logger.info("Reconciled %d uploaded files", len(paths))
        return sort_nodes(reconciled)

    async def upload_as_files(
        self,
        items: list[UploadDataItem],
        *,
        base_path: str | None = None,
    ) -> list[StorageNode]:
        """Write in-memory payloads as files.  Returns the files in input order."""
        base = normalize_path(base_path)
        paths = [validate_path(item.path) for item in items]
        await asyncio.gather(
            *(
                self.store.put_key(
                    to_key(base, path, is_dir=False),
                    item.data,
                    content_type=item.content_type,
                )
                for path, item in zip(paths, items, strict=True)
            )
        )
        reconciled = await self.handle_uploaded_files(paths, base_path=base)
        by_path = {n.path: n for n in reconciled if not n.is_dir}
        return [by_path[path] for path in paths]

    # ------------------------------------------------------------------
    # User directories
    # ------------------------------------------------------------------

    def get_user_dir_path(self, user: StorageUser) -> str:
        """Base path of *user*'s directory."""
        if not user.dir_name:
            raise InputValidationError(
                "The user has no storage directory assigned.", {"uid": user.uid}
            )
        return join_path(self.config.users_dir, validate_name(user.dir_name, "directory"))

    async def assign_user_dir(self, user: StorageUser) -> StorageUser:
        """Ensure *user* has a directory, generating a name when needed."""
        dir_name = user.dir_name or generate_node_id(self.config.id_length)
        assigned = StorageUser(uid=user.uid, dir_name=dir_name)
        dir_path = self.get_user_dir_path(assigned)
        created = await self.create_dirs([dir_path])
        if created:
            logger.info("Assigned storage directory %s to user %s", dir_path, user.uid)
        return assigned
