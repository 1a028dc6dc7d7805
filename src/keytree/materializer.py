"""NodeMaterializer — builds StorageNode values from raw store listings.

Nodes are never cached: every operation rebuilds a ``{path: StorageNode}``
map from the store, then pads in the directories that the listed paths
imply.  Padding is either virtual (``exists=False`` placeholders, no
writes) for read paths, or materializing (directory keys are written)
for operations that must leave a navigable tree behind.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .metadata import NodeMetadata, decode_metadata, encode_metadata, generate_node_id
from .paths import (
    classify_key,
    is_descendant_path,
    sort_nodes,
    split_hierarchy,
    split_path,
    strip_base,
    to_key,
    to_prefix,
)
from .types import StorageNode, StorageNodeType

if TYPE_CHECKING:
    from .config import StorageConfig
    from .types import ShareSettings
    from .store.protocol import ObjectStoreClient, StoredObject

logger = logging.getLogger(__name__)


def to_node(obj: StoredObject, base_path: str | None = None) -> StorageNode:
    """Convert a stored key to a node, stripping *base_path* from its path."""
    node_type = classify_key(obj.key)
    path = strip_base(obj.key, base_path)
    dir_path, name = split_path(path)
    metadata = decode_metadata(obj.metadata)
    is_file = node_type is StorageNodeType.FILE
    return StorageNode(
        id=metadata.id,
        node_type=node_type,
        name=name,
        dir=dir_path,
        path=path,
        content_type=(obj.content_type or "") if is_file else None,
        size=obj.size if is_file else None,
        share=metadata.share,
        exists=True,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


def virtual_node(path: str, node_type: StorageNodeType) -> StorageNode:
    """A node that is implied by other paths but has no key in the store."""
    dir_path, name = split_path(path)
    return StorageNode(
        id="",
        node_type=node_type,
        name=name,
        dir=dir_path,
        path=path,
        exists=False,
    )


class HierarchicalNodeStore:
    """Path-indexed view over a set of nodes and all of their ancestors.

    Built once per operation by ``NodeMaterializer.hierarchical_store`` and
    passed explicitly to the code that needs share inheritance lookups.
    """

    def __init__(self, node_map: dict[str, StorageNode]) -> None:
        self._node_map = node_map

    @property
    def nodes(self) -> list[StorageNode]:
        return list(self._node_map.values())

    def get(self, path: str) -> StorageNode | None:
        return self._node_map.get(path)

    def nearest_share_settings(self, path: str) -> ShareSettings | None:
        """Settings of the nearest ancestor of *path* that exists in the store.

        Returns ``None`` when no ancestor exists.
        """
        node = self._node_map.get(path)
        while node is not None:
            parent = self._node_map.get(node.dir) if node.path else None
            if parent is None:
                return None
            if parent.exists:
                return parent.share_settings
            node = parent
        return None


class NodeMaterializer:
    """Store-facing node construction, id assignment and ancestor padding."""

    def __init__(self, store: ObjectStoreClient, config: StorageConfig) -> None:
        self._store = store
        self._config = config

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_node(
        self,
        base_path: str,
        path: str,
        node_type: StorageNodeType,
    ) -> StorageNode:
        """Stat a single node.  Missing keys come back as virtual nodes."""
        key = to_key(base_path, path, node_type is StorageNodeType.DIR)
        obj = await self._store.get_object(key) if key else None
        if obj is None:
            return virtual_node(path, node_type)
        return to_node(obj, base_path)

    async def get_dir_node(self, base_path: str, path: str) -> StorageNode:
        return await self.get_node(base_path, path, StorageNodeType.DIR)

    async def get_file_node(self, base_path: str, path: str) -> StorageNode:
        return await self.get_node(base_path, path, StorageNodeType.FILE)

    async def list_descendant_map(
        self,
        base_path: str,
        dir_path: str = "",
    ) -> dict[str, StorageNode]:
        """Map of every stored node at or below *dir_path*.

        The key of the base directory itself is never included.
        """
        listing = await self._store.list_by_prefix(to_prefix(base_path, dir_path))
        result: dict[str, StorageNode] = {}
        for obj in listing.objects:
            node = to_node(obj, base_path)
            if not node.path:
                continue
            result[node.path] = node
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save_metadata(
        self,
        node: StorageNode,
        base_path: str,
        metadata: NodeMetadata,
    ) -> StorageNode:
        """Write *metadata* to the node's key and return the refreshed node."""
        key = to_key(base_path, node.path, node.is_dir)
        obj = await self._store.set_metadata(key, encode_metadata(metadata))
        return to_node(obj, base_path)

    async def assign_id(self, node: StorageNode, base_path: str) -> StorageNode:
        """Give *node* an id if it has none.  No-op for nodes that have one."""
        if node.id:
            return node
        new_id = generate_node_id(self._config.id_length)
        key = to_key(base_path, node.path, node.is_dir)
        obj = await self._store.set_metadata(key, {"id": new_id})
        logger.debug("Assigned id %s to %s", new_id, key)
        return to_node(obj, base_path)

    async def save_dir_node(
        self,
        base_path: str,
        dir_path: str,
        share: ShareSettings | None = None,
    ) -> StorageNode:
        """Ensure a directory key exists and carries an id.

        A newly written directory receives *share*; an existing one keeps
        its settings and only gets an id if it lacks one.
        """
        node = await self.get_dir_node(base_path, dir_path)
        if node.exists:
            return await self.assign_id(node, base_path)

        key = to_key(base_path, dir_path, is_dir=True)
        metadata = NodeMetadata(id=generate_node_id(self._config.id_length), share=share)
        obj = await self._store.put_key(key, b"", metadata=encode_metadata(metadata))
        logger.debug("Materialized directory %s", key)
        return to_node(obj, base_path)

    # ------------------------------------------------------------------
    # Padding
    # ------------------------------------------------------------------

    async def pad_ancestors(
        self,
        node_map: dict[str, StorageNode],
        top_path: str | None,
        base_path: str,
        *,
        materialize: bool = False,
    ) -> list[StorageNode]:
        """Fill in the directories implied by the nodes in *node_map*.

        Only directories strictly below *top_path* are padded.  With
        ``materialize=False`` missing directories are added as virtual
        nodes; with ``materialize=True`` their keys are written and
        existing directories without an id receive one.

        *node_map* is updated in place.  Returns the padded directory nodes.
        """
        top_path = top_path or ""
        dir_paths = split_hierarchy(*(node.dir for node in node_map.values()))
        if top_path:
            dir_paths = [p for p in dir_paths if is_descendant_path(p, top_path)]

        async def pad(dir_path: str) -> StorageNode | None:
            node = node_map.get(dir_path)
            if node is None:
                node = await self.get_dir_node(base_path, dir_path)
            elif not materialize or (node.exists and node.id):
                return None
            if materialize:
                if not node.exists:
                    node = await self.save_dir_node(base_path, dir_path)
                else:
                    node = await self.assign_id(node, base_path)
            return node

        padded = [n for n in await asyncio.gather(*(pad(p) for p in dir_paths)) if n is not None]
        for node in padded:
            node_map[node.path] = node
        if padded:
            logger.debug(
                "Padded %d directories (materialize=%s)", len(padded), materialize
            )
        return sort_nodes(padded)

    async def hierarchical_store(
        self,
        nodes: list[StorageNode],
        base_path: str,
    ) -> HierarchicalNodeStore:
        """Collect *nodes* plus every ancestor directory into a lookup store."""
        node_map = {node.path: node for node in nodes}
        missing = [p for p in split_hierarchy(*node_map) if p not in node_map]
        ancestors = await asyncio.gather(*(self.get_dir_node(base_path, p) for p in missing))
        for node in ancestors:
            node_map[node.path] = node
        return HierarchicalNodeStore(node_map)
