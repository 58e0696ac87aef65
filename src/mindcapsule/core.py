"""Core business logic for mindcapsule.

This module composes the registry, vertex store and reference materializer
into the operations used by the CLI and the MCP server.

Design principles:
- All functions are async for consistency with the MCP layer
- The registry and store are process-wide singletons, created lazily from
  the configured data directory and dropped by reset()
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from . import shell
from .bootstrap import BootstrapResult, ensure_workspace_structure
from .config import (
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_TREE_DEPTH,
    VERTEX_ID_PREFIX,
    WORKSPACE_ID_PREFIX,
    get_data_dir,
)
from .errors import InvalidPathError, NotFoundError
from .models import (
    ChildrenBehavior,
    Reference,
    Vertex,
    VertexLayout,
    Workspace,
    new_id,
)
from .registry import WorkspaceRegistry
from .settings import clear_settings_cache, get_settings
from .vertex_store import VertexIndex, VertexStore

log = logging.getLogger(__name__)

_registry: WorkspaceRegistry | None = None
_store: VertexStore | None = None

# Distinguishes "leave unchanged" from an explicit None in update calls
_UNSET: Any = object()


def get_registry() -> WorkspaceRegistry:
    """Get the registry for the configured data directory (lazy)."""
    global _registry
    if _registry is None:
        _registry = WorkspaceRegistry.from_data_dir(get_data_dir())
    return _registry


def get_store() -> VertexStore:
    """Get the vertex store, with an index unless settings disable it."""
    global _store
    if _store is None:
        index = VertexIndex() if get_settings().use_index else None
        _store = VertexStore(get_registry(), index=index)
    return _store


def reset() -> None:
    """Drop the cached registry and store (e.g. after the data dir changes)."""
    global _registry, _store
    _registry = None
    _store = None
    clear_settings_cache()


def _invalidate_index() -> None:
    if _store is not None and _store.index is not None:
        _store.index.invalidate()


# ─────────────────────────────────────────────────────────────────────────────
# Workspaces
# ─────────────────────────────────────────────────────────────────────────────


async def create_workspace(
    name: str,
    path: str,
    workspace_id: str | None = None,
    purpose: str | None = None,
    tags: list[str] | None = None,
) -> Workspace:
    """Register a new workspace rooted at path.

    Raises:
        InvalidPathError: If path is not absolute.
        AlreadyExistsError: If workspace_id is already registered.
    """
    workspace = Workspace(
        id=workspace_id or new_id(WORKSPACE_ID_PREFIX),
        name=name,
        path=path,
        purpose=purpose,
        tags=tags or [],
    )
    created = get_registry().create(workspace)
    # The new root may already hold vertices
    _invalidate_index()
    return created


async def list_workspaces() -> list[Workspace]:
    return get_registry().list()


async def get_workspace(workspace_id: str) -> Workspace:
    """Read a workspace.

    Raises:
        NotFoundError: If the workspace is unknown or has no metadata.
    """
    workspace = get_registry().get(workspace_id)
    if workspace is None:
        raise NotFoundError(f"Workspace {workspace_id} not found", {"id": workspace_id})
    return workspace


async def update_workspace(
    workspace_id: str,
    name: str | None = None,
    path: str | None = None,
    purpose: str | None = _UNSET,
    tags: list[str] | None = None,
) -> Workspace:
    """Change a workspace's name, root, purpose or tags."""
    workspace = await get_workspace(workspace_id)
    if name is not None:
        workspace.name = name
    if path is not None:
        workspace.path = path
    if purpose is not _UNSET:
        workspace.purpose = purpose
    if tags is not None:
        workspace.tags = tags

    updated = get_registry().update(workspace)
    if path is not None:
        _invalidate_index()
    return updated


async def remove_workspace(workspace_id: str) -> dict:
    """Delete a workspace from disk and from the registry."""
    root = get_registry().remove(workspace_id)
    _invalidate_index()
    return {"deleted": workspace_id, "path": str(root)}


async def init_workspace(path: str, name: str | None = None) -> BootstrapResult:
    """Create the workspace skeleton at path if it is missing."""
    if name:
        return ensure_workspace_structure(path, name=name)
    return ensure_workspace_structure(path)


async def select_workspace(picker: shell.FolderPicker) -> Path | None:
    """Pick, bootstrap and remember a workspace folder."""
    return shell.select_workspace_directory(picker, settings=get_settings())


# ─────────────────────────────────────────────────────────────────────────────
# Vertices
# ─────────────────────────────────────────────────────────────────────────────


async def _require_vertex(vertex_id: str) -> Vertex:
    vertex = get_store().get(vertex_id)
    if vertex is None:
        raise NotFoundError(f"Vertex {vertex_id} not found", {"id": vertex_id})
    return vertex


async def create_vertex(
    workspace_id: str,
    title: str,
    parent_id: str | None = None,
    vertex_id: str | None = None,
    kind: str | None = None,
    tags: list[str] | None = None,
    references: list[Reference] | None = None,
    children_behavior: ChildrenBehavior | None = None,
    default_tab: str | None = None,
    is_leaf: bool | None = None,
    thumbnail_path: str | None = None,
    thumbnail_alt: str | None = None,
) -> Vertex:
    """Create a vertex at the workspace root or beneath parent_id.

    When kind is omitted for a child, the parent's children_behavior decides it.
    """
    store = get_store()
    if kind is None and parent_id:
        parent = store.get(parent_id)
        if parent is not None and parent.children_behavior is not None:
            kind = parent.children_behavior.child_kind

    vertex = Vertex(
        id=vertex_id or new_id(VERTEX_ID_PREFIX),
        title=title,
        parent_id=parent_id,
        workspace_id=workspace_id,
        kind=kind,
        tags=tags or [],
        references=references,
        children_behavior=children_behavior,
        default_tab=default_tab,
        is_leaf=is_leaf,
        thumbnail_path=thumbnail_path,
        thumbnail_alt=thumbnail_alt,
    )
    return store.create(vertex)


async def get_vertex(vertex_id: str) -> Vertex | None:
    """Return the vertex with vertex_id, or None."""
    return get_store().get(vertex_id)


async def get_children(parent_id: str) -> list[Vertex]:
    return get_store().get_children(parent_id)


async def get_root_vertices(workspace_id: str) -> list[Vertex]:
    return get_store().get_root_vertices(workspace_id)


async def update_vertex(
    vertex_id: str,
    title: str | None = None,
    kind: str | None = None,
    tags: list[str] | None = None,
    children_behavior: ChildrenBehavior | None = None,
    children_layout: VertexLayout | None = _UNSET,
    default_tab: str | None = None,
    is_leaf: bool | None = None,
    thumbnail_path: str | None = _UNSET,
    thumbnail_alt: str | None = _UNSET,
) -> Vertex:
    """Change vertex properties; updated_at is bumped."""
    vertex = await _require_vertex(vertex_id)
    if title is not None:
        vertex.title = title
    if kind is not None:
        vertex.kind = kind
    if tags is not None:
        vertex.tags = tags
    if children_behavior is not None:
        vertex.children_behavior = children_behavior
    if children_layout is not _UNSET:
        vertex.children_layout = children_layout
    if default_tab is not None:
        vertex.default_tab = default_tab
    if is_leaf is not None:
        vertex.is_leaf = is_leaf
    if thumbnail_path is not _UNSET:
        vertex.thumbnail_path = thumbnail_path
    if thumbnail_alt is not _UNSET:
        vertex.thumbnail_alt = thumbnail_alt
    return await _save_vertex(vertex)


async def move_vertex(vertex_id: str, parent_id: str | None) -> Vertex:
    """Re-parent a vertex; None moves it to the workspace root."""
    vertex = await _require_vertex(vertex_id)
    vertex.parent_id = parent_id or None
    return await _save_vertex(vertex)


async def _save_vertex(vertex: Vertex) -> Vertex:
    vertex.updated_at = None  # Stamped with the current time by the store
    return get_store().update(vertex)


async def remove_vertex(vertex_id: str) -> dict:
    """Delete a vertex and everything beneath it."""
    removed = get_store().remove(vertex_id)
    return {"deleted": vertex_id, "path": str(removed)}


async def search_vertices(
    query: str,
    workspace_id: str | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[Vertex]:
    return get_store().search(query, workspace_id=workspace_id, limit=limit)


async def tree(workspace_id: str, depth: int = DEFAULT_TREE_DEPTH) -> dict:
    """Nested vertex tree of a workspace, with a vertex count."""
    nodes = get_store().tree(workspace_id, depth=depth)

    def _count(level: dict) -> int:
        return sum(1 + _count(node["children"]) for node in level.values())

    return {"workspace_id": workspace_id, "tree": nodes, "vertices": _count(nodes)}


# ─────────────────────────────────────────────────────────────────────────────
# References
# ─────────────────────────────────────────────────────────────────────────────


async def list_references(vertex_id: str) -> list[Reference]:
    vertex = await _require_vertex(vertex_id)
    return list(vertex.references or [])


async def add_reference(vertex_id: str, reference: Reference) -> Vertex:
    """Append a reference; the whole reference set is rewritten."""
    vertex = await _require_vertex(vertex_id)
    vertex.references = [*(vertex.references or []), reference]
    return await _save_vertex(vertex)


async def remove_reference(vertex_id: str, index: int) -> Vertex:
    """Drop the reference at index; later references shift down by one.

    Raises:
        NotFoundError: If index is out of range.
    """
    vertex = await _require_vertex(vertex_id)
    references = list(vertex.references or [])
    if not 0 <= index < len(references):
        raise NotFoundError(
            f"Vertex {vertex_id} has no reference at index {index}",
            {"id": vertex_id, "index": index, "count": len(references)},
        )
    del references[index]
    vertex.references = references
    return await _save_vertex(vertex)


# ─────────────────────────────────────────────────────────────────────────────
# Shell
# ─────────────────────────────────────────────────────────────────────────────


async def open_path(path: str, launcher: Callable[[str], object]) -> str:
    return str(shell.open_path(path, launcher))


async def open_url(url: str, launcher: Callable[[str], object]) -> str:
    return shell.open_external_url(url, launcher)


async def open_reference(
    vertex_id: str, index: int, launcher: Callable[[str], object]
) -> str:
    """Open a url, image or file reference of a vertex."""
    references = await list_references(vertex_id)
    if not 0 <= index < len(references):
        raise NotFoundError(
            f"Vertex {vertex_id} has no reference at index {index}",
            {"id": vertex_id, "index": index},
        )
    reference = references[index]
    if reference.type == "url":
        return await open_url(reference.url, launcher)
    if reference.type in ("image", "file"):
        return await open_path(reference.path, launcher)
    raise InvalidPathError(
        f"Reference {index} of {vertex_id} is a {reference.type} and cannot be opened",
        {"id": vertex_id, "index": index, "type": reference.type},
    )
