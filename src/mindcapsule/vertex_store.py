"""Directory-backed vertex tree.

Each vertex is a directory holding vertex.json. A root vertex lives directly
under its workspace root; any other vertex lives in its parent's `children`
directory:

    <workspace-root>/
        <vertex-id>/
            vertex.json
            children/
                <child-id>/
                    vertex.json
                    ...
            references/
                ...

There is no persistent index. Lookup by id walks the registered workspaces
depth-first (registry order, directory entries sorted by name, never
descending into `references`) and the first vertex.json carrying the id
wins. An optional in-memory VertexIndex caches the result of one full walk
in the same order, so first-match semantics hold with or without it.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from .config import (
    CHILDREN_DIRNAME,
    REFERENCES_DIRNAME,
    VERTEX_META_FILENAME,
)
from .errors import (
    AlreadyExistsError,
    InvalidPathError,
    NotFoundError,
    ParentNotFoundError,
    StorageError,
    UnregisteredWorkspaceError,
)
from .jsonio import read_json, read_model, write_model
from .models import Vertex
from .paths import validate_entry_name
from .references import hydrate_references, rebase_asset_paths, write_references
from .registry import WorkspaceRegistry

log = logging.getLogger(__name__)


def vertex_meta_path(vertex_dir: Path) -> Path:
    return vertex_dir / VERTEX_META_FILENAME


def _sorted_subdirs(directory: Path) -> list[Path]:
    try:
        # Symlinked directories are never followed
        return sorted(
            entry
            for entry in directory.iterdir()
            if entry.is_dir() and not entry.is_symlink()
        )
    except FileNotFoundError:
        return []
    except OSError as e:
        raise StorageError.from_os_error("list", directory, e) from e


def _read_vertex_id(vertex_dir: Path) -> str | None:
    data = read_json(vertex_meta_path(vertex_dir))
    if isinstance(data, dict) and isinstance(data.get("id"), str):
        return data["id"]
    return None


def iter_vertex_dirs(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield (id, directory) for every vertex below root, depth-first."""
    for entry in _sorted_subdirs(root):
        if entry.name == REFERENCES_DIRNAME:
            continue
        if vertex_meta_path(entry).is_file():
            vertex_id = _read_vertex_id(entry)
            if vertex_id is not None:
                yield vertex_id, entry
        yield from iter_vertex_dirs(entry)


def find_vertex_dir(root: Path, vertex_id: str) -> Path | None:
    """Depth-first search below root for the directory of vertex_id."""
    for found_id, vertex_dir in iter_vertex_dirs(root):
        if found_id == vertex_id:
            return vertex_dir
    return None


def _is_within(path: Path, ancestor: Path) -> bool:
    return path == ancestor or ancestor in path.parents


class VertexIndex:
    """In-memory id -> directory cache over all registered workspaces.

    Built lazily by one full walk. Every directory seen for an id is kept in
    walk order and lookups return the first, matching the uncached scan; when
    that one is removed the next duplicate takes its place. A cached entry
    that no longer points at a matching vertex.json drops the whole cache, as
    does a change in the set of registered roots.
    """

    def __init__(self) -> None:
        self._paths: dict[str, list[tuple[str, Path]]] | None = None
        self._roots: list[tuple[str, Path]] = []

    @property
    def is_built(self) -> bool:
        return self._paths is not None

    def build(self, roots: list[tuple[str, Path]]) -> None:
        paths: dict[str, list[tuple[str, Path]]] = {}
        for ws_id, root in roots:
            for vertex_id, vertex_dir in iter_vertex_dirs(root):
                paths.setdefault(vertex_id, []).append((ws_id, vertex_dir))
        self._paths = paths
        self._roots = list(roots)
        log.debug("Indexed %d vertices across %d workspace(s)", len(paths), len(roots))

    def lookup(
        self, vertex_id: str, roots: list[tuple[str, Path]]
    ) -> tuple[str, Path] | None:
        if self._paths is not None and self._roots != roots:
            log.debug("Registered workspaces changed; rebuilding index")
            self.invalidate()
        if self._paths is None:
            self.build(roots)
        assert self._paths is not None
        entries = self._paths.get(vertex_id)
        if not entries:
            return None
        ws_id, vertex_dir = entries[0]
        if vertex_meta_path(vertex_dir).is_file() and _read_vertex_id(vertex_dir) == vertex_id:
            return ws_id, vertex_dir
        log.debug("Stale index entry for %s at %s; dropping index", vertex_id, vertex_dir)
        self.invalidate()
        return None

    def record(self, vertex_id: str, workspace_id: str, vertex_dir: Path) -> None:
        if self._paths is None:
            return
        if vertex_id in self._paths:
            # A duplicate id: only a fresh walk knows which copy comes first
            self.invalidate()
            return
        self._paths[vertex_id] = [(workspace_id, vertex_dir)]

    def forget(self, vertex_dir: Path) -> None:
        """Drop every entry at or below vertex_dir."""
        if self._paths is None:
            return
        remaining: dict[str, list[tuple[str, Path]]] = {}
        for vertex_id, entries in self._paths.items():
            kept = [(ws_id, path) for ws_id, path in entries if not _is_within(path, vertex_dir)]
            if kept:
                remaining[vertex_id] = kept
        self._paths = remaining

    def invalidate(self) -> None:
        self._paths = None


class VertexStore:
    """CRUD over the vertex trees of all registered workspaces."""

    def __init__(self, registry: WorkspaceRegistry, index: VertexIndex | None = None):
        self.registry = registry
        self.index = index

    # ─────────────────────────────────────────────────────────────────────
    # Lookup helpers
    # ─────────────────────────────────────────────────────────────────────

    def locate(self, vertex_id: str) -> tuple[str, Path] | None:
        """Find (workspace id, directory) of the first vertex with vertex_id."""
        roots = self.registry.roots()
        if self.index is not None:
            hit = self.index.lookup(vertex_id, roots)
            if hit is not None:
                return hit

        # Cache miss or no cache: the directories are authoritative
        for ws_id, root in roots:
            vertex_dir = find_vertex_dir(root, vertex_id)
            if vertex_dir is not None:
                if self.index is not None:
                    log.debug("Vertex %s missing from index; dropping index", vertex_id)
                    self.index.invalidate()
                return ws_id, vertex_dir
        return None

    def _locate_in(self, workspace_id: str, root: Path, vertex_id: str) -> Path | None:
        if self.index is not None:
            hit = self.index.lookup(vertex_id, self.registry.roots())
            if hit is not None and hit[0] == workspace_id:
                return hit[1]
        return find_vertex_dir(root, vertex_id)

    def load(self, vertex_dir: Path) -> Vertex:
        """Read the vertex stored in vertex_dir, references hydrated."""
        vertex = read_model(vertex_meta_path(vertex_dir), Vertex)
        vertex.asset_directory = str(vertex_dir)
        if vertex.references:
            hydrate_references(vertex_dir, vertex.references)
        return vertex

    def _list_vertices(self, directory: Path) -> list[Vertex]:
        vertices = []
        for entry in _sorted_subdirs(directory):
            if entry.name == REFERENCES_DIRNAME:
                continue
            if vertex_meta_path(entry).is_file():
                vertices.append(self.load(entry))
        return vertices

    # ─────────────────────────────────────────────────────────────────────
    # CRUD
    # ─────────────────────────────────────────────────────────────────────

    def create(self, vertex: Vertex) -> Vertex:
        """Create a vertex directory beneath its workspace root or parent.

        Raises:
            MissingWorkspaceIdError: If the vertex has no workspace_id.
            UnregisteredWorkspaceError: If the workspace is not registered.
            ParentNotFoundError: If parent_id is set but not in the workspace.
            AlreadyExistsError: If the target directory already exists.
        """
        validate_entry_name(vertex.id)
        root = self.registry.resolve_root(vertex.workspace_id)
        assert vertex.workspace_id is not None

        if vertex.parent_id:
            parent_dir = self._locate_in(vertex.workspace_id, root, vertex.parent_id)
            if parent_dir is None:
                raise ParentNotFoundError(
                    f"Parent vertex {vertex.parent_id} not found in workspace "
                    f"{vertex.workspace_id}",
                    {"parent_id": vertex.parent_id, "workspace_id": vertex.workspace_id},
                )
            target = parent_dir / CHILDREN_DIRNAME / vertex.id
        else:
            target = root / vertex.id

        if target.exists():
            raise AlreadyExistsError(
                f"Vertex {vertex.id} already exists at {target}",
                {"id": vertex.id, "path": str(target)},
            )

        vertex.stamp()
        vertex.asset_directory = str(target)
        try:
            target.mkdir(parents=True)
            (target / CHILDREN_DIRNAME).mkdir()
        except OSError as e:
            raise StorageError.from_os_error("create vertex directory", target, e) from e

        if vertex.references:
            write_references(target, vertex.references)
        write_model(vertex_meta_path(target), vertex)

        if self.index is not None:
            self.index.record(vertex.id, vertex.workspace_id, target)
        log.info("Created vertex %s in workspace %s", vertex.id, vertex.workspace_id)
        return vertex

    def get(self, vertex_id: str) -> Vertex | None:
        """Return the first vertex with vertex_id across all workspaces, or None."""
        found = self.locate(vertex_id)
        if found is None:
            return None
        return self.load(found[1])

    def get_children(self, parent_id: str) -> list[Vertex]:
        """List the immediate children of a vertex.

        Raises:
            NotFoundError: If the parent does not exist.
        """
        found = self.locate(parent_id)
        if found is None:
            raise NotFoundError(f"Vertex {parent_id} not found", {"id": parent_id})
        return self._list_vertices(found[1] / CHILDREN_DIRNAME)

    def get_root_vertices(self, workspace_id: str) -> list[Vertex]:
        """List the vertices stored directly under a workspace root.

        Raises:
            UnregisteredWorkspaceError: If the workspace is not registered.
        """
        mapping = self.registry.load()
        if workspace_id not in mapping:
            raise UnregisteredWorkspaceError(
                f"Workspace {workspace_id} is not registered", {"id": workspace_id}
            )
        root = Path(mapping[workspace_id])
        return [v for v in self._list_vertices(root) if v.is_root]

    def update(self, vertex: Vertex) -> Vertex:
        """Rewrite a vertex's metadata and replace its references.

        A changed parent_id moves the vertex directory (with its subtree)
        beneath the new parent, or to the workspace root.

        Raises:
            NotFoundError: If the vertex does not exist in its workspace.
            ParentNotFoundError: If the new parent does not exist.
            AlreadyExistsError: If the move target is occupied.
            InvalidPathError: If the new parent is the vertex or a descendant.
        """
        root = self.registry.resolve_root(vertex.workspace_id)
        assert vertex.workspace_id is not None

        vertex_dir = self._locate_in(vertex.workspace_id, root, vertex.id)
        if vertex_dir is None:
            raise NotFoundError(
                f"Vertex {vertex.id} not found in workspace {vertex.workspace_id}",
                {"id": vertex.id, "workspace_id": vertex.workspace_id},
            )

        stored = read_model(vertex_meta_path(vertex_dir), Vertex)
        if vertex.created_at is None:
            vertex.created_at = stored.created_at
        vertex.stamp()

        if (vertex.parent_id or None) != (stored.parent_id or None):
            moved_dir = self._move(vertex, vertex_dir, root)
            rebase_asset_paths(vertex.references or [], vertex_dir, moved_dir)
            vertex_dir = moved_dir

        vertex.asset_directory = str(vertex_dir)
        write_references(vertex_dir, vertex.references or [])
        write_model(vertex_meta_path(vertex_dir), vertex)

        log.info("Updated vertex %s", vertex.id)
        return vertex

    def _move(self, vertex: Vertex, vertex_dir: Path, root: Path) -> Path:
        assert vertex.workspace_id is not None
        if vertex.parent_id:
            parent_dir = self._locate_in(vertex.workspace_id, root, vertex.parent_id)
            if parent_dir is None:
                raise ParentNotFoundError(
                    f"Parent vertex {vertex.parent_id} not found in workspace "
                    f"{vertex.workspace_id}",
                    {"parent_id": vertex.parent_id, "workspace_id": vertex.workspace_id},
                )
            if _is_within(parent_dir, vertex_dir):
                raise InvalidPathError(
                    f"Cannot move vertex {vertex.id} beneath itself",
                    {"id": vertex.id, "parent_id": vertex.parent_id},
                )
            target = parent_dir / CHILDREN_DIRNAME / vertex_dir.name
        else:
            target = root / vertex_dir.name

        if target.exists():
            raise AlreadyExistsError(
                f"Vertex {vertex.id} already exists at {target}",
                {"id": vertex.id, "path": str(target)},
            )

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(vertex_dir), str(target))
        except OSError as e:
            raise StorageError.from_os_error("move vertex directory", vertex_dir, e) from e

        if self.index is not None:
            # Every descendant path changed
            self.index.invalidate()
        log.info("Moved vertex %s to %s", vertex.id, target)
        return target

    def remove(self, vertex_id: str) -> Path:
        """Delete the first vertex with vertex_id and its whole subtree.

        Returns:
            The directory that was removed.

        Raises:
            NotFoundError: If no workspace contains the vertex.
        """
        found = self.locate(vertex_id)
        if found is None:
            raise NotFoundError(f"Vertex {vertex_id} not found", {"id": vertex_id})

        _, vertex_dir = found
        try:
            shutil.rmtree(vertex_dir)
        except OSError as e:
            raise StorageError.from_os_error("remove", vertex_dir, e) from e

        if self.index is not None:
            self.index.forget(vertex_dir)
        log.info("Removed vertex %s (%s)", vertex_id, vertex_dir)
        return vertex_dir

    # ─────────────────────────────────────────────────────────────────────
    # Browsing
    # ─────────────────────────────────────────────────────────────────────

    def walk(self, workspace_id: str | None = None) -> Iterator[Vertex]:
        """Yield every stored vertex, optionally limited to one workspace."""
        if workspace_id is not None:
            roots = [(workspace_id, self.registry.resolve_root(workspace_id))]
        else:
            roots = self.registry.roots()
        for _, root in roots:
            for _, vertex_dir in iter_vertex_dirs(root):
                yield self.load(vertex_dir)

    def search(
        self,
        query: str,
        workspace_id: str | None = None,
        limit: int | None = None,
    ) -> list[Vertex]:
        """Find vertices whose title or tags contain query (case-insensitive)."""
        needle = query.strip().lower()
        if not needle:
            return []

        matches: list[Vertex] = []
        for vertex in self.walk(workspace_id):
            haystack = [vertex.title.lower(), *(tag.lower() for tag in vertex.tags)]
            if any(needle in item for item in haystack):
                matches.append(vertex)
                if limit is not None and len(matches) >= limit:
                    break
        return matches

    def tree(self, workspace_id: str, depth: int = 3) -> dict[str, Any]:
        """Nested view of a workspace: {vertex_id: {"title": ..., "children": {...}}}."""
        root = self.registry.resolve_root(workspace_id)

        def _build(directory: Path, current_depth: int) -> dict[str, Any]:
            result: dict[str, Any] = {}
            if current_depth >= depth:
                return result
            for vertex in self._list_vertices(directory):
                assert vertex.asset_directory is not None
                children_dir = Path(vertex.asset_directory) / CHILDREN_DIRNAME
                result[vertex.id] = {
                    "title": vertex.title,
                    "children": _build(children_dir, current_depth + 1),
                }
            return result

        return _build(root, 0)
