"""Persistent registry of workspaces.

The registry is a single JSON object mapping workspace id to the absolute
root directory of that workspace. It is the source of truth for where a
workspace currently lives; each root additionally carries its own
workspace.json with the full Workspace record.
"""

from __future__ import annotations

import fcntl
import logging
import shutil
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .config import WORKSPACE_META_FILENAME, get_data_dir
from .errors import (
    AlreadyExistsError,
    CorruptMetadataError,
    CorruptRegistryError,
    MissingWorkspaceIdError,
    NotFoundError,
    StorageError,
    UnregisteredWorkspaceError,
)
from .jsonio import read_json, read_model, write_json, write_model
from .models import Workspace, utc_now
from .paths import resolve_registry_path, resolve_workspace_root

log = logging.getLogger(__name__)


def workspace_meta_path(root: Path) -> Path:
    return root / WORKSPACE_META_FILENAME


class WorkspaceRegistry:
    """Workspace id -> root mapping persisted in one JSON file."""

    def __init__(self, path: Path):
        self.path = path
        self._mutex = threading.RLock()

    @classmethod
    def from_data_dir(cls, data_dir: Path | None = None) -> WorkspaceRegistry:
        """Open the registry in data_dir (default: configured data directory)."""
        return cls(resolve_registry_path(data_dir or get_data_dir()))

    # ─────────────────────────────────────────────────────────────────────
    # Raw mapping
    # ─────────────────────────────────────────────────────────────────────

    def load(self) -> dict[str, str]:
        """Load the mapping; an absent file is an empty registry.

        Raises:
            CorruptRegistryError: If the file is not a JSON object of strings.
        """
        if not self.path.exists():
            return {}
        try:
            data = read_json(self.path)
        except CorruptMetadataError as e:
            raise CorruptRegistryError(e.message, e.details) from e
        except NotFoundError:
            # Removed between the existence check and the read
            return {}

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise CorruptRegistryError(
                f"Registry {self.path} must map workspace ids to paths",
                {"path": str(self.path)},
            )
        return data

    def save(self, mapping: dict[str, str]) -> None:
        """Overwrite the registry file with mapping."""
        write_json(self.path, mapping)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Serialize read-modify-write cycles within and across processes."""
        lock_path = self.path.with_name(self.path.name + ".lock")
        with self._mutex:
            try:
                lock_file = open(lock_path, "a", encoding="utf-8")
            except OSError as e:
                raise StorageError.from_os_error("lock", lock_path, e) from e
            with lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    # ─────────────────────────────────────────────────────────────────────
    # Workspace CRUD
    # ─────────────────────────────────────────────────────────────────────

    def create(self, workspace: Workspace) -> Workspace:
        """Register a new workspace and write its metadata at its root.

        The path is stored exactly as given; it is only validated.

        Raises:
            AlreadyExistsError: If the id is already registered.
            InvalidPathError: If the workspace path is not absolute.
        """
        root = resolve_workspace_root(workspace.path)
        with self._locked():
            mapping = self.load()
            if workspace.id in mapping:
                raise AlreadyExistsError(
                    f"Workspace {workspace.id} already exists.",
                    {"id": workspace.id, "path": mapping[workspace.id]},
                )

            workspace.stamp()
            _mkdir(root)
            write_model(workspace_meta_path(root), workspace)

            mapping[workspace.id] = workspace.path
            self.save(mapping)

        log.info("Created workspace %s at %s", workspace.id, root)
        return workspace

    def update(self, workspace: Workspace) -> Workspace:
        """Rewrite a workspace's metadata and registry entry.

        The path may change; existing data at the old root is left in place.

        Raises:
            NotFoundError: If the id is not registered.
        """
        root = resolve_workspace_root(workspace.path)
        with self._locked():
            mapping = self.load()
            if workspace.id not in mapping:
                raise NotFoundError(
                    f"Workspace {workspace.id} does not exist.", {"id": workspace.id}
                )

            if workspace.created_at is None:
                previous = self._read_meta(Path(mapping[workspace.id]))
                if previous is not None:
                    workspace.created_at = previous.created_at
            workspace.updated_at = utc_now()
            workspace.stamp()
            _mkdir(root)
            write_model(workspace_meta_path(root), workspace)

            if Path(mapping[workspace.id]) != root:
                log.info("Workspace %s moved to %s", workspace.id, root)
            mapping[workspace.id] = workspace.path
            self.save(mapping)

        return workspace

    def remove(self, workspace_id: str) -> Path:
        """Delete a workspace's whole root directory and its registry entry.

        Returns:
            The root that was removed.

        Raises:
            NotFoundError: If the id is not registered.
        """
        with self._locked():
            mapping = self.load()
            if workspace_id not in mapping:
                raise NotFoundError(
                    f"Workspace {workspace_id} does not exist.", {"id": workspace_id}
                )

            root = Path(mapping[workspace_id])
            try:
                shutil.rmtree(root)
            except FileNotFoundError:
                log.warning("Workspace root %s was already missing", root)
            except OSError as e:
                raise StorageError.from_os_error("remove", root, e) from e

            del mapping[workspace_id]
            self.save(mapping)

        log.info("Removed workspace %s (%s)", workspace_id, root)
        return root

    def resolve_root(self, workspace_id: str | None) -> Path:
        """Find the root directory of the workspace owning a vertex.

        Raises:
            MissingWorkspaceIdError: If workspace_id is blank.
            UnregisteredWorkspaceError: If workspace_id is not registered.
        """
        if not workspace_id:
            raise MissingWorkspaceIdError("Vertex has no workspace_id")
        mapping = self.load()
        if workspace_id not in mapping:
            raise UnregisteredWorkspaceError(
                f"Workspace {workspace_id} is not registered", {"id": workspace_id}
            )
        return Path(mapping[workspace_id])

    def roots(self) -> list[tuple[str, Path]]:
        """All registered (id, root) pairs in registry order."""
        return [(ws_id, Path(path)) for ws_id, path in self.load().items()]

    def get(self, workspace_id: str) -> Workspace | None:
        """Read a registered workspace's metadata, or None if unknown."""
        mapping = self.load()
        if workspace_id not in mapping:
            return None
        return self._read_meta(Path(mapping[workspace_id]))

    def list(self) -> list[Workspace]:
        """All registered workspaces whose metadata is readable."""
        workspaces = []
        for ws_id, root in self.roots():
            workspace = self._read_meta(root)
            if workspace is None:
                log.warning("Workspace %s has no metadata at %s; skipping", ws_id, root)
                continue
            workspaces.append(workspace)
        return workspaces

    def _read_meta(self, root: Path) -> Workspace | None:
        meta_path = workspace_meta_path(root)
        if not meta_path.exists():
            return None
        return read_model(meta_path, Workspace)


def _mkdir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError.from_os_error("create directory", path, e) from e
