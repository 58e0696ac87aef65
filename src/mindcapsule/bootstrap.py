"""Workspace skeleton helpers.

Keep this logic non-interactive and free of Click dependencies so it can be reused by:
- `capsule workspace init` (explicit initialization)
- `capsule workspace pick` and the MCP `select_workspace` tool (after a folder is chosen)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .config import BOOTSTRAP_DIRS, DEFAULT_WORKSPACE_NAME, WORKSPACE_META_FILENAME
from .errors import StorageError
from .jsonio import write_model
from .models import WorkspaceStamp
from .paths import resolve_workspace_root

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    root: Path
    created: list[str] = field(default_factory=list)  # Relative to root; "." for the root itself

    @property
    def was_initialized(self) -> bool:
        return bool(self.created)


def ensure_workspace_structure(
    root: str | Path,
    name: str = DEFAULT_WORKSPACE_NAME,
) -> BootstrapResult:
    """Make sure the workspace skeleton exists at root.

    Creates the root, the `projects`, `trash` and `.cache` directories and a
    workspace.json stamp when no metadata file exists yet. Existing files are
    never touched, so this is safe to call before every operation.

    Raises:
        InvalidPathError: If root is not absolute.
        StorageError: For filesystem errors.
    """
    root_path = resolve_workspace_root(root)
    created: list[str] = []

    for directory, label in [(root_path, "."), *((root_path / d, d) for d in BOOTSTRAP_DIRS)]:
        if directory.is_dir():
            continue
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError.from_os_error("create directory", directory, e) from e
        created.append(label)

    meta_path = root_path / WORKSPACE_META_FILENAME
    if not meta_path.exists():
        write_model(meta_path, WorkspaceStamp(name=name))
        created.append(WORKSPACE_META_FILENAME)

    if created:
        log.info("Initialized workspace skeleton at %s: %s", root_path, ", ".join(created))
    return BootstrapResult(root=root_path, created=created)
