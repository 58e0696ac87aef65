"""Seams to the desktop shell: folder picking and opening paths or URLs.

The actual dialog and OS launcher are supplied by the caller. Everything
handed to a launcher is validated first.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from .bootstrap import ensure_workspace_structure
from .paths import resolve_workspace_root, validate_external_url, validate_open_path
from .settings import AppSettings

log = logging.getLogger(__name__)

FolderPicker = Callable[[], "str | None"]
Launcher = Callable[[str], object]


def select_workspace_directory(
    picker: FolderPicker,
    settings: AppSettings | None = None,
) -> Path | None:
    """Ask the picker for a workspace folder and prepare it.

    Returns:
        The bootstrapped workspace root, or None if the user cancelled.

    Raises:
        InvalidPathError: If the picker returned a relative path.
    """
    selected = picker()
    if not selected:
        log.debug("Folder selection cancelled")
        return None

    root = resolve_workspace_root(selected)
    ensure_workspace_structure(root)

    if settings is not None:
        settings.workspace_path = str(root)
        settings.save()
    return root


def open_path(path: str | Path, launcher: Launcher) -> Path:
    """Validate an absolute, existing path and hand it to launcher."""
    target = validate_open_path(path)
    launcher(str(target))
    return target


def open_external_url(url: str, launcher: Launcher) -> str:
    """Validate an http(s) URL and hand it to launcher."""
    target = validate_external_url(url)
    launcher(target)
    return target
