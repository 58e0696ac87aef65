"""Path validation and resolution.

Workspace roots must be absolute: the registry is consulted from arbitrary
working directories, so a relative root would resolve differently per caller.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from .config import REGISTRY_FILENAME
from .errors import InvalidPathError, NotFoundError, StorageError

ALLOWED_URL_SCHEMES = ("http", "https")


def resolve_workspace_root(path: str | Path) -> Path:
    """Validate a workspace root.

    Raises:
        InvalidPathError: If the path is empty or not absolute.
    """
    if not str(path).strip():
        raise InvalidPathError("Workspace path must not be empty")
    root = Path(path)
    if not root.is_absolute():
        raise InvalidPathError(
            f"Workspace path must be an absolute path: {path}",
            {"path": str(path)},
        )
    return root


def resolve_registry_path(app_data_dir: str | Path) -> Path:
    """Return the registry file inside app_data_dir, creating the directory if needed."""
    data_dir = Path(app_data_dir)
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError.from_os_error("create data directory", data_dir, e) from e
    return data_dir / REGISTRY_FILENAME


def validate_entry_name(name: str) -> str:
    """Check that a vertex id can be used as a single directory name."""
    if not name or not name.strip():
        raise InvalidPathError("Vertex id must not be empty")
    if name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise InvalidPathError(f"Invalid vertex id: {name!r}", {"id": name})
    return name


def validate_open_path(path: str | Path) -> Path:
    """Validate a path before handing it to the OS shell.

    Raises:
        InvalidPathError: If the path is not absolute.
        NotFoundError: If nothing exists at the path.
    """
    target = Path(path)
    if not target.is_absolute():
        raise InvalidPathError(f"Path must be absolute: {path}", {"path": str(path)})
    if not target.exists():
        raise NotFoundError(f"Path not found: {path}", {"path": str(path)})
    return target


def validate_external_url(url: str) -> str:
    """Only http(s) URLs with a host are handed to the browser."""
    parsed = urlparse(url.strip())
    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES or not parsed.netloc:
        raise InvalidPathError(
            f"URL must use http or https: {url}",
            {"url": url, "allowed_schemes": list(ALLOWED_URL_SCHEMES)},
        )
    return url.strip()
