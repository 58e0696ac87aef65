"""Application settings stored next to the workspace registry.

Example settings.yaml:
    workspace_path: /home/me/Notes   # Last workspace chosen with the folder picker
    use_index: true                  # Cache vertex locations in memory
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import SETTINGS_FILENAME, get_data_dir
from .errors import StorageError

log = logging.getLogger(__name__)

# Cache for settings loading (per-session)
_settings_cache: dict[str, "AppSettings"] = {}


@dataclass
class AppSettings:
    """Settings persisted in settings.yaml."""

    workspace_path: str | None = None
    """Workspace folder selected most recently."""

    use_index: bool = True
    """Keep an in-memory id -> directory index instead of scanning on every lookup."""

    source_file: Path | None = field(default=None, compare=False)
    """Path to the settings file that was loaded (or will be written)."""

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_file: Path | None = None) -> "AppSettings":
        """Create AppSettings from parsed YAML dict."""
        return cls(
            workspace_path=data.get("workspace_path"),
            use_index=bool(data.get("use_index", True)),
            source_file=source_file,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"use_index": self.use_index}
        if self.workspace_path:
            data["workspace_path"] = self.workspace_path
        return data

    def save(self) -> None:
        """Write the settings back to source_file."""
        target = self.source_file or settings_path()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(
                yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=True),
                encoding="utf-8",
            )
        except OSError as e:
            raise StorageError.from_os_error("write settings", target, e) from e
        self.source_file = target
        _settings_cache[str(target)] = self


def settings_path(data_dir: Path | None = None) -> Path:
    return (data_dir or get_data_dir()) / SETTINGS_FILENAME


def load_settings(data_dir: Path | None = None) -> AppSettings:
    """Load settings.yaml from data_dir.

    A missing file yields defaults. An unreadable or malformed file yields
    defaults with a warning.
    """
    path = settings_path(data_dir)
    if not path.exists():
        return AppSettings(source_file=path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        log.warning("Ignoring unreadable settings file %s: %s", path, e)
        return AppSettings(source_file=path)

    # Handle empty file or all-comments file
    if data is None:
        return AppSettings(source_file=path)

    if not isinstance(data, dict):
        log.warning("Ignoring settings file %s: expected a mapping", path)
        return AppSettings(source_file=path)

    return AppSettings.from_dict(data, source_file=path)


def get_settings(data_dir: Path | None = None) -> AppSettings:
    """Get settings (cached per settings file)."""
    cache_key = str(settings_path(data_dir))
    if cache_key not in _settings_cache:
        _settings_cache[cache_key] = load_settings(data_dir)
    return _settings_cache[cache_key]


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing or after settings.yaml changes."""
    _settings_cache.clear()
