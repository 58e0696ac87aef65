"""Configuration management for mindcapsule.

This module contains the file and directory names that make up the on-disk
layout, plus discovery of the application data directory. Names here are part
of the persisted format: changing them orphans existing workspaces.
"""

import os
from pathlib import Path

# Application data directory (holds the registry and settings)
DATA_DIR_ENV = "MINDCAPSULE_DATA_DIR"
DEFAULT_DATA_DIR = Path.home() / ".mindcapsule"

REGISTRY_FILENAME = "workspace_registry.json"
SETTINGS_FILENAME = "settings.yaml"

# Workspace layout
WORKSPACE_META_FILENAME = "workspace.json"
SCHEMA_VERSION = 1
DEFAULT_WORKSPACE_NAME = "Mind Capsule Workspace"

# Skeleton directories created by the bootstrap
BOOTSTRAP_DIRS = ("projects", "trash", ".cache")

# Vertex layout
VERTEX_META_FILENAME = "vertex.json"
CHILDREN_DIRNAME = "children"
REFERENCES_DIRNAME = "references"

# Staging name used while the references directory is being replaced
REFERENCES_STAGING_DIRNAME = ".references-replaced"

# Extension used for copied assets whose source has none
DEFAULT_ASSET_EXTENSION = "bin"

# JSON indentation for every metadata file
JSON_INDENT = 2

# Generated id prefixes
WORKSPACE_ID_PREFIX = "ws"
VERTEX_ID_PREFIX = "v"

# Default number of results for vertex search
DEFAULT_SEARCH_LIMIT = 20

# Default depth for the tree view
DEFAULT_TREE_DEPTH = 3


def get_data_dir() -> Path:
    """Get the application data directory.

    Discovery order:
    1. MINDCAPSULE_DATA_DIR environment variable
    2. ~/.mindcapsule

    The directory is not created here; see paths.resolve_registry_path.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return DEFAULT_DATA_DIR
