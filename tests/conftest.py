"""Shared test fixtures for the mindcapsule test suite.

Design:
- data_dir: isolated application data directory (registry + settings)
- registry/store: storage objects bound to that directory
- workspace: one registered workspace rooted in tmp_path
- runner: CliRunner for CLI tests
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from mindcapsule import core
from mindcapsule.config import DATA_DIR_ENV
from mindcapsule.models import Workspace
from mindcapsule.registry import WorkspaceRegistry
from mindcapsule.vertex_store import VertexStore


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch):
    """Point MINDCAPSULE_DATA_DIR at a temp directory and drop cached singletons."""
    path = tmp_path / "appdata"
    monkeypatch.setenv(DATA_DIR_ENV, str(path))
    core.reset()
    yield path
    core.reset()


@pytest.fixture
def registry(data_dir: Path) -> WorkspaceRegistry:
    return WorkspaceRegistry.from_data_dir(data_dir)


@pytest.fixture
def store(registry: WorkspaceRegistry) -> VertexStore:
    """Store without an index: every lookup scans the directories."""
    return VertexStore(registry)


@pytest.fixture
def workspace(registry: WorkspaceRegistry, tmp_path: Path) -> Workspace:
    """A registered workspace W1 rooted at <tmp>/w1."""
    return registry.create(Workspace(id="W1", name="First", path=str(tmp_path / "w1")))
