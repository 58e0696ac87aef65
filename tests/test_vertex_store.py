"""Tests for the directory-backed vertex tree.

Test organization:
- create / get / children / roots
- update and moves
- remove (cascade)
- duplicate ids and the in-memory index
"""

import json
import shutil
from pathlib import Path

import pytest

from mindcapsule.errors import (
    AlreadyExistsError,
    CorruptMetadataError,
    InvalidPathError,
    MissingWorkspaceIdError,
    NotFoundError,
    ParentNotFoundError,
    UnregisteredWorkspaceError,
)
from mindcapsule.jsonio import write_model
from mindcapsule.models import (
    ImageReference,
    NoteReference,
    UrlReference,
    Vertex,
    Workspace,
)
from mindcapsule.vertex_store import VertexIndex, VertexStore, iter_vertex_dirs


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _vertex(vertex_id: str, parent_id: str | None = None, workspace_id: str = "W1", **kwargs):
    return Vertex(
        id=vertex_id,
        title=kwargs.pop("title", vertex_id.upper()),
        parent_id=parent_id,
        workspace_id=workspace_id,
        **kwargs,
    )


@pytest.fixture(autouse=True)
def _w1(workspace):
    """Every test here runs against a registered W1."""


@pytest.fixture
def root(workspace) -> Path:
    return Path(workspace.path)


@pytest.fixture
def indexed_store(registry) -> VertexStore:
    return VertexStore(registry, index=VertexIndex())


@pytest.fixture(params=["scan", "index"])
def any_store(request, store, indexed_store) -> VertexStore:
    """Run a test with and without the in-memory index."""
    return store if request.param == "scan" else indexed_store


# ─────────────────────────────────────────────────────────────────────────────
# Create / read
# ─────────────────────────────────────────────────────────────────────────────


class TestCreate:
    def test_root_and_child_layout(self, any_store, root):
        any_store.create(_vertex("V1"))
        any_store.create(_vertex("V2", parent_id="V1"))

        assert (root / "V1" / "vertex.json").is_file()
        assert (root / "V1" / "children").is_dir()
        assert (root / "V1" / "children" / "V2" / "vertex.json").is_file()
        assert (root / "V1" / "children" / "V2" / "children").is_dir()
        assert not (root / "V1" / "references").exists()

    def test_stamps_blank_timestamps(self, store, root):
        created = store.create(_vertex("V1"))
        assert created.created_at is not None
        assert created.updated_at is not None
        assert created.asset_directory == str(root / "V1")

        stored = json.loads((root / "V1" / "vertex.json").read_text())
        assert stored["id"] == "V1"
        assert stored["created_at"]

    def test_materializes_references(self, store, root):
        store.create(_vertex("V1", references=[NoteReference(text="hello")]))
        assert (root / "V1" / "references" / "note_0.md").read_text() == "hello"

    def test_duplicate_at_same_location(self, any_store, root):
        any_store.create(_vertex("V1"))
        (root / "V1" / "vertex.json").write_text(json.dumps({"id": "V1", "title": "orig"}))

        with pytest.raises(AlreadyExistsError):
            any_store.create(_vertex("V1", title="clobber"))
        assert json.loads((root / "V1" / "vertex.json").read_text())["title"] == "orig"

    def test_missing_parent(self, any_store, root):
        with pytest.raises(ParentNotFoundError):
            any_store.create(_vertex("V2", parent_id="nope"))
        assert not (root / "V2").exists()

    def test_parent_in_other_workspace_not_used(self, any_store, registry, tmp_path):
        registry.create(Workspace(id="W2", name="Second", path=str(tmp_path / "w2")))
        any_store.create(_vertex("P", workspace_id="W2"))

        with pytest.raises(ParentNotFoundError):
            any_store.create(_vertex("C", parent_id="P", workspace_id="W1"))

    def test_missing_workspace_id(self, store):
        with pytest.raises(MissingWorkspaceIdError):
            store.create(Vertex(id="V1", title="orphan"))

    def test_unregistered_workspace(self, store):
        with pytest.raises(UnregisteredWorkspaceError):
            store.create(_vertex("V1", workspace_id="W9"))

    def test_unsafe_id(self, store, root):
        with pytest.raises(InvalidPathError):
            store.create(_vertex("../escape"))


class TestGet:
    def test_returns_hydrated_vertex(self, any_store, root, tmp_path):
        image = tmp_path / "pic.jpg"
        image.write_bytes(b"jpeg")
        any_store.create(
            _vertex(
                "V1",
                tags=["a"],
                references=[UrlReference(url="https://example.com"), ImageReference(path=str(image))],
            )
        )

        found = any_store.get("V1")

        assert found.title == "V1"
        assert found.tags == ["a"]
        assert found.asset_directory == str(root / "V1")
        assert found.references[0].url == "https://example.com"
        assert found.references[1].path == str(root / "V1" / "references" / "image_1.jpg")

    def test_finds_nested_vertex(self, any_store):
        any_store.create(_vertex("V1"))
        any_store.create(_vertex("V2", parent_id="V1"))
        any_store.create(_vertex("V3", parent_id="V2"))

        assert any_store.get("V3").parent_id == "V2"

    def test_unknown_is_none(self, any_store, workspace):
        assert any_store.get("nothing") is None

    def test_searches_all_workspaces(self, any_store, registry, tmp_path, workspace):
        registry.create(Workspace(id="W2", name="Second", path=str(tmp_path / "w2")))
        any_store.create(_vertex("X", workspace_id="W2"))

        assert any_store.get("X").workspace_id == "W2"

    def test_corrupt_metadata_raises(self, store, root):
        store.create(_vertex("V1"))
        (root / "V1" / "vertex.json").write_text("{oops")

        with pytest.raises(CorruptMetadataError):
            store.get("V1")

    def test_references_dir_is_not_scanned(self, store, root):
        store.create(_vertex("V1", references=[NoteReference(text="x")]))
        decoy = root / "V1" / "references" / "decoy"
        decoy.mkdir()
        (decoy / "vertex.json").write_text(json.dumps({"id": "decoy", "title": "no"}))

        assert store.get("decoy") is None


class TestChildrenAndRoots:
    def test_children_sorted_by_directory(self, any_store):
        any_store.create(_vertex("V1"))
        for child in ("c", "a", "b"):
            any_store.create(_vertex(child, parent_id="V1"))

        assert [v.id for v in any_store.get_children("V1")] == ["a", "b", "c"]

    def test_no_children(self, any_store):
        any_store.create(_vertex("V1"))
        assert any_store.get_children("V1") == []

    def test_children_of_unknown_parent(self, any_store, workspace):
        with pytest.raises(NotFoundError):
            any_store.get_children("ghost")

    def test_roots_ignore_skeleton_dirs(self, any_store, root):
        for name in ("projects", "trash", ".cache"):
            (root / name).mkdir()
        any_store.create(_vertex("V1"))
        any_store.create(_vertex("V2", parent_id="V1"))

        assert [v.id for v in any_store.get_root_vertices("W1")] == ["V1"]

    def test_roots_unregistered(self, store):
        with pytest.raises(UnregisteredWorkspaceError):
            store.get_root_vertices("W9")


# ─────────────────────────────────────────────────────────────────────────────
# Update
# ─────────────────────────────────────────────────────────────────────────────


class TestUpdate:
    def test_rewrites_metadata_and_keeps_created_at(self, any_store):
        created = any_store.create(_vertex("V1"))
        created_at = created.created_at

        vertex = any_store.get("V1")
        vertex.title = "Renamed"
        vertex.created_at = None
        vertex.updated_at = None
        updated = any_store.update(vertex)

        assert updated.created_at == created_at
        assert any_store.get("V1").title == "Renamed"

    def test_replaces_reference_set(self, store, root):
        store.create(_vertex("V1", references=[NoteReference(text=str(i)) for i in range(3)]))

        vertex = store.get("V1")
        vertex.references = [UrlReference(url="https://example.com")]
        store.update(vertex)

        names = {p.name for p in (root / "V1" / "references").iterdir()}
        assert names == {"reference_0.json", "url_0.txt"}
        assert [r.type for r in store.get("V1").references] == ["url"]

    def test_unchanged_update_keeps_assets(self, store, root, tmp_path):
        image = tmp_path / "pic.png"
        image.write_bytes(b"png")
        store.create(_vertex("V1", references=[ImageReference(path=str(image))]))
        image.unlink()

        store.update(store.get("V1"))

        assert (root / "V1" / "references" / "image_0.png").read_bytes() == b"png"

    def test_unknown_vertex(self, store, workspace):
        with pytest.raises(NotFoundError):
            store.update(_vertex("ghost"))

    def test_move_under_new_parent(self, any_store, root, tmp_path):
        image = tmp_path / "pic.png"
        image.write_bytes(b"png")
        any_store.create(_vertex("A"))
        any_store.create(_vertex("B"))
        any_store.create(_vertex("V", parent_id="A", references=[ImageReference(path=str(image))]))
        any_store.create(_vertex("Vchild", parent_id="V"))

        vertex = any_store.get("V")
        vertex.parent_id = "B"
        moved = any_store.update(vertex)

        new_dir = root / "B" / "children" / "V"
        assert moved.asset_directory == str(new_dir)
        assert not (root / "A" / "children" / "V").exists()
        assert (new_dir / "references" / "image_0.png").read_bytes() == b"png"
        assert any_store.get("Vchild").asset_directory == str(new_dir / "children" / "Vchild")
        assert [v.id for v in any_store.get_children("B")] == ["V"]

    def test_move_to_root(self, any_store, root):
        any_store.create(_vertex("A"))
        any_store.create(_vertex("V", parent_id="A"))

        vertex = any_store.get("V")
        vertex.parent_id = None
        any_store.update(vertex)

        assert (root / "V" / "vertex.json").is_file()
        assert [v.id for v in any_store.get_root_vertices("W1")] == ["A", "V"]

    def test_move_beneath_itself(self, any_store):
        any_store.create(_vertex("A"))
        any_store.create(_vertex("B", parent_id="A"))

        vertex = any_store.get("A")
        vertex.parent_id = "B"
        with pytest.raises(InvalidPathError):
            any_store.update(vertex)

    def test_move_to_missing_parent(self, any_store):
        any_store.create(_vertex("A"))
        vertex = any_store.get("A")
        vertex.parent_id = "ghost"
        with pytest.raises(ParentNotFoundError):
            any_store.update(vertex)


# ─────────────────────────────────────────────────────────────────────────────
# Remove
# ─────────────────────────────────────────────────────────────────────────────


class TestRemove:
    def test_cascades_to_descendants(self, any_store, root):
        any_store.create(_vertex("V1"))
        any_store.create(_vertex("V2", parent_id="V1", references=[NoteReference(text="x")]))
        any_store.create(_vertex("V3", parent_id="V2"))

        removed = any_store.remove("V1")

        assert removed == root / "V1"
        assert not removed.exists()
        for vertex_id in ("V1", "V2", "V3"):
            assert any_store.get(vertex_id) is None

    def test_unknown_vertex(self, any_store, workspace):
        with pytest.raises(NotFoundError):
            any_store.remove("ghost")


# ─────────────────────────────────────────────────────────────────────────────
# Duplicate ids and the index
# ─────────────────────────────────────────────────────────────────────────────


class TestDuplicateIds:
    def test_first_match_in_walk_order_wins(self, any_store, root):
        any_store.create(_vertex("A"))
        any_store.create(_vertex("B"))
        # Same id in two different parents is not detected at create time
        any_store.create(_vertex("dup", parent_id="B", title="under B"))
        any_store.create(_vertex("dup", parent_id="A", title="under A"))

        assert any_store.get("dup").title == "under A"

        any_store.remove("dup")
        assert any_store.get("dup").title == "under B"


class TestIndex:
    def test_built_lazily_and_reused(self, indexed_store):
        indexed_store.create(_vertex("V1"))
        assert not indexed_store.index.is_built

        indexed_store.get("V1")
        assert indexed_store.index.is_built

        indexed_store.create(_vertex("V2", parent_id="V1"))
        assert indexed_store.get("V2") is not None

    def test_stale_entry_falls_back_to_scan(self, indexed_store, root):
        indexed_store.create(_vertex("A"))
        indexed_store.create(_vertex("B"))
        indexed_store.create(_vertex("V", parent_id="A"))
        indexed_store.get("V")

        # Moved behind the store's back
        shutil.move(str(root / "A" / "children" / "V"), str(root / "B" / "children" / "V"))

        assert indexed_store.get("V").asset_directory == str(root / "B" / "children" / "V")

    def test_rebuilt_when_workspaces_change(self, indexed_store, registry, tmp_path):
        indexed_store.create(_vertex("V1"))
        indexed_store.get("V1")

        other = tmp_path / "w2"
        (other / "V2").mkdir(parents=True)
        write_model(other / "V2" / "vertex.json", _vertex("V2", workspace_id="W2"))
        registry.create(Workspace(id="W2", name="Second", path=str(other)))

        assert indexed_store.locate("V2") == ("W2", other / "V2")
        assert [v.id for v in indexed_store.get_children("V2")] == []

    def test_miss_falls_back_to_scan(self, indexed_store, root):
        indexed_store.create(_vertex("V1"))
        indexed_store.get("V1")

        (root / "V2").mkdir()
        write_model(root / "V2" / "vertex.json", _vertex("V2"))

        assert indexed_store.get("V2").title == "V2"
        indexed_store.remove("V2")
        assert indexed_store.get("V2") is None

    def test_iter_vertex_dirs_order(self, store, root):
        store.create(_vertex("b"))
        store.create(_vertex("a"))
        store.create(_vertex("a1", parent_id="a"))

        assert [vid for vid, _ in iter_vertex_dirs(root)] == ["a", "a1", "b"]

    def test_symlinked_directories_not_followed(self, any_store, root):
        any_store.create(_vertex("V1"))
        (root / "V1" / "children" / "loop").symlink_to(root, target_is_directory=True)

        assert [vid for vid, _ in iter_vertex_dirs(root)] == ["V1"]
        assert any_store.get("missing") is None
        assert any_store.get_children("V1") == []


# ─────────────────────────────────────────────────────────────────────────────
# Browsing
# ─────────────────────────────────────────────────────────────────────────────


class TestBrowsing:
    @pytest.fixture
    def populated(self, store):
        store.create(_vertex("V1", title="Reading list", tags=["books"]))
        store.create(_vertex("V2", parent_id="V1", title="Dune", tags=["scifi"]))
        store.create(_vertex("V3", parent_id="V2", title="Notes on Dune"))
        return store

    def test_search_title_and_tags(self, populated):
        assert [v.id for v in populated.search("dune")] == ["V2", "V3"]
        assert [v.id for v in populated.search("SCIFI")] == ["V2"]
        assert populated.search("   ") == []

    def test_search_limit(self, populated):
        assert len(populated.search("e", limit=1)) == 1

    def test_tree_depth(self, populated):
        assert populated.tree("W1", depth=2) == {
            "V1": {"title": "Reading list", "children": {"V2": {"title": "Dune", "children": {}}}}
        }


def test_workspace_walkthrough(store):
    store.create(_vertex("V1"))
    store.create(_vertex("V2", parent_id="V1"))
    assert [v.id for v in store.get_children("V1")] == ["V2"]

    store.remove("V1")
    assert store.get("V2") is None
