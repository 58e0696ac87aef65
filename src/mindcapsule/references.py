"""Materialization of vertex references on disk.

References live in a `references/` directory inside the vertex directory,
named by their position in the vertex's reference list:

    references/
        reference_0.json     # the reference record itself
        note_0.md            # Note text
        reference_1.json
        url_1.txt            # Url target
        reference_2.json
        image_2.png          # copy of the source image
        reference_3.json
        file_3.txt           # source path, when the source was not a file

Positions are identity, so every write replaces the whole directory rather
than editing it incrementally. Hydration reads payload files back into the
in-memory references after a vertex has been loaded.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from .config import (
    DEFAULT_ASSET_EXTENSION,
    REFERENCES_DIRNAME,
    REFERENCES_STAGING_DIRNAME,
)
from .errors import StorageError
from .jsonio import write_model
from .models import (
    FileReference,
    ImageReference,
    NoteReference,
    Reference,
    UrlReference,
)

log = logging.getLogger(__name__)

METADATA_PREFIX = "reference"


def references_dir(vertex_dir: Path) -> Path:
    return vertex_dir / REFERENCES_DIRNAME


def metadata_name(index: int) -> str:
    return f"{METADATA_PREFIX}_{index}.json"


def payload_prefix(kind: str, index: int) -> str:
    return f"{kind}_{index}"


def asset_extension(source: Path) -> str:
    """Extension of source without the dot, or the default when it has none."""
    return source.suffix.lstrip(".") or DEFAULT_ASSET_EXTENSION


def find_payload(refs_dir: Path, kind: str, index: int) -> Path | None:
    """Find the payload file for reference index of the given kind.

    Matches on the name before the first dot so that image_1 never picks
    up image_10.png.
    """
    prefix = payload_prefix(kind, index)
    candidates = sorted(
        entry
        for entry in refs_dir.iterdir()
        if entry.is_file()
        and entry.name.partition(".")[0] == prefix
        and entry.suffix != ".json"
    )
    return candidates[0] if candidates else None


# ─────────────────────────────────────────────────────────────────────────────
# Write
# ─────────────────────────────────────────────────────────────────────────────


def write_references(vertex_dir: Path, references: Sequence[Reference]) -> Path:
    """Replace the references directory of vertex_dir with references.

    The previous directory is moved aside first so that asset paths pointing
    into it (as produced by hydration) can still be copied from.

    Returns:
        The references directory.
    """
    refs_dir = references_dir(vertex_dir)
    staged: Path | None = None

    try:
        if refs_dir.exists():
            staged = vertex_dir / REFERENCES_STAGING_DIRNAME
            if staged.exists():
                shutil.rmtree(staged)
            refs_dir.rename(staged)
        refs_dir.mkdir()

        for index, reference in enumerate(references):
            write_model(refs_dir / metadata_name(index), reference)
            _write_payload(refs_dir, index, reference, staged)
    except OSError as e:
        raise StorageError.from_os_error("write references in", vertex_dir, e) from e
    finally:
        if staged is not None and staged.exists():
            shutil.rmtree(staged, ignore_errors=True)

    log.debug("Wrote %d reference(s) to %s", len(references), refs_dir)
    return refs_dir


def _write_payload(
    refs_dir: Path, index: int, reference: Reference, staged: Path | None
) -> None:
    if isinstance(reference, NoteReference):
        (refs_dir / f"{payload_prefix('note', index)}.md").write_text(
            reference.text, encoding="utf-8"
        )
    elif isinstance(reference, UrlReference):
        (refs_dir / f"{payload_prefix('url', index)}.txt").write_text(
            reference.url, encoding="utf-8"
        )
    elif isinstance(reference, (ImageReference, FileReference)):
        _write_asset(refs_dir, index, reference, staged)
    # Vertex links carry no payload


def _write_asset(
    refs_dir: Path,
    index: int,
    reference: ImageReference | FileReference,
    staged: Path | None,
) -> None:
    prefix = payload_prefix(reference.type, index)
    source = Path(reference.path)

    # Previously hydrated paths point into the directory that was moved aside
    if staged is not None and source.parent == refs_dir:
        source = staged / source.name

    if source.is_file():
        target = refs_dir / f"{prefix}.{asset_extension(source)}"
        shutil.copyfile(source, target)
        log.debug("Copied %s -> %s", source, target)
    else:
        # Placeholder keeps the declared location visible on disk
        (refs_dir / f"{prefix}.txt").write_text(reference.path, encoding="utf-8")
        log.debug("Reference %s_%d source %s is not a file", reference.type, index, source)


def rebase_asset_paths(
    references: Sequence[Reference], old_vertex_dir: Path, new_vertex_dir: Path
) -> None:
    """Point hydrated asset paths at the references directory of a moved vertex."""
    old_refs = references_dir(old_vertex_dir)
    new_refs = references_dir(new_vertex_dir)
    for reference in references:
        if isinstance(reference, (ImageReference, FileReference)):
            source = Path(reference.path)
            if source.parent == old_refs:
                reference.path = str(new_refs / source.name)


# ─────────────────────────────────────────────────────────────────────────────
# Hydrate
# ─────────────────────────────────────────────────────────────────────────────


def hydrate_references(vertex_dir: Path, references: Sequence[Reference]) -> None:
    """Fill payload fields of references from their files, in place.

    A vertex without a references directory has nothing to hydrate. Missing
    payload files leave the corresponding reference untouched.
    """
    refs_dir = references_dir(vertex_dir)
    if not refs_dir.is_dir():
        return

    try:
        for index, reference in enumerate(references):
            _hydrate_one(refs_dir, index, reference)
    except OSError as e:
        raise StorageError.from_os_error("read references in", vertex_dir, e) from e


def _hydrate_one(refs_dir: Path, index: int, reference: Reference) -> None:
    if isinstance(reference, NoteReference):
        note_path = refs_dir / f"{payload_prefix('note', index)}.md"
        if note_path.is_file():
            reference.text = note_path.read_text(encoding="utf-8")
    elif isinstance(reference, UrlReference):
        url_path = refs_dir / f"{payload_prefix('url', index)}.txt"
        if url_path.is_file():
            reference.url = url_path.read_text(encoding="utf-8").strip()
    elif isinstance(reference, (ImageReference, FileReference)):
        payload = find_payload(refs_dir, reference.type, index)
        if payload is not None:
            reference.path = str(payload)
