"""Pydantic models for workspaces, vertices and their references."""

import uuid
from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

from .config import SCHEMA_VERSION


def new_id(prefix: str) -> str:
    """Generate a compact id: <prefix>-<8 hex chars>."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def utc_now() -> datetime:
    return datetime.now(UTC)


class _Timestamped(BaseModel):
    """Mixin for records whose timestamps may be left blank by the caller."""

    created_at: datetime | None = None  # Stamped by the store when blank
    updated_at: datetime | None = None  # Stamped by the store when blank

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def stamp(self, now: datetime | None = None) -> None:
        """Fill in blank timestamps."""
        now = now or utc_now()
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = now


# ─────────────────────────────────────────────────────────────────────────────
# References
# ─────────────────────────────────────────────────────────────────────────────


class VertexReference(BaseModel):
    """A link to another vertex."""

    type: Literal["vertex"] = "vertex"
    vertex_id: str
    description: str | None = None


class UrlReference(BaseModel):
    type: Literal["url"] = "url"
    url: str
    title: str | None = None


class ImageReference(BaseModel):
    type: Literal["image"] = "image"
    path: str  # Source path on write, on-disk copy after hydration
    alt: str | None = None
    description: str | None = None


class FileReference(BaseModel):
    type: Literal["file"] = "file"
    path: str  # Source path on write, on-disk copy after hydration
    alt: str | None = None
    extension: str | None = None
    icon_path: str | None = None


class NoteReference(BaseModel):
    type: Literal["note"] = "note"
    text: str
    created_at: str | None = None


Reference = Annotated[
    VertexReference | UrlReference | ImageReference | FileReference | NoteReference,
    Field(discriminator="type"),
]

ReferenceKind = Literal["vertex", "url", "image", "file", "note"]


# ─────────────────────────────────────────────────────────────────────────────
# Layouts
# ─────────────────────────────────────────────────────────────────────────────


class LinearLayout(BaseModel):
    """Children rendered in a list; order maps child id to position."""

    type: Literal["linear"] = "linear"
    order: dict[str, int] = Field(default_factory=dict)


class CanvasLayout(BaseModel):
    """Children placed freely; positions maps child id to (x, y)."""

    type: Literal["canvas"] = "canvas"
    positions: dict[str, tuple[float, float]] = Field(default_factory=dict)


VertexLayout = Annotated[LinearLayout | CanvasLayout, Field(discriminator="type")]


# ─────────────────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────────────────


class ChildrenBehavior(BaseModel):
    """Defaults applied to children created beneath a vertex."""

    child_kind: str = "generic"
    display: Literal["grid", "list", "canvas", "timeline"] = "grid"


class Workspace(_Timestamped):
    """A named root directory holding a vertex tree."""

    id: str
    name: str
    path: str  # Absolute filesystem root
    purpose: str | None = None
    tags: list[str] = Field(default_factory=list)
    schema_version: int = SCHEMA_VERSION


class WorkspaceStamp(BaseModel):
    """Minimal workspace.json written by the bootstrap when none exists."""

    schema_version: int = SCHEMA_VERSION
    created_at: datetime = Field(default_factory=utc_now)
    name: str


class Vertex(_Timestamped):
    """A node in the document tree."""

    id: str
    title: str
    parent_id: str | None = None  # None for a root vertex
    workspace_id: str | None = None
    kind: str | None = None
    children_behavior: ChildrenBehavior | None = None
    tags: list[str] = Field(default_factory=list)
    references: list[Reference] | None = None
    children_layout: VertexLayout | None = None
    default_tab: str | None = None
    is_leaf: bool | None = None
    thumbnail_path: str | None = None
    thumbnail_alt: str | None = None
    asset_directory: str | None = None  # Filled in by the store

    @field_validator("parent_id", "workspace_id", mode="before")
    @classmethod
    def _blank_id_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_root(self) -> bool:
        return not self.parent_id
