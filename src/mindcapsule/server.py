"""FastMCP server for mindcapsule.

This module provides MCP protocol wrappers around the core business logic.
All actual logic lives in core.py - this file just handles MCP serialization.
"""

import webbrowser
from typing import Literal

from fastmcp import FastMCP

from . import core
from .config import DEFAULT_SEARCH_LIMIT, DEFAULT_TREE_DEPTH
from .models import (
    FileReference,
    ImageReference,
    NoteReference,
    Reference,
    UrlReference,
    Vertex,
    VertexReference,
    Workspace,
    utc_now,
)


mcp = FastMCP(
    name="mindcapsule",
    instructions=(
        "Hierarchical notes stored as folders. Workspaces hold trees of vertices; "
        "vertices carry references (notes, urls, images, files, links to other vertices)."
    ),
)


# ─────────────────────────────────────────────────────────────────────────────
# Workspaces
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(
    name="create_workspace",
    description="Register a new workspace rooted at an absolute directory path.",
)
async def create_workspace_tool(
    name: str,
    path: str,
    workspace_id: str | None = None,
    purpose: str | None = None,
    tags: list[str] | None = None,
) -> Workspace:
    return await core.create_workspace(
        name=name, path=path, workspace_id=workspace_id, purpose=purpose, tags=tags
    )


@mcp.tool(name="list_workspaces", description="List all registered workspaces.")
async def list_workspaces_tool() -> list[Workspace]:
    return await core.list_workspaces()


@mcp.tool(
    name="remove_workspace",
    description="Delete a workspace: removes its whole root directory and its registry entry.",
)
async def remove_workspace_tool(workspace_id: str) -> dict:
    return await core.remove_workspace(workspace_id)


@mcp.tool(
    name="init_workspace",
    description="Create the workspace skeleton (projects, trash, .cache, workspace.json) at a path.",
)
async def init_workspace_tool(path: str, name: str | None = None) -> dict:
    result = await core.init_workspace(path, name=name)
    return {"root": str(result.root), "created": result.created}


# ─────────────────────────────────────────────────────────────────────────────
# Vertices
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(
    name="create_vertex",
    description=(
        "Create a vertex in a workspace. Omit parent_id for a root vertex. "
        "Kind defaults to the parent's configured child kind."
    ),
)
async def create_vertex_tool(
    workspace_id: str,
    title: str,
    parent_id: str | None = None,
    vertex_id: str | None = None,
    kind: str | None = None,
    tags: list[str] | None = None,
) -> Vertex:
    return await core.create_vertex(
        workspace_id=workspace_id,
        title=title,
        parent_id=parent_id,
        vertex_id=vertex_id,
        kind=kind,
        tags=tags,
    )


@mcp.tool(
    name="get_vertex",
    description="Get a vertex with its references. Returns null if no vertex has the id.",
)
async def get_vertex_tool(vertex_id: str) -> Vertex | None:
    return await core.get_vertex(vertex_id)


@mcp.tool(name="get_children", description="List the direct children of a vertex.")
async def get_children_tool(vertex_id: str) -> list[Vertex]:
    return await core.get_children(vertex_id)


@mcp.tool(name="get_root_vertices", description="List the top-level vertices of a workspace.")
async def get_root_vertices_tool(workspace_id: str) -> list[Vertex]:
    return await core.get_root_vertices(workspace_id)


@mcp.tool(
    name="update_vertex",
    description="Change a vertex's title, kind, tags, default tab or leaf flag.",
)
async def update_vertex_tool(
    vertex_id: str,
    title: str | None = None,
    kind: str | None = None,
    tags: list[str] | None = None,
    default_tab: str | None = None,
    is_leaf: bool | None = None,
) -> Vertex:
    return await core.update_vertex(
        vertex_id,
        title=title,
        kind=kind,
        tags=tags,
        default_tab=default_tab,
        is_leaf=is_leaf,
    )


@mcp.tool(
    name="move_vertex",
    description="Move a vertex and its subtree under another parent (null moves it to the root).",
)
async def move_vertex_tool(vertex_id: str, parent_id: str | None = None) -> Vertex:
    return await core.move_vertex(vertex_id, parent_id)


@mcp.tool(
    name="remove_vertex",
    description="Delete a vertex with all of its descendants and attachments.",
)
async def remove_vertex_tool(vertex_id: str) -> dict:
    return await core.remove_vertex(vertex_id)


@mcp.tool(
    name="search_vertices",
    description="Find vertices whose title or tags contain the query (case-insensitive).",
)
async def search_vertices_tool(
    query: str,
    workspace_id: str | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[Vertex]:
    return await core.search_vertices(query, workspace_id=workspace_id, limit=limit)


@mcp.tool(name="tree", description="Nested view of a workspace's vertex tree.")
async def tree_tool(workspace_id: str, depth: int = DEFAULT_TREE_DEPTH) -> dict:
    return await core.tree(workspace_id, depth=depth)


# ─────────────────────────────────────────────────────────────────────────────
# References
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(name="list_references", description="List the references attached to a vertex.")
async def list_references_tool(vertex_id: str) -> list[Reference]:
    return await core.list_references(vertex_id)


@mcp.tool(name="add_note", description="Attach a markdown note to a vertex.")
async def add_note_tool(vertex_id: str, text: str) -> Vertex:
    note = NoteReference(text=text, created_at=utc_now().isoformat())
    return await core.add_reference(vertex_id, note)


@mcp.tool(name="add_url", description="Attach a web link to a vertex.")
async def add_url_tool(vertex_id: str, url: str, title: str | None = None) -> Vertex:
    return await core.add_reference(vertex_id, UrlReference(url=url, title=title))


@mcp.tool(name="add_link", description="Link a vertex to another vertex.")
async def add_link_tool(
    vertex_id: str, target_id: str, description: str | None = None
) -> Vertex:
    link = VertexReference(vertex_id=target_id, description=description)
    return await core.add_reference(vertex_id, link)


@mcp.tool(
    name="add_attachment",
    description="Copy a local image or file (absolute path) into a vertex's references.",
)
async def add_attachment_tool(
    vertex_id: str,
    path: str,
    kind: Literal["image", "file"] = "file",
    alt: str | None = None,
) -> Vertex:
    if kind == "image":
        reference: Reference = ImageReference(path=path, alt=alt)
    else:
        reference = FileReference(path=path, alt=alt)
    return await core.add_reference(vertex_id, reference)


@mcp.tool(
    name="remove_reference",
    description="Remove the reference at an index; later references are renumbered.",
)
async def remove_reference_tool(vertex_id: str, index: int) -> Vertex:
    return await core.remove_reference(vertex_id, index)


@mcp.tool(
    name="open_url",
    description="Open an http(s) URL in the user's browser.",
)
async def open_url_tool(url: str) -> str:
    return await core.open_url(url, webbrowser.open)


def main():
    """Run the MCP server."""
    from ._logging import configure_logging

    configure_logging()
    mcp.run()


if __name__ == "__main__":
    main()
