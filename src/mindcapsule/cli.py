#!/usr/bin/env python3
"""
capsule: CLI for mindcapsule workspaces

Usage:
    capsule workspace create --name="Notes" --path=/abs/dir   # Register a workspace
    capsule vertex add WORKSPACE_ID --title="Idea"              # Create a root vertex
    capsule vertex children VERTEX_ID                           # Browse the tree
    capsule ref add-note VERTEX_ID "text"                       # Attach a note
    capsule vertex tree WORKSPACE_ID                            # Whole tree
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError
from pydantic import BaseModel

from . import __version__ as CAPSULE_VERSION


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}
    widths = {col: len(col) for col in columns}

    def _cell(row: dict, col: str) -> str:
        val = str(row.get(col, "") if row.get(col) is not None else "")
        limit = max_widths.get(col, 50)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(_cell(row, col)))

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)

    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(_cell(row, col).ljust(widths[col]) for col in columns))

    return "\n".join(lines)


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True)
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(_dump(data), indent=2, default=str))
    else:
        click.echo(data)


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error as text, or as JSON when --json-errors is set."""
    from .errors import CapsuleError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, CapsuleError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
    else:
        if json_errors:
            click.echo(format_error_json("INTERNAL_ERROR", str(error)), err=True)
        else:
            click.echo(f"Error: {error}", err=True)

    sys.exit(exit_code)


def _call(ctx: click.Context, coro):
    """Run a core coroutine, turning store errors into CLI errors."""
    from .errors import CapsuleError

    try:
        return run_async(coro)
    except CapsuleError as e:
        _handle_error(ctx, e)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    elif isinstance(exc, ClickException):
        return "CLI_ERROR"
    return "UNKNOWN_ERROR"


def _split_tags(tags: str | None) -> list[str] | None:
    if tags is None:
        return None
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


def _vertex_row(vertex) -> dict:
    return {
        "id": vertex.id,
        "title": vertex.title,
        "kind": vertex.kind or "",
        "tags": ", ".join(vertex.tags),
        "refs": len(vertex.references or []),
    }


def _echo_vertices(vertices, as_json: bool, empty_message: str) -> None:
    if as_json:
        output(vertices, as_json=True)
        return
    if not vertices:
        click.echo(empty_message)
        return
    click.echo(
        format_table(
            [_vertex_row(v) for v in vertices],
            ["id", "title", "kind", "tags", "refs"],
            {"title": 40},
        )
    )


def _reference_summary(reference) -> str:
    if reference.type == "note":
        first_line = reference.text.strip().splitlines()[0] if reference.text.strip() else ""
        return first_line[:60]
    if reference.type == "url":
        return f"{reference.title} <{reference.url}>" if reference.title else reference.url
    if reference.type in ("image", "file"):
        return reference.path
    return reference.vertex_id


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Click group that formats errors as JSON when --json-errors is set.

    Also suggests the closest command name on typos.
    """

    def resolve_command(self, ctx, args):
        """Override to suggest similar commands for typos."""
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(
                    cmd_name, self.list_commands(ctx), n=1, cutoff=0.6
                )
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Catch usage errors raised before any command runs."""
        argv = list(args) if args is not None else list(sys.argv[1:])

        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        # Accept the flag anywhere by moving it in front of the subcommand
        argv = ["--json-errors", *(a for a in argv if a != "--json-errors")]

        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            from .errors import format_error_json

            click.echo(format_error_json(get_error_code_for_exception(e), e.format_message()), err=True)
            raise SystemExit(1)
        except click.Abort:
            from .errors import format_error_json

            click.echo(format_error_json("ABORTED", "Aborted by user"), err=True)
            raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=CAPSULE_VERSION, prog_name="capsule")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="MINDCAPSULE_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, quiet: bool):
    """capsule: manage mindcapsule workspaces, vertices and references.

    \b
    Quick start:
      capsule workspace create --name="Notes" --path="$HOME/Notes"
      capsule vertex add ws-1234abcd --title="First idea"
      capsule vertex children v-1234abcd
      capsule vertex tree ws-1234abcd

    \b
    Data directory:
      The workspace registry lives in ~/.mindcapsule
      (override with MINDCAPSULE_DATA_DIR).
    """
    from ._logging import configure_logging, set_quiet_mode

    configure_logging()

    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)


# ─────────────────────────────────────────────────────────────────────────────
# Workspaces
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def workspace():
    """Create, list and remove workspaces."""


@workspace.command("create")
@click.option("--name", required=True, help="Display name")
@click.option("--path", "path", required=True, help="Absolute root directory")
@click.option("--id", "workspace_id", help="Workspace id (generated when omitted)")
@click.option("--purpose", help="What the workspace is for")
@click.option("--tags", help="Comma-separated tags")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workspace_create(
    ctx: click.Context,
    name: str,
    path: str,
    workspace_id: str | None,
    purpose: str | None,
    tags: str | None,
    as_json: bool,
):
    """Register a new workspace rooted at --path.

    \b
    Examples:
      capsule workspace create --name="Notes" --path=/home/me/Notes
      capsule workspace create --name="Work" --path=/srv/work --id=work --tags=job
    """
    from .core import create_workspace

    created = _call(
        ctx,
        create_workspace(
            name=name,
            path=path,
            workspace_id=workspace_id,
            purpose=purpose,
            tags=_split_tags(tags),
        ),
    )
    if as_json:
        output(created, as_json=True)
    else:
        click.echo(f"Created workspace {created.id} at {created.path}")


@workspace.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workspace_list(ctx: click.Context, as_json: bool):
    """List registered workspaces."""
    from .core import list_workspaces

    workspaces = _call(ctx, list_workspaces())
    if as_json:
        output(workspaces, as_json=True)
        return
    if not workspaces:
        click.echo("No workspaces registered. Create one with: capsule workspace create")
        return
    rows = [{"id": w.id, "name": w.name, "path": w.path} for w in workspaces]
    click.echo(format_table(rows, ["id", "name", "path"], {"path": 60}))


@workspace.command("show")
@click.argument("workspace_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workspace_show(ctx: click.Context, workspace_id: str, as_json: bool):
    """Show one workspace."""
    from .core import get_workspace

    found = _call(ctx, get_workspace(workspace_id))
    if as_json:
        output(found, as_json=True)
        return
    click.echo(f"Id:       {found.id}")
    click.echo(f"Name:     {found.name}")
    click.echo(f"Path:     {found.path}")
    if found.purpose:
        click.echo(f"Purpose:  {found.purpose}")
    click.echo(f"Tags:     {', '.join(found.tags)}")
    click.echo(f"Created:  {found.created_at}")
    click.echo(f"Updated:  {found.updated_at}")


@workspace.command("update")
@click.argument("workspace_id")
@click.option("--name", help="New display name")
@click.option("--path", "path", help="New absolute root (data is not moved)")
@click.option("--purpose", help="New purpose")
@click.option("--tags", help="Replace tags (comma-separated)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workspace_update(
    ctx: click.Context,
    workspace_id: str,
    name: str | None,
    path: str | None,
    purpose: str | None,
    tags: str | None,
    as_json: bool,
):
    """Change a workspace's name, root path, purpose or tags."""
    from .core import update_workspace

    kwargs: dict[str, Any] = {"name": name, "path": path, "tags": _split_tags(tags)}
    if purpose is not None:
        kwargs["purpose"] = purpose
    updated = _call(ctx, update_workspace(workspace_id, **kwargs))
    if as_json:
        output(updated, as_json=True)
    else:
        click.echo(f"Updated workspace {updated.id}")


@workspace.command("remove")
@click.argument("workspace_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workspace_remove(ctx: click.Context, workspace_id: str, yes: bool, as_json: bool):
    """Delete a workspace and EVERYTHING under its root directory."""
    from .core import remove_workspace

    if not yes:
        click.confirm(
            f"Delete workspace {workspace_id} and all files under its root?", abort=True
        )
    result = _call(ctx, remove_workspace(workspace_id))
    if as_json:
        output(result, as_json=True)
    else:
        click.echo(f"Removed workspace {workspace_id} ({result['path']})")


@workspace.command("init")
@click.argument("path")
@click.option("--name", help="Name stamped into a new workspace.json")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workspace_init(ctx: click.Context, path: str, name: str | None, as_json: bool):
    """Create the workspace skeleton at PATH (safe to repeat)."""
    from .core import init_workspace

    result = _call(ctx, init_workspace(path, name=name))
    if as_json:
        output({"root": str(result.root), "created": result.created}, as_json=True)
    elif result.was_initialized:
        click.echo(f"Initialized {result.root}: {', '.join(result.created)}")
    else:
        click.echo(f"{result.root} is already initialized")


@workspace.command("pick")
@click.pass_context
def workspace_pick(ctx: click.Context):
    """Choose a workspace folder interactively and remember it."""
    from .core import select_workspace

    def _prompt() -> str | None:
        value = click.prompt("Workspace folder (empty to cancel)", default="", show_default=False)
        return value.strip() or None

    selected = _call(ctx, select_workspace(_prompt))
    if selected is None:
        click.echo("No folder selected.")
    else:
        click.echo(f"Using workspace folder {selected}")


# ─────────────────────────────────────────────────────────────────────────────
# Vertices
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def vertex():
    """Create, browse and edit vertices."""


@vertex.command("add")
@click.argument("workspace_id")
@click.option("--title", required=True, help="Vertex title")
@click.option("--parent", "parent_id", help="Parent vertex id (root vertex when omitted)")
@click.option("--id", "vertex_id", help="Vertex id (generated when omitted)")
@click.option("--kind", help="Vertex kind (defaults to the parent's child kind)")
@click.option("--tags", help="Comma-separated tags")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_add(
    ctx: click.Context,
    workspace_id: str,
    title: str,
    parent_id: str | None,
    vertex_id: str | None,
    kind: str | None,
    tags: str | None,
    as_json: bool,
):
    """Create a vertex in WORKSPACE_ID.

    \b
    Examples:
      capsule vertex add notes --title="Reading list"
      capsule vertex add notes --title="Chapter 1" --parent=v-1234abcd
    """
    from .core import create_vertex

    created = _call(
        ctx,
        create_vertex(
            workspace_id=workspace_id,
            title=title,
            parent_id=parent_id,
            vertex_id=vertex_id,
            kind=kind,
            tags=_split_tags(tags),
        ),
    )
    if as_json:
        output(created, as_json=True)
    else:
        click.echo(f"Created vertex {created.id} at {created.asset_directory}")


@vertex.command("get")
@click.argument("vertex_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_get(ctx: click.Context, vertex_id: str, as_json: bool):
    """Show a vertex and its references."""
    from .core import get_vertex
    from .errors import NotFoundError

    found = _call(ctx, get_vertex(vertex_id))
    if found is None:
        _handle_error(ctx, NotFoundError(f"Vertex {vertex_id} not found", {"id": vertex_id}))

    if as_json:
        output(found, as_json=True)
        return
    click.echo(f"# {found.title}")
    click.echo(f"Id:        {found.id}")
    click.echo(f"Workspace: {found.workspace_id}")
    click.echo(f"Parent:    {found.parent_id or '(root)'}")
    if found.kind:
        click.echo(f"Kind:      {found.kind}")
    click.echo(f"Tags:      {', '.join(found.tags)}")
    click.echo(f"Created:   {found.created_at}")
    click.echo(f"Updated:   {found.updated_at}")
    click.echo(f"Directory: {found.asset_directory}")
    for index, reference in enumerate(found.references or []):
        click.echo(f"  [{index}] {reference.type:<6} {_reference_summary(reference)}")


@vertex.command("children")
@click.argument("vertex_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_children(ctx: click.Context, vertex_id: str, as_json: bool):
    """List the direct children of VERTEX_ID."""
    from .core import get_children

    children = _call(ctx, get_children(vertex_id))
    _echo_vertices(children, as_json, f"{vertex_id} has no children.")


@vertex.command("roots")
@click.argument("workspace_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_roots(ctx: click.Context, workspace_id: str, as_json: bool):
    """List the root vertices of WORKSPACE_ID."""
    from .core import get_root_vertices

    roots = _call(ctx, get_root_vertices(workspace_id))
    _echo_vertices(roots, as_json, f"Workspace {workspace_id} has no vertices.")


@vertex.command("update")
@click.argument("vertex_id")
@click.option("--title", help="New title")
@click.option("--kind", help="New kind")
@click.option("--tags", help="Replace tags (comma-separated)")
@click.option("--default-tab", help="Tab shown when the vertex is opened")
@click.option("--leaf/--no-leaf", "is_leaf", default=None, help="Mark as leaf (no children)")
@click.option("--thumbnail", "thumbnail_path", help="Thumbnail image path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_update(
    ctx: click.Context,
    vertex_id: str,
    title: str | None,
    kind: str | None,
    tags: str | None,
    default_tab: str | None,
    is_leaf: bool | None,
    thumbnail_path: str | None,
    as_json: bool,
):
    """Change properties of a vertex."""
    from .core import update_vertex

    kwargs: dict[str, Any] = {
        "title": title,
        "kind": kind,
        "tags": _split_tags(tags),
        "default_tab": default_tab,
        "is_leaf": is_leaf,
    }
    if thumbnail_path is not None:
        kwargs["thumbnail_path"] = thumbnail_path
    updated = _call(ctx, update_vertex(vertex_id, **kwargs))
    if as_json:
        output(updated, as_json=True)
    else:
        click.echo(f"Updated vertex {updated.id}")


@vertex.command("move")
@click.argument("vertex_id")
@click.option("--parent", "parent_id", help="New parent id")
@click.option("--root", "to_root", is_flag=True, help="Move to the workspace root")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_move(
    ctx: click.Context, vertex_id: str, parent_id: str | None, to_root: bool, as_json: bool
):
    """Move VERTEX_ID (and its subtree) under another parent."""
    from .core import move_vertex

    if bool(parent_id) == to_root:
        raise UsageError("Specify exactly one of --parent or --root")

    moved = _call(ctx, move_vertex(vertex_id, None if to_root else parent_id))
    if as_json:
        output(moved, as_json=True)
    else:
        click.echo(f"Moved vertex {moved.id} to {moved.asset_directory}")


@vertex.command("remove")
@click.argument("vertex_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_remove(ctx: click.Context, vertex_id: str, yes: bool, as_json: bool):
    """Delete VERTEX_ID with all descendants and attachments."""
    from .core import remove_vertex

    if not yes:
        click.confirm(f"Delete vertex {vertex_id} and everything beneath it?", abort=True)
    result = _call(ctx, remove_vertex(vertex_id))
    if as_json:
        output(result, as_json=True)
    else:
        click.echo(f"Removed vertex {vertex_id}")


@vertex.command("search")
@click.argument("query")
@click.option("--workspace", "workspace_id", help="Limit to one workspace")
@click.option("--limit", "-n", default=20, type=click.IntRange(min=1), help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def vertex_search(
    ctx: click.Context, query: str, workspace_id: str | None, limit: int, as_json: bool
):
    """Find vertices by title or tag."""
    from .core import search_vertices

    matches = _call(ctx, search_vertices(query, workspace_id=workspace_id, limit=limit))
    _echo_vertices(matches, as_json, f"No vertices match '{query}'.")


@vertex.command("tree")
@click.argument("workspace_id")
@click.option("--depth", "-d", default=3, type=click.IntRange(min=1), help="Max depth")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, workspace_id: str, depth: int, as_json: bool):
    """Show the vertex tree of WORKSPACE_ID."""
    from .core import tree as core_tree

    result = _call(ctx, core_tree(workspace_id, depth=depth))
    if as_json:
        output(result, as_json=True)
        return

    def _print(nodes: dict, prefix: str = "") -> None:
        items = list(nodes.items())
        for i, (vertex_id, node) in enumerate(items):
            is_last = i == len(items) - 1
            connector = "└── " if is_last else "├── "
            click.echo(f"{prefix}{connector}{node['title']} ({vertex_id})")
            _print(node["children"], prefix + ("    " if is_last else "│   "))

    click.echo(workspace_id)
    _print(result["tree"])
    click.echo(f"\n{result['vertices']} vertices")


# ─────────────────────────────────────────────────────────────────────────────
# References
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def ref():
    """Attach notes, links, images and files to vertices."""


def _report_reference(ctx: click.Context, vertex_id: str, reference, as_json: bool) -> None:
    from .core import add_reference

    updated = _call(ctx, add_reference(vertex_id, reference))
    if as_json:
        output(updated, as_json=True)
    else:
        index = len(updated.references or []) - 1
        click.echo(f"Added {reference.type} reference [{index}] to {vertex_id}")


@ref.command("list")
@click.argument("vertex_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_list(ctx: click.Context, vertex_id: str, as_json: bool):
    """List the references of VERTEX_ID."""
    from .core import list_references

    references = _call(ctx, list_references(vertex_id))
    if as_json:
        output(references, as_json=True)
        return
    if not references:
        click.echo(f"{vertex_id} has no references.")
        return
    rows = [
        {"index": i, "type": r.type, "value": _reference_summary(r)}
        for i, r in enumerate(references)
    ]
    click.echo(format_table(rows, ["index", "type", "value"], {"value": 70}))


@ref.command("add-note")
@click.argument("vertex_id")
@click.argument("text", required=False)
@click.option("--stdin", "from_stdin", is_flag=True, help="Read note text from stdin")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_add_note(
    ctx: click.Context, vertex_id: str, text: str | None, from_stdin: bool, as_json: bool
):
    """Attach a markdown note to VERTEX_ID."""
    from .models import NoteReference, utc_now

    if from_stdin:
        text = sys.stdin.read()
    if text is None:
        raise UsageError("Provide TEXT or --stdin")
    note = NoteReference(text=text, created_at=utc_now().isoformat())
    _report_reference(ctx, vertex_id, note, as_json)


@ref.command("add-url")
@click.argument("vertex_id")
@click.argument("url")
@click.option("--title", help="Link title")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_add_url(ctx: click.Context, vertex_id: str, url: str, title: str | None, as_json: bool):
    """Attach a URL to VERTEX_ID."""
    from .models import UrlReference

    _report_reference(ctx, vertex_id, UrlReference(url=url, title=title), as_json)


@ref.command("add-image")
@click.argument("vertex_id")
@click.argument("path", type=click.Path())
@click.option("--alt", help="Alternative text")
@click.option("--description", help="Caption")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_add_image(
    ctx: click.Context,
    vertex_id: str,
    path: str,
    alt: str | None,
    description: str | None,
    as_json: bool,
):
    """Copy an image into VERTEX_ID's references."""
    from .models import ImageReference

    image = ImageReference(path=str(Path(path).absolute()), alt=alt, description=description)
    _report_reference(ctx, vertex_id, image, as_json)


@ref.command("add-file")
@click.argument("vertex_id")
@click.argument("path", type=click.Path())
@click.option("--alt", help="Display label")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_add_file(ctx: click.Context, vertex_id: str, path: str, alt: str | None, as_json: bool):
    """Copy a file into VERTEX_ID's references."""
    from .models import FileReference

    source = Path(path).absolute()
    attachment = FileReference(
        path=str(source), alt=alt, extension=source.suffix.lstrip(".") or None
    )
    _report_reference(ctx, vertex_id, attachment, as_json)


@ref.command("add-link")
@click.argument("vertex_id")
@click.argument("target_id")
@click.option("--description", help="Why the vertices are linked")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_add_link(
    ctx: click.Context, vertex_id: str, target_id: str, description: str | None, as_json: bool
):
    """Link VERTEX_ID to another vertex."""
    from .models import VertexReference

    link = VertexReference(vertex_id=target_id, description=description)
    _report_reference(ctx, vertex_id, link, as_json)


@ref.command("remove")
@click.argument("vertex_id")
@click.argument("index", type=click.IntRange(min=0))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ref_remove(ctx: click.Context, vertex_id: str, index: int, as_json: bool):
    """Remove reference INDEX; later references are renumbered."""
    from .core import remove_reference

    updated = _call(ctx, remove_reference(vertex_id, index))
    if as_json:
        output(updated, as_json=True)
    else:
        click.echo(f"Removed reference [{index}] from {vertex_id}")


@ref.command("open")
@click.argument("vertex_id")
@click.argument("index", type=click.IntRange(min=0))
@click.pass_context
def ref_open(ctx: click.Context, vertex_id: str, index: int):
    """Open a url, image or file reference with the system handler."""
    from .core import open_reference

    opened = _call(ctx, open_reference(vertex_id, index, click.launch))
    click.echo(f"Opened {opened}")


# ─────────────────────────────────────────────────────────────────────────────
# Shell
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("open")
@click.argument("path")
@click.pass_context
def open_cmd(ctx: click.Context, path: str):
    """Open an absolute PATH with the system handler."""
    from .core import open_path

    opened = _call(ctx, open_path(path, click.launch))
    click.echo(f"Opened {opened}")


@cli.command("open-url")
@click.argument("url")
@click.pass_context
def open_url_cmd(ctx: click.Context, url: str):
    """Open an http(s) URL in the browser."""
    from .core import open_url

    opened = _call(ctx, open_url(url, click.launch))
    click.echo(f"Opened {opened}")


def main():
    """Entry point for the capsule CLI."""
    cli()


if __name__ == "__main__":
    main()
