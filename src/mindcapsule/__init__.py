"""mindcapsule: directory-backed vertex trees for knowledge-graph workspaces."""

__version__ = "0.3.0"
