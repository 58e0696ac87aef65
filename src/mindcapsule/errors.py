"""Error taxonomy for mindcapsule.

Every failure surfaced by the store is a CapsuleError carrying a stable
error code, a human readable message and optional structured details.
The CLI and MCP layers render these as text or JSON.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorCode(str, Enum):
    INVALID_PATH = "INVALID_PATH"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
    UNREGISTERED_WORKSPACE = "UNREGISTERED_WORKSPACE"
    MISSING_WORKSPACE_ID = "MISSING_WORKSPACE_ID"
    CORRUPT_REGISTRY = "CORRUPT_REGISTRY"
    CORRUPT_METADATA = "CORRUPT_METADATA"
    IO_ERROR = "IO_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class CapsuleError(Exception):
    """Base class for all store errors."""

    code: ErrorCode = ErrorCode.IO_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class InvalidPathError(CapsuleError):
    """A path, name or URL failed validation."""

    code = ErrorCode.INVALID_PATH


class AlreadyExistsError(CapsuleError):
    code = ErrorCode.ALREADY_EXISTS


class NotFoundError(CapsuleError):
    code = ErrorCode.NOT_FOUND


class ParentNotFoundError(NotFoundError):
    code = ErrorCode.PARENT_NOT_FOUND


class UnregisteredWorkspaceError(CapsuleError):
    code = ErrorCode.UNREGISTERED_WORKSPACE


class MissingWorkspaceIdError(CapsuleError):
    code = ErrorCode.MISSING_WORKSPACE_ID


class CorruptRegistryError(CapsuleError):
    code = ErrorCode.CORRUPT_REGISTRY


class CorruptMetadataError(CapsuleError):
    code = ErrorCode.CORRUPT_METADATA


class StorageError(CapsuleError):
    """An underlying filesystem operation failed."""

    code = ErrorCode.IO_ERROR

    @classmethod
    def from_os_error(cls, action: str, path: Path | str, exc: OSError) -> StorageError:
        return cls(
            f"Failed to {action} {path}: {exc.strerror or exc}",
            {"path": str(path), "errno": exc.errno},
        )


class ConfigurationError(CapsuleError):
    """Raised when application configuration is unusable."""

    code = ErrorCode.CONFIGURATION_ERROR


def format_error_json(code: str, message: str, details: dict | None = None) -> str:
    """Format a non-CapsuleError failure the same way CapsuleError.to_json does."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return json.dumps({"error": error})
