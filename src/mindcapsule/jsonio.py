"""Reading and writing JSON metadata files.

Every metadata file in a workspace (workspace.json, vertex.json,
reference_<i>.json) and the registry itself goes through these helpers so
formatting and error mapping stay uniform.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .config import JSON_INDENT
from .errors import CorruptMetadataError, NotFoundError, StorageError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFoundError(f"File not found: {path}", {"path": str(path)}) from e
    except OSError as e:
        raise StorageError.from_os_error("read", path, e) from e


def _write_text(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise StorageError.from_os_error("write", path, e) from e


def dumps(data: Any) -> str:
    return json.dumps(data, indent=JSON_INDENT, ensure_ascii=False, default=str) + "\n"


def read_json(path: Path) -> Any:
    """Parse a JSON file.

    Raises:
        NotFoundError: If the file does not exist.
        CorruptMetadataError: If the content is not valid JSON.
        StorageError: For other filesystem failures.
    """
    raw = _read_text(path)
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptMetadataError(
            f"Malformed JSON in {path}: {e.msg} (line {e.lineno})",
            {"path": str(path)},
        ) from e


def write_json(path: Path, data: Any) -> None:
    """Write data as pretty-printed JSON, replacing the file."""
    _write_text(path, dumps(data))


def read_model(path: Path, model_cls: type[ModelT]) -> ModelT:
    """Read and validate a JSON file into a pydantic model."""
    data = read_json(path)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise CorruptMetadataError(
            f"Invalid {model_cls.__name__} metadata in {path}: {e.error_count()} error(s)",
            {"path": str(path), "errors": e.errors(include_url=False, include_input=False)},
        ) from e


def write_model(path: Path, model: BaseModel) -> None:
    """Write a pydantic model; unset optional fields are left out."""
    write_json(path, model.model_dump(mode="json", exclude_none=True))
