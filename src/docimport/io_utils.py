"""I/O utilities for JSON and JSONL files (orjson)."""
from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import orjson


class JsonlError(ValueError):
    """A JSONL line could not be decoded into an object."""

    def __init__(self, path: Path, line_no: int, reason: str) -> None:
        super().__init__(f"{path}:{line_no}: {reason}")
        self.path = path
        self.line_no = line_no


def load_json(path: Path) -> Any:
    """Load JSON from a file."""
    return orjson.loads(path.read_bytes())


def save_json(obj: Any, path: Path, *, pretty: bool = True) -> None:
    """Save an object as JSON with sorted keys (indented when *pretty*)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    path.write_bytes(orjson.dumps(obj, option=opts))


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a JSON Lines file (one JSON object per line). Blank lines skipped.

    Raises JsonlError naming the 1-based line for undecodable lines or
    lines that are not objects.
    """
    records: list[dict[str, Any]] = []
    for line_no, line in enumerate(path.read_bytes().split(b"\n"), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = orjson.loads(line)
        except orjson.JSONDecodeError as exc:
            raise JsonlError(path, line_no, f"invalid JSON: {exc}") from exc
        if not isinstance(record, dict):
            raise JsonlError(path, line_no, "expected a JSON object")
        records.append(record)
    return records


def save_jsonl(records: Iterable[dict[str, Any]], path: Path) -> None:
    """Save dicts as a JSON Lines file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [orjson.dumps(r) for r in records]
    path.write_bytes(b"\n".join(lines) + b"\n" if lines else b"")
