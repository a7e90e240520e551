"""Canonical JSON helpers for persisted reports and bypass state."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """Serialize a JSON-compatible object with stable canonical formatting."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def pretty_dumps(obj: Any) -> str:
    """Serialize with sorted keys and indentation for human-read files."""
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def write_json_exclusive(path: Path, obj: Any) -> Path:
    """Create a new JSON file without ever replacing an existing one.

    When ``path`` is taken, ``-1``, ``-2``... is appended to the stem until
    a free name is found. Returns the path actually written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    rendered = pretty_dumps(obj)
    candidate = path
    attempt = 0
    while True:
        try:
            with candidate.open("x", encoding="utf-8") as handle:
                handle.write(rendered)
            return candidate
        except FileExistsError:
            attempt += 1
            candidate = path.with_name(f"{path.stem}-{attempt}{path.suffix}")


def write_json_atomic(path: Path, obj: Any) -> None:
    """Replace ``path`` with new JSON content via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            delete=False,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as tmp_file:
            tmp_file.write(pretty_dumps(obj))
            tmp_path = Path(tmp_file.name)
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise


def append_jsonl(path: Path, obj: Any) -> None:
    """Append one canonical JSON record as a line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(canonical_dumps(obj) + "\n")
