"""Unit tests for canonical JSON persistence helpers."""

from __future__ import annotations

import json
from pathlib import Path

from crategate.artifacts.canonical_json import (
    append_jsonl,
    canonical_dumps,
    pretty_dumps,
    write_json_atomic,
    write_json_exclusive,
)


def test_canonical_dumps_sorts_and_compacts() -> None:
    assert canonical_dumps({"b": 1, "a": [1, 2], "é": "ü"}) == '{"a":[1,2],"b":1,"é":"ü"}'


def test_pretty_dumps_ends_with_newline() -> None:
    assert pretty_dumps({"b": 1, "a": 2}) == '{\n  "a": 2,\n  "b": 1\n}\n'


def test_write_json_exclusive_suffixes_on_collision(tmp_path: Path) -> None:
    target = tmp_path / "reports" / "run.json"

    first = write_json_exclusive(target, {"n": 1})
    second = write_json_exclusive(target, {"n": 2})
    third = write_json_exclusive(target, {"n": 3})

    assert first == target
    assert second.name == "run-1.json"
    assert third.name == "run-2.json"
    assert json.loads(first.read_text(encoding="utf-8")) == {"n": 1}


def test_write_json_atomic_replaces_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "state.json"
    write_json_atomic(target, {"v": 1})
    write_json_atomic(target, {"v": 2})

    assert json.loads(target.read_text(encoding="utf-8")) == {"v": 2}
    assert [path.name for path in tmp_path.iterdir()] == ["state.json"]


def test_append_jsonl(tmp_path: Path) -> None:
    log = tmp_path / "nested" / "audit.log"
    append_jsonl(log, {"x": 1})
    append_jsonl(log, {"x": 2})

    assert log.read_text(encoding="utf-8") == '{"x":1}\n{"x":2}\n'
