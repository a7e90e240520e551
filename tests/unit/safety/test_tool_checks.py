"""Unit tests for cargo-backed checks with the cargo runner stubbed out."""

from __future__ import annotations

from pathlib import Path

import pytest

from crategate.safety.checks.tools import TOOL_CHECKS, run_tool_check
from crategate.safety.types import CheckType
from crategate.utils.exec import ExecResult, ToolNotFoundError


class _CargoStub:
    """Replays canned results keyed by the cargo subcommand."""

    def __init__(self, results: dict[str, ExecResult] | None = None, *, missing: bool = False):
        self.results = results or {}
        self.missing = missing
        self.calls: list[tuple[list[str], float | None]] = []

    def __call__(self, args: list[str], *, project_root: Path, timeout: float | None = None) -> ExecResult:
        self.calls.append((args, timeout))
        if self.missing:
            raise ToolNotFoundError("cargo")
        key = " ".join(args)
        for prefix, result in self.results.items():
            if key.startswith(prefix):
                return result
        return _result(args, 0)


def _result(args: list[str] | tuple[str, ...], code: int, stdout: str = "", stderr: str = "", **kw) -> ExecResult:
    return ExecResult(
        argv=("cargo", *args),
        cwd=Path("."),
        returncode=code,
        stdout=stdout,
        stderr=stderr,
        **kw,
    )


def _install(monkeypatch: pytest.MonkeyPatch, stub: _CargoStub) -> _CargoStub:
    monkeypatch.setattr("crategate.safety.checks.tools.run_cargo", stub)
    return stub


def test_format_check_passes(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    stub = _install(monkeypatch, _CargoStub())
    result = run_tool_check(TOOL_CHECKS[CheckType.FORMAT], tmp_path, timeout=300)

    assert result.passed
    assert result.context == ["All code is properly formatted"]
    assert stub.calls == [(["fmt", "--check"], 300)]


def test_format_check_lists_first_five_diffs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    diff = "\n".join(f"Diff in /src/m{i}.rs at line 1:" for i in range(7))
    _install(monkeypatch, _CargoStub({"fmt": _result(["fmt"], 1, stdout=diff)}))

    result = run_tool_check(TOOL_CHECKS[CheckType.FORMAT], tmp_path)

    assert not result.passed
    assert result.errors[0] == "Code formatting violations found"
    assert result.errors[1] == "Formatting issue: Diff in /src/m0.rs at line 1:"
    assert len(result.errors) == 1 + 5 + 1
    assert result.errors[-1] == "... and more formatting issues (showing first 5)"
    assert result.suggestions == ["Run 'cargo fmt' to fix formatting automatically"]


def test_lint_check_reports_missing_clippy(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    stub = _install(monkeypatch, _CargoStub({"clippy --version": _result(["clippy"], 101)}))

    result = run_tool_check(TOOL_CHECKS[CheckType.LINT], tmp_path)

    assert result.errors == ["clippy not available"]
    assert result.suggestions == ["Install clippy with: rustup component add clippy"]
    assert len(stub.calls) == 1


def test_lint_check_excerpts_errors_and_warnings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    stderr = "    Checking demo\nerror: unused variable `x`\nwarning: needless return\n"
    _install(monkeypatch, _CargoStub({"clippy --all-targets": _result(["clippy"], 101, stderr=stderr)}))

    result = run_tool_check(TOOL_CHECKS[CheckType.LINT], tmp_path)

    assert result.errors == [
        "Clippy lints found",
        "Clippy: error: unused variable `x`",
        "Clippy: warning: needless return",
    ]


def test_test_check_collects_summaries(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    stdout = (
        "running 2 tests\n"
        "test parser::round_trip ... ok\n"
        "test parser::rejects_empty ... FAILED\n"
        "test result: FAILED. 1 passed; 1 failed; 0 ignored\n"
    )
    _install(monkeypatch, _CargoStub({"test": _result(["test"], 101, stdout=stdout)}))

    result = run_tool_check(TOOL_CHECKS[CheckType.TEST], tmp_path)

    assert result.errors == ["Tests failed", "Test failure: test parser::rejects_empty ... FAILED"]
    assert result.context == ["Tests: test result: FAILED. 1 passed; 1 failed; 0 ignored"]


def test_audit_check_missing_subcommand(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _install(monkeypatch, _CargoStub({"audit --version": _result(["audit"], 101)}))

    result = run_tool_check(TOOL_CHECKS[CheckType.AUDIT], tmp_path)
    assert result.errors == ["cargo-audit not installed"]
    assert result.suggestions == ["Install with: cargo install cargo-audit"]


def test_missing_cargo_is_a_failed_result(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _install(monkeypatch, _CargoStub(missing=True))

    result = run_tool_check(TOOL_CHECKS[CheckType.BUILD], tmp_path)
    assert result.errors == ["cargo not found"]
    assert result.suggestions == ["Install Rust and cargo from https://rustup.rs"]


def test_timeout_is_a_failed_result(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _install(monkeypatch, _CargoStub({"build": _result(["build"], -1, timed_out=True)}))

    result = run_tool_check(TOOL_CHECKS[CheckType.BUILD], tmp_path, timeout=5)
    assert result.errors == ["Build Check timed out after 5s"]


def test_every_external_check_has_a_spec() -> None:
    external = {
        CheckType.FORMAT,
        CheckType.LINT,
        CheckType.BUILD,
        CheckType.TEST,
        CheckType.AUDIT,
        CheckType.DOC,
        CheckType.PUBLISH_DRY_RUN,
    }
    assert set(TOOL_CHECKS) == external
    assert all(spec.check_type is check for check, spec in TOOL_CHECKS.items())
